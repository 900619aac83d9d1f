import pytest

from deep_rag.retrieval.fusion import HybridRetriever, reciprocal_rank_fusion
from deep_rag.types import RetrievedDocument


def _docs(*ids: str) -> list[RetrievedDocument]:
    return [RetrievedDocument(id=doc_id, content=doc_id) for doc_id in ids]


def test_rrf_rewards_documents_in_both_lists() -> None:
    fused = reciprocal_rank_fusion([_docs("d1", "d2", "d3"), _docs("d2", "d1", "d4")], k=60)
    scores = {doc.id: doc.score for doc in fused}

    assert scores["d1"] == pytest.approx(1 / 61 + 1 / 62)
    assert scores["d2"] == pytest.approx(1 / 61 + 1 / 62)
    assert scores["d3"] == pytest.approx(1 / 63)
    assert scores["d4"] == pytest.approx(1 / 63)
    assert {doc.id for doc in fused[:2]} == {"d1", "d2"}
    assert {doc.id for doc in fused[2:]} == {"d3", "d4"}


def test_rrf_single_list_keeps_order() -> None:
    fused = reciprocal_rank_fusion([_docs("a", "b", "c")])
    assert [doc.id for doc in fused] == ["a", "b", "c"]


class _FixedRetriever:
    def __init__(self, ids: list[str]) -> None:
        self.ids = ids
        self.requested: list[int] = []

    def search(self, query: str, top_k: int, filters: object = None) -> list[RetrievedDocument]:
        self.requested.append(top_k)
        return _docs(*self.ids)[:top_k]


def test_hybrid_oversamples_each_route_and_truncates() -> None:
    vector = _FixedRetriever(["d1", "d2", "d3", "d5"])
    keyword = _FixedRetriever(["d2", "d1", "d4"])
    hybrid = HybridRetriever(vector, keyword)  # type: ignore[arg-type]

    results = hybrid.search("query", top_k=2)

    assert vector.requested == [4]
    assert keyword.requested == [4]
    assert len(results) == 2
    assert {doc.id for doc in results} == {"d1", "d2"}
