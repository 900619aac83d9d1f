"""Reciprocal rank fusion of vector and keyword results."""

from __future__ import annotations

from typing import Any

from deep_rag.config import RetrievalConfig
from deep_rag.retrieval.keyword import KeywordRetriever
from deep_rag.retrieval.vector import VectorRetriever
from deep_rag.types import RetrievedDocument


def reciprocal_rank_fusion(
    ranked_lists: list[list[RetrievedDocument]],
    *,
    k: int = 60,
) -> list[RetrievedDocument]:
    """Fuse ranked lists by summing `1 / (rank + k)` per list (ranks 1-indexed).

    A document missing from a list gets no contribution from it. The first
    occurrence of each document id supplies the returned content and
    metadata; ties keep first-seen order.
    """

    scores: dict[str, float] = {}
    documents: dict[str, RetrievedDocument] = {}
    for items in ranked_lists:
        for rank, item in enumerate(items, start=1):
            scores[item.id] = scores.get(item.id, 0.0) + 1.0 / (rank + k)
            documents.setdefault(item.id, item)

    fused = [documents[doc_id].with_score(score) for doc_id, score in scores.items()]
    fused.sort(key=lambda item: item.score, reverse=True)
    return fused


class HybridRetriever:
    """Runs vector and keyword search independently and fuses them with RRF.

    Each route is oversampled to `2 * top_k` before fusion so documents that
    rank moderately in both lists can still surface in the final top-k.
    """

    name = "hybrid"

    def __init__(
        self,
        vector_retriever: VectorRetriever,
        keyword_retriever: KeywordRetriever,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.vector_retriever = vector_retriever
        self.keyword_retriever = keyword_retriever
        self.config = config or RetrievalConfig()

    def search(
        self,
        query: str,
        top_k: int,
        filters: dict[str, Any] | None = None,
    ) -> list[RetrievedDocument]:
        route_k = top_k * 2
        vector_results = self.vector_retriever.search(query, route_k, filters)
        keyword_results = self.keyword_retriever.search(query, route_k, filters)

        fused = reciprocal_rank_fusion(
            [vector_results, keyword_results], k=self.config.rrf_k
        )
        return fused[:top_k]
