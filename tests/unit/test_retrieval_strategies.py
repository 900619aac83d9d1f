import pytest

from deep_rag.errors import EmbeddingError, RetrievalError
from deep_rag.ingest.embedder import HashingEmbedder
from deep_rag.retrieval.base import RetrievalStrategy
from deep_rag.retrieval.schema_filtered import (
    SchemaFilteredRetriever,
    SchemaFilters,
    build_metadata_filter,
)
from deep_rag.retrieval.strategies import build_strategies
from deep_rag.retrieval.vector import VectorRetriever
from deep_rag.retrieval.vector_store import InMemoryVectorStore
from deep_rag.types import RetrievedDocument


def _populated_store(embedder: HashingEmbedder) -> InMemoryVectorStore:
    texts = {
        "risk-1": ("Interest rate risk may reduce margins", {"doc_id": "10k", "section_type": "risk_factors"}),
        "biz-1": ("The company sells cloud software", {"doc_id": "10k", "section_type": "business_overview"}),
        "paper-1": ("Interest rate models in research", {"doc_id": "paper", "section_type": "results"}),
    }
    store = InMemoryVectorStore()
    vectors = embedder.embed([text for text, _ in texts.values()])
    store.upsert(
        [
            RetrievedDocument(id=doc_id, content=text, embedding=vector, metadata=metadata)
            for (doc_id, (text, metadata)), vector in zip(texts.items(), vectors)
        ]
    )
    return store


def test_build_metadata_filter_maps_every_field() -> None:
    filters = SchemaFilters(
        document_ids=["10k"],
        section_types=["risk_factors"],
        hierarchy_paths=["1.2"],
        semantic_tags=["debt"],
        custom_attributes={"filing_type": "10-K"},
        min_relevance_score=0.2,
    )

    assert build_metadata_filter(filters) == {
        "doc_id": ["10k"],
        "section_type": ["risk_factors"],
        "hierarchy_path": ["1.2"],
        "semantic_tags": ["debt"],
        "min_score": 0.2,
        "filing_type": "10-K",
    }
    assert build_metadata_filter(None) is None
    assert SchemaFilters().is_empty()


def test_schema_filtered_restricts_sections() -> None:
    embedder = HashingEmbedder()
    store = _populated_store(embedder)
    retriever = SchemaFilteredRetriever(VectorRetriever(store, embedder))

    results = retriever.search(
        "interest rate risk", top_k=5, filters=SchemaFilters(section_types=["risk_factors"])
    )

    assert [doc.id for doc in results] == ["risk-1"]


def test_schema_filtered_without_filters_is_plain_vector_search() -> None:
    embedder = HashingEmbedder()
    store = _populated_store(embedder)
    vector = VectorRetriever(store, embedder)

    assert [d.id for d in SchemaFilteredRetriever(vector).search("interest rate", 3)] == [
        d.id for d in vector.search("interest rate", 3)
    ]


def test_vector_retriever_wraps_embedding_failure() -> None:
    class _BrokenEmbedder(HashingEmbedder):
        def embed(self, texts: list[str]) -> list[list[float]]:
            raise EmbeddingError("provider down")

    retriever = VectorRetriever(InMemoryVectorStore(), _BrokenEmbedder())
    with pytest.raises(RetrievalError) as excinfo:
        retriever.search("anything", 3)
    assert isinstance(excinfo.value.__cause__, EmbeddingError)


def test_vector_retriever_wraps_store_failure() -> None:
    class _BrokenStore(InMemoryVectorStore):
        def search(self, *args: object, **kwargs: object) -> list[RetrievedDocument]:
            raise ConnectionError("store offline")

    with pytest.raises(RetrievalError):
        VectorRetriever(_BrokenStore(), HashingEmbedder()).search("anything", 3)


def test_strategy_table_is_uniform() -> None:
    embedder = HashingEmbedder()
    strategies = build_strategies(_populated_store(embedder), embedder)

    assert set(strategies) == set(RetrievalStrategy)
    for strategy, retriever in strategies.items():
        assert retriever.name == strategy.value
        results = retriever.search("interest rate risk", 2)
        assert len(results) <= 2


def test_hashing_embedder_rejects_empty_batch() -> None:
    with pytest.raises(EmbeddingError):
        HashingEmbedder().embed([])
