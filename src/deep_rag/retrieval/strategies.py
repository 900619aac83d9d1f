"""Strategy table mapping each retrieval strategy to its implementation."""

from __future__ import annotations

from deep_rag.config import RetrievalConfig
from deep_rag.ingest.embedder import Embedder
from deep_rag.retrieval.base import RetrievalStrategy, Retriever
from deep_rag.retrieval.fusion import HybridRetriever
from deep_rag.retrieval.keyword import KeywordRetriever
from deep_rag.retrieval.schema_filtered import SchemaFilteredRetriever
from deep_rag.retrieval.vector import VectorRetriever
from deep_rag.retrieval.vector_store import VectorStore


def build_strategies(
    store: VectorStore,
    embedder: Embedder,
    config: RetrievalConfig | None = None,
) -> dict[RetrievalStrategy, Retriever]:
    """Build the four interchangeable strategies over one store and embedder."""

    config = config or RetrievalConfig()
    vector = VectorRetriever(store, embedder)
    keyword = KeywordRetriever(store, embedder.dimension, config)
    return {
        RetrievalStrategy.VECTOR: vector,
        RetrievalStrategy.KEYWORD: keyword,
        RetrievalStrategy.HYBRID: HybridRetriever(vector, keyword, config),
        RetrievalStrategy.SCHEMA_FILTERED: SchemaFilteredRetriever(vector),
    }
