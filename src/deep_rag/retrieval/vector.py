"""Semantic vector similarity retrieval."""

from __future__ import annotations

from typing import Any

from deep_rag.errors import DeepRagError, RetrievalError
from deep_rag.ingest.embedder import Embedder
from deep_rag.retrieval.vector_store import VectorStore
from deep_rag.types import RetrievedDocument


class VectorRetriever:
    """Embeds the query as a single-item batch and searches the vector store."""

    name = "vector"

    def __init__(self, store: VectorStore, embedder: Embedder) -> None:
        self.store = store
        self.embedder = embedder

    def search(
        self,
        query: str,
        top_k: int,
        filters: dict[str, Any] | None = None,
    ) -> list[RetrievedDocument]:
        filters = dict(filters or {})
        min_score = float(filters.pop("min_score", 0.0) or 0.0)

        try:
            vectors = self.embedder.embed([query])
        except DeepRagError as exc:
            raise RetrievalError(f"failed to embed query: {exc}") from exc
        if not vectors:
            raise RetrievalError("no embeddings generated")

        try:
            return self.store.search(
                vectors[0],
                top_k,
                metadata_filter=filters or None,
                min_score=min_score,
            )
        except Exception as exc:
            raise RetrievalError(f"vector search failed: {exc}") from exc
