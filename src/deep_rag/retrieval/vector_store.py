"""Vector store interface and in-memory implementation."""

from __future__ import annotations

import threading
from math import sqrt
from typing import Any, Protocol

from deep_rag.types import RetrievedDocument


class VectorStore(Protocol):
    """Minimal vector store contract for ingestion and retrieval."""

    def upsert(self, documents: list[RetrievedDocument]) -> list[str]:
        """Insert or update documents (with embeddings); return their ids."""

    def search(
        self,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
        min_score: float = 0.0,
    ) -> list[RetrievedDocument]:
        """Return up to `top_k` documents ranked by similarity to `vector`."""

    def delete(self, ids: list[str]) -> int:
        """Delete documents by id and return how many were removed."""

    def get(self, ids: list[str]) -> list[RetrievedDocument]:
        """Fetch documents by id, skipping unknown ids."""

    def count(self) -> int:
        """Number of stored documents."""


class InMemoryVectorStore:
    """Deterministic vector store used for tests and local prototyping.

    Filter semantics: a list-valued filter entry is an allowlist (the metadata
    value must be one of the entries, or share at least one entry when it is
    itself a list); a scalar entry requires equality (or membership when the
    metadata value is a list).
    """

    def __init__(self) -> None:
        self._store: dict[str, RetrievedDocument] = {}
        self._lock = threading.Lock()

    def upsert(self, documents: list[RetrievedDocument]) -> list[str]:
        with self._lock:
            for document in documents:
                if document.embedding is None:
                    raise ValueError(f"document {document.id} has no embedding")
                self._store[document.id] = document
        return [document.id for document in documents]

    def search(
        self,
        vector: list[float],
        top_k: int,
        metadata_filter: dict[str, Any] | None = None,
        min_score: float = 0.0,
    ) -> list[RetrievedDocument]:
        with self._lock:
            candidates = [
                record
                for record in self._store.values()
                if metadata_matches(record.metadata, metadata_filter)
            ]
        scored = [
            record.with_score(_cosine_similarity(vector, record.embedding or []))
            for record in candidates
        ]
        if min_score > 0:
            scored = [item for item in scored if item.score >= min_score]
        ranked = sorted(scored, key=lambda item: item.score, reverse=True)
        return ranked[:top_k]

    def delete(self, ids: list[str]) -> int:
        removed = 0
        with self._lock:
            for doc_id in ids:
                if self._store.pop(doc_id, None) is not None:
                    removed += 1
        return removed

    def get(self, ids: list[str]) -> list[RetrievedDocument]:
        with self._lock:
            return [self._store[doc_id] for doc_id in ids if doc_id in self._store]

    def count(self) -> int:
        with self._lock:
            return len(self._store)


def metadata_matches(
    metadata: dict[str, Any], metadata_filter: dict[str, Any] | None
) -> bool:
    if not metadata_filter:
        return True
    for key, expected in metadata_filter.items():
        actual = metadata.get(key)
        if actual is None:
            return False
        if isinstance(expected, (list, tuple, set)):
            allowed = set(expected)
            if isinstance(actual, (list, tuple, set)):
                if not allowed.intersection(actual):
                    return False
            elif actual not in allowed:
                return False
        elif isinstance(actual, (list, tuple, set)):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


def _cosine_similarity(a: list[float], b: list[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    numerator = sum(x * y for x, y in zip(a, b, strict=True))
    norm_a = sqrt(sum(x * x for x in a))
    norm_b = sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return numerator / (norm_a * norm_b)
