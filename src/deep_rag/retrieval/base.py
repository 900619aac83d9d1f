"""Uniform retrieval strategy contract."""

from __future__ import annotations

from enum import Enum
from typing import Any, Protocol

from deep_rag.types import RetrievedDocument


class RetrievalStrategy(str, Enum):
    VECTOR = "vector"
    KEYWORD = "keyword"
    HYBRID = "hybrid"
    SCHEMA_FILTERED = "schema_filtered"


class Retriever(Protocol):
    """Every strategy ranks documents for a query under an optional filter."""

    name: str

    def search(
        self,
        query: str,
        top_k: int,
        filters: Any = None,
    ) -> list[RetrievedDocument]:
        """Return at most `top_k` documents, best first."""
