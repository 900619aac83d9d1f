"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class RetrievedDocument:
    """A document or chunk as stored in, and returned by, the vector store.

    `score` is strategy specific: cosine similarity for vector search, BM25
    weight for keyword search and the fused reciprocal-rank score for hybrid.
    """

    id: str
    content: str
    embedding: list[float] | None = None
    score: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def with_score(self, score: float) -> "RetrievedDocument":
        return RetrievedDocument(
            id=self.id,
            content=self.content,
            embedding=self.embedding,
            score=score,
            metadata=self.metadata,
        )


@dataclass(slots=True)
class DocumentChunk:
    """A contiguous span of a source document produced by the chunker."""

    chunk_id: str
    doc_id: str
    index: int
    text: str
    start_pos: int
    end_pos: int
    metadata: dict[str, Any]


@dataclass(slots=True)
class StepTrace:
    """Trace record for an executed workflow node."""

    name: str
    latency_ms: float
    next_node: str | None = None
    failed: bool = False
