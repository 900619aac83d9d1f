"""Embedding abstractions and deterministic baseline implementation."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from hashlib import blake2b
from math import sqrt

from deep_rag.errors import EmbeddingError

_WORD = re.compile(r"\w+")


class Embedder(ABC):
    """Embedder interface used by ingest and retrieval components."""

    dimension: int

    @abstractmethod
    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts, one fixed-dimension vector per text."""

    def embed_query(self, text: str) -> list[float]:
        vectors = self.embed([text])
        if not vectors:
            raise EmbeddingError("no embeddings generated")
        return vectors[0]


class HashingEmbedder(Embedder):
    """Signed feature hashing of word tokens into a unit vector.

    Needs no model or network access, so offline ingestion and tests get
    stable vectors. Punctuation is ignored when tokenizing.
    """

    def __init__(self, dimension: int = 256) -> None:
        self.dimension = dimension

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            raise EmbeddingError("cannot embed an empty batch")
        return [self._embed(text) for text in texts]

    def _embed(self, text: str) -> list[float]:
        vector = [0.0] * self.dimension
        for token in _WORD.findall(text.lower()):
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            bucket = int.from_bytes(digest[:4], "little") % self.dimension
            vector[bucket] += -1.0 if digest[4] % 2 else 1.0

        norm = sqrt(sum(value * value for value in vector))
        if norm == 0:
            return vector
        return [value / norm for value in vector]


class LangChainEmbedder(Embedder):
    """Adapts a LangChain `Embeddings` implementation (e.g. `OpenAIEmbeddings`)."""

    def __init__(self, embeddings: object, dimension: int) -> None:
        self._embeddings = embeddings
        self.dimension = dimension

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            raise EmbeddingError("cannot embed an empty batch")
        try:
            vectors = self._embeddings.embed_documents(texts)  # type: ignore[attr-defined]
        except Exception as exc:
            raise EmbeddingError(f"embedding provider failed: {exc}") from exc
        return [list(vector) for vector in vectors]
