"""TTL memo of resolved schemas keyed by document id."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from deep_rag.schema.types import ResolutionResult


@dataclass(slots=True)
class _CachedResult:
    result: ResolutionResult
    stored_at: float


class SchemaCache:
    """Thread-safe cache; expiry is checked lazily when an entry is read."""

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, _CachedResult] = {}
        self._lock = threading.Lock()

    def get(self, doc_id: str) -> ResolutionResult | None:
        with self._lock:
            cached = self._entries.get(doc_id)
            if cached is None:
                return None
            if self._clock() - cached.stored_at > self.ttl_seconds:
                del self._entries[doc_id]
                return None
            return cached.result

    def set(self, doc_id: str, result: ResolutionResult) -> None:
        with self._lock:
            self._entries[doc_id] = _CachedResult(result=result, stored_at=self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
