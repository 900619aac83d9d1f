"""Run tracing and in-memory trace storage."""

from __future__ import annotations

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from deep_rag.types import StepTrace


@dataclass(slots=True)
class RunRecord:
    trace_id: str
    timestamp_utc: str
    question: str
    answer: str
    steps: list[StepTrace]
    iterations: int
    latency_ms: float
    error: str | None = None


class TraceStore:
    """In-memory trace storage for API-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: dict[str, RunRecord] = {}
        self._max_records = max_records
        self._lock = threading.Lock()

    def create_record(
        self,
        *,
        question: str,
        answer: str,
        steps: list[StepTrace],
        iterations: int,
        latency_ms: float,
        error: str | None = None,
    ) -> RunRecord:
        record = RunRecord(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            question=question,
            answer=answer,
            steps=steps,
            iterations=iterations,
            latency_ms=latency_ms,
            error=error,
        )
        with self._lock:
            self._records[record.trace_id] = record
            while len(self._records) > self._max_records:
                del self._records[next(iter(self._records))]
        return record

    def get(self, trace_id: str) -> RunRecord:
        with self._lock:
            record = self._records.get(trace_id)
        if record is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return record

    def list_recent(self, limit: int = 20) -> list[RunRecord]:
        if limit <= 0:
            return []
        with self._lock:
            return list(self._records.values())[-limit:]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class Timer:
    """Context timer; `elapsed()` also works while the block is running."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = self.elapsed()

    def elapsed(self) -> float:
        return (time.perf_counter() - self._start) * 1000.0
