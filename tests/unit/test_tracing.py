import pytest

from deep_rag.obs.tracing import Timer, TraceStore
from deep_rag.types import StepTrace


def _record(store: TraceStore, question: str):
    return store.create_record(
        question=question,
        answer="answer",
        steps=[StepTrace(name="planner", latency_ms=1.0)],
        iterations=1,
        latency_ms=2.0,
    )


def test_records_are_retrievable_by_id() -> None:
    store = TraceStore()
    record = _record(store, "q1")

    assert store.get(record.trace_id) is record
    assert record.timestamp_utc.endswith("+00:00")
    with pytest.raises(KeyError):
        store.get("missing")


def test_oldest_records_are_evicted() -> None:
    store = TraceStore(max_records=2)
    first = _record(store, "q1")
    _record(store, "q2")
    _record(store, "q3")

    assert len(store) == 2
    assert [r.question for r in store.list_recent()] == ["q2", "q3"]
    with pytest.raises(KeyError):
        store.get(first.trace_id)


def test_timer_measures_block() -> None:
    with Timer() as timer:
        assert timer.elapsed() >= 0.0

    assert timer.elapsed_ms >= 0.0


def test_list_recent_with_non_positive_limit_is_empty() -> None:
    store = TraceStore()
    _record(store, "q1")
    _record(store, "q2")

    assert store.list_recent(0) == []
    assert store.list_recent(-1) == []
    assert [r.question for r in store.list_recent(1)] == ["q2"]
