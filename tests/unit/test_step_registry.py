import pytest
from pydantic import ValidationError

from deep_rag.agent.registry import StepRegistry, StepSpec
from deep_rag.types import StepTrace
from deep_rag.workflow.state import NodeResult, ReasoningState


class _Step:
    def __init__(self, name: str, next_node: str = "", fail: bool = False) -> None:
        self.name = name
        self.next_node = next_node
        self.fail = fail

    def execute(self, state: ReasoningState) -> NodeResult:
        if self.fail:
            raise RuntimeError("step failed")
        return NodeResult(state, next_node=self.next_node)


def _registry(*steps: _Step) -> StepRegistry:
    registry = StepRegistry()
    for step in steps:
        registry.register(StepSpec(name=step.name, step=step))
    return registry


def test_duplicate_registration_rejected() -> None:
    registry = _registry(_Step("planner"))

    with pytest.raises(ValueError):
        registry.register(StepSpec(name="planner", step=_Step("planner")))


def test_empty_name_rejected() -> None:
    with pytest.raises(ValidationError):
        StepSpec(name="", step=_Step(""))


def test_unknown_step_raises_key_error() -> None:
    with pytest.raises(KeyError):
        StepRegistry().execute("missing", ReasoningState(original_question="q"))


def test_observer_receives_traces() -> None:
    traces: list[StepTrace] = []
    registry = _registry(_Step("policy", next_node="finish"), _Step("broken", fail=True))
    registry.set_observer(traces.append)
    state = ReasoningState(original_question="q")

    registry.execute("policy", state)
    with pytest.raises(RuntimeError):
        registry.execute("broken", state)

    assert [(t.name, t.next_node, t.failed) for t in traces] == [
        ("policy", "finish", False),
        ("broken", None, True),
    ]
    assert all(t.latency_ms >= 0.0 for t in traces)


def test_nodes_delegate_to_registry() -> None:
    registry = _registry(_Step("a"), _Step("b"))
    nodes = registry.as_nodes()
    state = ReasoningState(original_question="q")

    assert set(nodes) == {"a", "b"}
    assert nodes["a"].name == "a"
    assert nodes["a"].execute(state).state is state
    assert [spec.name for spec in registry.specs()] == ["a", "b"]
