import pytest

from deep_rag.agent.planner import Planner, decode_dependencies, parse_plan
from deep_rag.errors import GenerationError
from deep_rag.workflow.state import ReasoningState


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ([0, 1], [0, 1]),
        (["0", 2.0, "x", True], [0, 2]),
        ({"indices": [1, 2]}, [1, 2]),
        ({"0": [], "1": [0], "2": [0, 1]}, [0, 1]),
        ("[0, 1]", [0, 1]),
        ("  [2] ", [2]),
        ("[not json]", []),
        ("none", []),
        ("", []),
        (None, []),
        (3, []),
    ],
)
def test_decode_dependencies(raw: object, expected: list[int]) -> None:
    assert decode_dependencies(raw) == expected


def test_parse_plan_from_wrapped_json() -> None:
    response = (
        "Here is the plan:\n"
        '{"steps": [{"sub_question": "First?", "dependencies": {"indices": []}},'
        ' {"index": 5, "sub_question": "Second?", "tool_type": null, "dependencies": "[0]"}],'
        ' "reasoning": "two hops"}'
    )

    plan = parse_plan(response)

    assert [step.index for step in plan.steps] == [0, 5]
    assert plan.steps[1].tool_type == "doc_search"
    assert plan.steps[1].dependencies == [0]
    assert plan.reasoning == "two hops"


@pytest.mark.parametrize("response", ["I cannot help with that.", '{"steps": [1, 2'], ids=["prose", "truncated"])
def test_parse_plan_rejects_non_json(response: str) -> None:
    with pytest.raises(GenerationError):
        parse_plan(response)


def test_planner_node_sets_plan(generator) -> None:
    state = ReasoningState(original_question="How is customer data protected?", current_step_index=4)

    result = Planner(generator).execute(state)

    assert result.next_node == ""
    assert len(state.plan.steps) == 2
    assert state.current_step_index == 0
    assert state.plan.steps[1].dependencies == [0]
    assert "How is customer data protected?" in generator.calls[0][1]
