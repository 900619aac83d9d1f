"""Prompt formats that the response parsers depend on."""

import pytest

from deep_rag.agent.planner import Planner
from deep_rag.agent.policy import build_policy_prompt
from deep_rag.agent.reflector import build_reflection_prompt
from deep_rag.agent.supervisor import build_strategy_prompt
from deep_rag.config import SchemaConfig
from deep_rag.retrieval.base import RetrievalStrategy
from deep_rag.schema.analyzer import SchemaAnalyzer
from deep_rag.workflow.state import PastStep, Plan, PlanStep, ReasoningState


def test_plan_prompt_requests_json_with_dependency_indices(generator) -> None:
    Planner(generator).plan("Who audits the encryption keys?")

    system, user = generator.calls[0]
    assert "valid JSON" in system
    assert "Question: Who audits the encryption keys?" in user
    for key in ('"steps"', '"sub_question"', '"tool_type"', '"dependencies": []', '"reasoning"'):
        assert key in user


def test_strategy_prompt_lists_every_strategy() -> None:
    prompt = build_strategy_prompt("key rotation", PlanStep(index=0, sub_question="q", schema_hint="security"))

    assert "Schema hint: security" in prompt
    for strategy in RetrievalStrategy:
        assert f"- {strategy.value}:" in prompt


def test_reflection_prompt_matches_parser_markers() -> None:
    prompt = build_reflection_prompt(PlanStep(index=0, sub_question="q", expected_outputs=["interval"]), "")

    assert "Expected outputs: interval" in prompt
    assert "(no documents were retrieved)" in prompt
    assert "SUMMARY:" in prompt
    assert "KEY FINDINGS:" in prompt


def test_policy_prompt_reports_progress() -> None:
    state = ReasoningState(
        original_question="Overall?",
        plan=Plan(steps=[PlanStep(index=0, sub_question="a"), PlanStep(index=1, sub_question="b")]),
        past_steps=[PastStep(step=PlanStep(index=0, sub_question="a"), summary="found a")],
    )

    prompt = build_policy_prompt(state)

    assert "Plan: 2 steps total" in prompt
    assert "Completed: 1 steps" in prompt
    assert "Step 1: found a" in prompt
    assert "DECISION: continue OR finish" in prompt


@pytest.mark.parametrize("length,truncated", [(100, False), (101, True)])
def test_analysis_prompt_truncation(generator, length: int, truncated: bool) -> None:
    prompt = SchemaAnalyzer(generator, SchemaConfig(max_content_chars=100)).build_prompt("y" * length, "html")

    assert "Analyze the following html document" in prompt
    assert ("[Content truncated for analysis...]" in prompt) is truncated
    assert '"semantic_regions"' in prompt
