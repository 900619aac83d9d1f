"""Planner step: decomposes the question into an ordered plan."""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from deep_rag.config import StepConfig
from deep_rag.errors import GenerationError
from deep_rag.llm import TextGenerator, complete_text
from deep_rag.schema.analyzer import extract_json_object
from deep_rag.workflow.graph import PLANNER
from deep_rag.workflow.state import NodeResult, Plan, PlanStep, ReasoningState

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are an expert query planner for a deep-thinking RAG system.

Your task is to decompose complex, multi-hop questions into sequential execution plans.

Guidelines:
- Create 2-5 steps that build on each other
- Each step should have a clear sub-question
- Specify the appropriate tool: doc_search (internal documents), web_search (external), or schema_filter (targeted search)
- Provide schema hints to guide retrieval (e.g., "focus on methodology sections")
- List expected outputs to clarify what each step should find
- Indicate dependencies if a step requires information from previous steps

Always respond with valid JSON matching the requested format.
""".strip()

_PLAN_TEMPLATE = """
Decompose the following question into a sequential execution plan.

Question: {question}

Create a plan with 2-5 steps that can be executed independently. Each step should:
1. Answer a specific sub-question
2. Specify which tool to use (doc_search, web_search, or schema_filter)
3. Provide hints for schema-aware retrieval if applicable

Respond with ONLY valid JSON. "dependencies" must be an array of step indices, [] when there are none.

{{
  "steps": [
    {{
      "index": 0,
      "sub_question": "What specific information does this step need?",
      "tool_type": "doc_search",
      "schema_hint": "focus on specific document sections",
      "expected_outputs": ["expected finding 1", "expected finding 2"],
      "dependencies": []
    }}
  ],
  "reasoning": "Explain why this plan will effectively answer the question"
}}
""".strip()


def decode_dependencies(raw: Any) -> list[int]:
    """Decode a plan step's `dependencies` field into step indices.

    Generated plans are not consistent about this field's shape:

    - list: integers are kept and numeric strings parsed; other items dropped
    - dict: its `indices` list when present, otherwise the union of every
      list-valued entry (e.g. `{"0": [], "1": [0]}`)
    - str: a quoted JSON array such as `"[0, 1]"`
    - None, empty, or any other shape: `[]`
    """

    if raw is None:
        return []
    if isinstance(raw, list):
        return _indices(raw)
    if isinstance(raw, dict):
        if isinstance(raw.get("indices"), list):
            return _indices(raw["indices"])
        merged: list[int] = []
        for value in raw.values():
            if isinstance(value, list):
                merged.extend(index for index in _indices(value) if index not in merged)
        return merged
    if isinstance(raw, str):
        text = raw.strip()
        if not (text.startswith("[") and text.endswith("]")):
            return []
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Ignoring unparsable dependencies %r", raw)
            return []
        return _indices(decoded) if isinstance(decoded, list) else []
    logger.warning("Ignoring dependencies of unsupported type %s", type(raw).__name__)
    return []


def _indices(items: list[Any]) -> list[int]:
    indices: list[int] = []
    for item in items:
        if isinstance(item, bool):
            continue
        if isinstance(item, int):
            indices.append(item)
        elif isinstance(item, float) and item.is_integer():
            indices.append(int(item))
        elif isinstance(item, str) and item.strip().lstrip("-").isdigit():
            indices.append(int(item.strip()))
    return indices


class _StepPayload(BaseModel):
    index: int | None = None
    sub_question: str = ""
    tool_type: str = "doc_search"
    schema_hint: str = ""
    expected_outputs: list[str] = Field(default_factory=list)
    dependencies: list[int] = Field(default_factory=list)

    @field_validator("dependencies", mode="before")
    @classmethod
    def decode(cls, value: Any) -> list[int]:
        return decode_dependencies(value)

    @field_validator("sub_question", "tool_type", "schema_hint", mode="before")
    @classmethod
    def coerce_null_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("expected_outputs", mode="before")
    @classmethod
    def coerce_null_list(cls, value: Any) -> Any:
        return [] if value is None else value


class _PlanPayload(BaseModel):
    steps: list[_StepPayload] = Field(default_factory=list)
    reasoning: str = ""

    @field_validator("steps", mode="before")
    @classmethod
    def coerce_null_steps(cls, value: Any) -> Any:
        return [] if value is None else value


def parse_plan(response: str) -> Plan:
    json_text = extract_json_object(response)
    if json_text is None:
        raise GenerationError("no JSON found in plan response")
    try:
        payload = _PlanPayload.model_validate(json.loads(json_text))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise GenerationError(f"failed to parse plan: {exc}") from exc

    return Plan(
        steps=[
            PlanStep(
                index=step.index if step.index is not None else position,
                sub_question=step.sub_question,
                tool_type=step.tool_type or "doc_search",
                schema_hint=step.schema_hint,
                expected_outputs=step.expected_outputs,
                dependencies=step.dependencies,
            )
            for position, step in enumerate(payload.steps)
        ],
        reasoning=payload.reasoning,
    )


class Planner:
    name = PLANNER

    def __init__(self, generator: TextGenerator, config: StepConfig | None = None) -> None:
        self.generator = generator
        self.config = config or StepConfig(temperature=0.7, max_tokens=2000)

    def plan(self, question: str) -> Plan:
        response = complete_text(
            self.generator,
            _SYSTEM_PROMPT,
            _PLAN_TEMPLATE.format(question=question),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return parse_plan(response)

    def execute(self, state: ReasoningState) -> NodeResult:
        state.plan = self.plan(state.original_question)
        state.current_step_index = 0
        logger.info("Planned %d steps for question", len(state.plan.steps))
        return NodeResult(state=state)
