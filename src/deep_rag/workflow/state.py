"""Reasoning state threaded through the workflow graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from deep_rag.retrieval.base import RetrievalStrategy
from deep_rag.retrieval.schema_filtered import SchemaFilters
from deep_rag.schema.types import DocumentSchema
from deep_rag.types import RetrievedDocument

DEFAULT_MAX_ITERATIONS = 10


@dataclass(slots=True)
class PlanStep:
    index: int
    sub_question: str
    tool_type: str = "doc_search"
    schema_hint: str = ""
    expected_outputs: list[str] = field(default_factory=list)
    dependencies: list[int] = field(default_factory=list)


@dataclass(slots=True)
class Plan:
    steps: list[PlanStep] = field(default_factory=list)
    reasoning: str = ""


@dataclass(slots=True)
class PastStep:
    step: PlanStep
    retrieved_docs: list[RetrievedDocument] = field(default_factory=list)
    summary: str = ""
    key_findings: list[str] = field(default_factory=list)
    execution_time_ms: float = 0.0


@dataclass(slots=True)
class RetrievalContext:
    query: str
    strategy: RetrievalStrategy = RetrievalStrategy.HYBRID
    top_k: int = 10
    schema_filters: SchemaFilters | None = None


@dataclass(slots=True)
class PolicyDecision:
    should_continue: bool = True
    reasoning: str = ""
    confidence: float = 0.5
    suggested_action: str = ""


@dataclass(slots=True)
class ReasoningState:
    """Mutable state owned by exactly one run; each node hands it to the next.

    `current_step_index` never exceeds the plan length, and the plan is
    complete exactly when the cursor reaches that length.
    """

    original_question: str
    plan: Plan | None = None
    current_step_index: int = 0
    past_steps: list[PastStep] = field(default_factory=list)
    max_iterations: int = DEFAULT_MAX_ITERATIONS

    current_query: str = ""
    current_strategy: RetrievalStrategy | None = None
    step_started_at: float | None = None
    retrieved_docs: list[RetrievedDocument] = field(default_factory=list)
    reranked_docs: list[RetrievedDocument] = field(default_factory=list)
    synthesized_context: str = ""
    final_answer: str = ""
    trace_id: str = ""

    relevant_schemas: dict[str, DocumentSchema] = field(default_factory=dict)
    active_filters: SchemaFilters | None = None

    last_decision: PolicyDecision | None = None
    should_continue: bool = True
    error: Exception | None = None

    def add_past_step(self, step: PastStep) -> None:
        self.past_steps.append(step)

    def increment_step(self) -> None:
        if self.plan is not None and self.current_step_index < len(self.plan.steps):
            self.current_step_index += 1

    def current_step(self) -> PlanStep | None:
        if self.plan is None or self.current_step_index >= len(self.plan.steps):
            return None
        return self.plan.steps[self.current_step_index]

    def is_complete(self) -> bool:
        if self.plan is None:
            return False
        return self.current_step_index >= len(self.plan.steps)

    def has_reached_max_iterations(self) -> bool:
        return len(self.past_steps) >= self.max_iterations

    def retrieval_context(self) -> RetrievalContext | None:
        step = self.current_step()
        if step is None:
            return None
        return RetrievalContext(
            query=self.current_query or step.sub_question,
            strategy=self.current_strategy or RetrievalStrategy.HYBRID,
            schema_filters=self.active_filters,
        )


@dataclass(slots=True)
class NodeResult:
    """Node output. A non-empty `next_node` overrides the graph's edges."""

    state: ReasoningState | None
    next_node: str = ""


class Node(Protocol):
    name: str

    def execute(self, state: ReasoningState) -> NodeResult | None:
        """Run this node against the state and return the updated state."""
