"""High-level deep-thinking agent wiring steps, graph and executor."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping

from deep_rag.agent.distiller import Distiller
from deep_rag.agent.planner import Planner
from deep_rag.agent.policy import Policy
from deep_rag.agent.reflector import Reflector
from deep_rag.agent.registry import StepRegistry, StepSpec
from deep_rag.agent.reranker import Reranker
from deep_rag.agent.retriever import RetrieverStep
from deep_rag.agent.rewriter import Rewriter
from deep_rag.agent.supervisor import Supervisor
from deep_rag.config import AgentConfig, RetrievalConfig
from deep_rag.llm import TextGenerator
from deep_rag.obs.tracing import Timer, TraceStore
from deep_rag.retrieval.base import RetrievalStrategy, Retriever
from deep_rag.retrieval.schema_filtered import SchemaFilters
from deep_rag.schema.types import DocumentSchema
from deep_rag.types import StepTrace
from deep_rag.workflow.executor import Executor
from deep_rag.workflow.graph import build_deep_thinking_graph
from deep_rag.workflow.state import ReasoningState

logger = logging.getLogger(__name__)


def build_step_registry(
    generator: TextGenerator,
    strategies: Mapping[RetrievalStrategy, Retriever],
    config: AgentConfig | None = None,
    retrieval_config: RetrievalConfig | None = None,
) -> StepRegistry:
    config = config or AgentConfig()
    retrieval_config = retrieval_config or RetrievalConfig()

    registry = StepRegistry()
    for description, step in (
        ("Decompose the question into plan steps", Planner(generator, config.planner)),
        ("Rewrite the current sub-question for search", Rewriter(generator, config.rewriter)),
        ("Select a retrieval strategy", Supervisor(generator, config.supervisor)),
        ("Search with the selected strategy", RetrieverStep(strategies)),
        ("Keep the best-scoring documents", Reranker(retrieval_config.reranker_top_n)),
        ("Synthesize reranked documents", Distiller(generator, config.distiller)),
        ("Summarize the step and advance the plan", Reflector(generator, config.reflector)),
        ("Decide whether to continue", Policy(generator, config.policy)),
    ):
        registry.register(StepSpec(name=step.name, description=description, step=step))
    return registry


class DeepThinkingAgent:
    """Answers multi-hop questions by iterating plan steps over retrieval.

    One agent runs one query at a time; concurrent callers are serialized.
    """

    def __init__(
        self,
        generator: TextGenerator,
        strategies: Mapping[RetrievalStrategy, Retriever],
        *,
        config: AgentConfig | None = None,
        retrieval_config: RetrievalConfig | None = None,
        trace_store: TraceStore | None = None,
    ) -> None:
        self.config = config or AgentConfig()
        self.registry = build_step_registry(generator, strategies, self.config, retrieval_config)
        self.graph = build_deep_thinking_graph(self.registry.as_nodes())
        self.executor = Executor(
            self.graph,
            timeout_seconds=self.config.timeout_seconds,
            iteration_limit=self.config.graph_iteration_limit,
        )
        self.trace_store = trace_store
        self._lock = threading.Lock()

    def run(
        self,
        question: str,
        max_iterations: int | None = None,
        timeout: float | None = None,
        *,
        relevant_schemas: Mapping[str, DocumentSchema] | None = None,
        filters: SchemaFilters | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ReasoningState:
        state = ReasoningState(
            original_question=question,
            max_iterations=max_iterations or self.config.max_iterations,
            relevant_schemas=dict(relevant_schemas or {}),
            active_filters=filters,
        )
        steps: list[StepTrace] = []

        logger.info("Run started: %s", question)
        with self._lock:
            self.registry.set_observer(steps.append)
            try:
                with Timer() as timer:
                    state = self.executor.execute(
                        state, timeout_seconds=timeout, cancel_event=cancel_event
                    )
            except Exception as exc:
                self._record(question, "", steps, state, timer.elapsed(), error=str(exc))
                raise
            finally:
                self.registry.set_observer(None)

        state.final_answer = compose_answer(state)
        state.trace_id = self._record(question, state.final_answer, steps, state, timer.elapsed_ms)
        logger.info(
            "Run finished: %d steps in %.1f ms", len(state.past_steps), timer.elapsed_ms
        )
        return state

    def _record(
        self,
        question: str,
        answer: str,
        steps: list[StepTrace],
        state: ReasoningState,
        latency_ms: float,
        error: str | None = None,
    ) -> str:
        if self.trace_store is None:
            return ""
        record = self.trace_store.create_record(
            question=question,
            answer=answer,
            steps=list(steps),
            iterations=len(state.past_steps),
            latency_ms=latency_ms,
            error=error,
        )
        return record.trace_id


def compose_answer(state: ReasoningState) -> str:
    """Join past-step summaries and key findings into the final answer."""

    if not state.past_steps:
        return "No findings were gathered for this question."
    sections: list[str] = []
    for position, past in enumerate(state.past_steps, start=1):
        lines = [f"{position}. {past.step.sub_question}", past.summary]
        lines.extend(f"- {finding}" for finding in past.key_findings)
        sections.append("\n".join(line for line in lines if line))
    return "\n\n".join(sections)
