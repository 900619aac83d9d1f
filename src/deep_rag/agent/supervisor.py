"""Supervisor step: picks the retrieval strategy for the current step."""

from __future__ import annotations

import logging

from deep_rag.config import StepConfig
from deep_rag.llm import TextGenerator, complete_text
from deep_rag.retrieval.base import RetrievalStrategy
from deep_rag.workflow.graph import SUPERVISOR
from deep_rag.workflow.state import NodeResult, PlanStep, ReasoningState

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are a retrieval strategy expert for a RAG system.

Your task is to select the most effective retrieval strategy based on query characteristics.

Strategy selection guidelines:
- vector: Use for conceptual, semantic, or exploratory queries
- keyword: Use for exact matches, specific names, identifiers, or factual lookups
- hybrid: Use for balanced queries that benefit from both semantic and keyword matching
- schema_filtered: Use when the query targets specific document sections or types

Return only the strategy name without explanation.
""".strip()


def build_strategy_prompt(query: str, step: PlanStep | None) -> str:
    context = ""
    if step is not None:
        context = f"\nTool type: {step.tool_type}\nSchema hint: {step.schema_hint}"
    return (
        "Select the optimal retrieval strategy for this query.\n\n"
        f"Query: {query}\n{context}\n\n"
        "Available strategies:\n"
        "- vector: Semantic similarity search (best for conceptual queries)\n"
        "- keyword: BM25 keyword search (best for exact terms, names, specific facts)\n"
        "- hybrid: Combination of vector and keyword (best for balanced queries)\n"
        "- schema_filtered: Schema-aware targeted search (best when specific document "
        "sections are needed)\n\n"
        "Return only the strategy name: vector, keyword, hybrid, or schema_filtered"
    )


def parse_strategy(response: str) -> RetrievalStrategy:
    text = response.strip().lower()
    if "hybrid" not in text:
        if "vector" in text:
            return RetrievalStrategy.VECTOR
        if "keyword" in text:
            return RetrievalStrategy.KEYWORD
    if "schema" in text:
        return RetrievalStrategy.SCHEMA_FILTERED
    return RetrievalStrategy.HYBRID


class Supervisor:
    name = SUPERVISOR

    def __init__(self, generator: TextGenerator, config: StepConfig | None = None) -> None:
        self.generator = generator
        self.config = config or StepConfig(temperature=0.3, max_tokens=300)

    def select_strategy(self, query: str, step: PlanStep | None) -> RetrievalStrategy:
        response = complete_text(
            self.generator,
            _SYSTEM_PROMPT,
            build_strategy_prompt(query, step),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return parse_strategy(response)

    def execute(self, state: ReasoningState) -> NodeResult:
        step = state.current_step()
        if step is None:
            raise ValueError("no current step available")
        state.current_strategy = self.select_strategy(step.sub_question, step)
        logger.debug("Step %d strategy: %s", step.index, state.current_strategy.value)
        return NodeResult(state=state)
