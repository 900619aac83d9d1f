"""Rewriter step: expands the current sub-question into a retrieval query."""

from __future__ import annotations

import logging
import time

from deep_rag.config import StepConfig
from deep_rag.llm import TextGenerator, complete_text
from deep_rag.workflow.graph import REWRITER
from deep_rag.workflow.state import NodeResult, PastStep, ReasoningState

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 3

_SYSTEM_PROMPT = """
You are a query enhancement specialist for a RAG system.

Your task is to rewrite queries to improve retrieval effectiveness.

Guidelines:
- Expand queries with synonyms, related terms, and domain-specific language
- Add contextual information that helps semantic search
- Keep queries concise but comprehensive
- Preserve the original intent
- Consider execution context from previous steps if provided

Return only the rewritten query without explanations or formatting.
""".strip()


def build_rewrite_prompt(query: str, past_steps: list[PastStep]) -> str:
    if not past_steps:
        return (
            "Rewrite the following query to be more effective for semantic search.\n\n"
            f"Original query: {query}\n\n"
            "Provide an enhanced version that expands key concepts with synonyms and related "
            "terms while keeping the core intent of the original query.\n\n"
            "Return only the rewritten query, nothing else."
        )

    lines = ["Previous findings:"]
    for past in past_steps[-HISTORY_LIMIT:]:
        lines.append(f"- {past.step.sub_question}: {past.summary}")
    history = "\n".join(lines)
    return (
        "Rewrite the following query to be more effective for semantic search, "
        "considering the execution context.\n\n"
        f"Original query: {query}\n\n{history}\n\n"
        "Provide an enhanced version that incorporates relevant context from previous "
        "findings and keeps the core intent of the original query.\n\n"
        "Return only the rewritten query, nothing else."
    )


class Rewriter:
    name = REWRITER

    def __init__(self, generator: TextGenerator, config: StepConfig | None = None) -> None:
        self.generator = generator
        self.config = config or StepConfig(temperature=0.5, max_tokens=500)

    def rewrite(self, query: str, past_steps: list[PastStep]) -> str:
        response = complete_text(
            self.generator,
            _SYSTEM_PROMPT,
            build_rewrite_prompt(query, past_steps),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return response.strip() or query

    def execute(self, state: ReasoningState) -> NodeResult:
        step = state.current_step()
        if step is None:
            raise ValueError("no current step available")

        state.step_started_at = time.perf_counter()
        state.current_query = self.rewrite(step.sub_question, state.past_steps)
        state.current_strategy = None
        state.retrieved_docs = []
        state.reranked_docs = []
        state.synthesized_context = ""
        logger.debug("Step %d query: %s", step.index, state.current_query)
        return NodeResult(state=state)
