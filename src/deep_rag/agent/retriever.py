"""Retriever step: dispatches the current query to the selected strategy."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from deep_rag.retrieval.base import RetrievalStrategy, Retriever
from deep_rag.retrieval.schema_filtered import SchemaFilters
from deep_rag.workflow.graph import RETRIEVER
from deep_rag.workflow.state import NodeResult, ReasoningState

logger = logging.getLogger(__name__)


class RetrieverStep:
    name = RETRIEVER

    def __init__(self, strategies: Mapping[RetrievalStrategy, Retriever]) -> None:
        self.strategies = dict(strategies)

    def execute(self, state: ReasoningState) -> NodeResult:
        context = state.retrieval_context()
        if context is None:
            raise ValueError("no retrieval context available")

        retriever = self.strategies.get(context.strategy)
        if retriever is None:
            raise KeyError(f"Unknown retrieval strategy: {context.strategy.value}")

        filters = None
        if context.strategy is RetrievalStrategy.SCHEMA_FILTERED:
            filters = context.schema_filters or _session_filters(state)
        state.retrieved_docs = retriever.search(context.query, context.top_k, filters)
        logger.debug(
            "Retrieved %d documents via %s", len(state.retrieved_docs), context.strategy.value
        )
        return NodeResult(state=state)


def _session_filters(state: ReasoningState) -> SchemaFilters | None:
    """Restrict to the session's relevant documents when no explicit filters exist."""

    if not state.relevant_schemas:
        return None
    return SchemaFilters(document_ids=sorted(state.relevant_schemas))
