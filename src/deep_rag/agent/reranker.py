"""Reranker step: keeps the top-N retrieved documents by score."""

from __future__ import annotations

from deep_rag.types import RetrievedDocument
from deep_rag.workflow.graph import RERANKER
from deep_rag.workflow.state import NodeResult, ReasoningState


def rerank(documents: list[RetrievedDocument], top_n: int) -> list[RetrievedDocument]:
    return sorted(documents, key=lambda document: document.score, reverse=True)[:top_n]


class Reranker:
    name = RERANKER

    def __init__(self, top_n: int = 3) -> None:
        self.top_n = top_n

    def execute(self, state: ReasoningState) -> NodeResult:
        state.reranked_docs = rerank(state.retrieved_docs, self.top_n)
        return NodeResult(state=state)
