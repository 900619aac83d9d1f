"""Distiller step: synthesizes reranked documents into one context."""

from __future__ import annotations

from deep_rag.config import StepConfig
from deep_rag.llm import TextGenerator, complete_text
from deep_rag.types import RetrievedDocument
from deep_rag.workflow.graph import DISTILLER
from deep_rag.workflow.state import NodeResult, ReasoningState

_SYSTEM_PROMPT = """
You are an information synthesis expert for a RAG system.

Your task is to distill retrieved document chunks into coherent, comprehensive context.

Guidelines:
- Synthesize information from all provided documents
- Preserve key facts, findings, and insights
- Remove redundancy and irrelevant details
- Maintain accuracy - do not add information not present in the documents

Provide only the synthesized context without meta-commentary.
""".strip()


def build_distillation_prompt(query: str, documents: list[RetrievedDocument]) -> str:
    parts = [f"Query: {query}\n", "Retrieved documents:\n"]
    for position, document in enumerate(documents, start=1):
        parts.append(f"--- Document {position} (Score: {document.score:.3f}) ---\n{document.content}\n")
    parts.append(
        "Synthesize the above documents into a coherent, comprehensive summary that "
        "addresses the query. Include all relevant information while removing redundancy."
    )
    return "\n".join(parts)


class Distiller:
    name = DISTILLER

    def __init__(self, generator: TextGenerator, config: StepConfig | None = None) -> None:
        self.generator = generator
        self.config = config or StepConfig(temperature=0.5, max_tokens=1500)

    def distill(self, query: str, documents: list[RetrievedDocument]) -> str:
        if not documents:
            return ""
        response = complete_text(
            self.generator,
            _SYSTEM_PROMPT,
            build_distillation_prompt(query, documents),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return response.strip()

    def execute(self, state: ReasoningState) -> NodeResult:
        step = state.current_step()
        query = step.sub_question if step is not None else state.current_query
        state.synthesized_context = self.distill(query, state.reranked_docs)
        return NodeResult(state=state)
