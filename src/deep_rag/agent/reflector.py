"""Reflector step: records what the current step found and advances the plan."""

from __future__ import annotations

import logging
import time

from deep_rag.config import StepConfig
from deep_rag.llm import TextGenerator, complete_text
from deep_rag.workflow.graph import REFLECTOR
from deep_rag.workflow.state import NodeResult, PastStep, PlanStep, ReasoningState

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are a reflection and summarization expert for a RAG system.

Your task is to reflect on completed execution steps and extract key insights.

Always structure your response with:
SUMMARY: [2-3 sentence summary]

KEY FINDINGS:
- [specific finding 1]
- [specific finding 2]
- [specific finding 3]
""".strip()


def build_reflection_prompt(step: PlanStep, synthesized_context: str) -> str:
    expected = ", ".join(step.expected_outputs) or "none specified"
    return (
        "Reflect on the completed execution step and synthesized findings.\n\n"
        f"Step question: {step.sub_question}\n"
        f"Expected outputs: {expected}\n\n"
        f"Synthesized context:\n{synthesized_context or '(no documents were retrieved)'}\n\n"
        "Provide:\n"
        "1. A concise summary (2-3 sentences) of what was found\n"
        "2. A bulleted list of 3-5 key findings\n\n"
        "Format your response as:\n"
        "SUMMARY: [your summary here]\n\n"
        "KEY FINDINGS:\n- [finding 1]\n- [finding 2]\n- [finding 3]"
    )


def parse_reflection(response: str) -> tuple[str, list[str]]:
    """Return `(summary, key_findings)`; the whole response is the fallback summary."""

    summary = ""
    findings: list[str] = []
    in_findings = False
    for raw_line in response.splitlines():
        line = raw_line.strip()
        upper = line.upper()
        if upper.startswith("SUMMARY:"):
            summary = line[len("SUMMARY:") :].strip()
            continue
        if "KEY FINDINGS" in upper:
            in_findings = True
            continue
        if not in_findings:
            continue
        if line.startswith("-"):
            finding = line[1:].strip()
            if finding:
                findings.append(finding)
        elif line and not summary:
            summary = line

    if not summary:
        summary = response.strip()
    return summary, findings


class Reflector:
    name = REFLECTOR

    def __init__(self, generator: TextGenerator, config: StepConfig | None = None) -> None:
        self.generator = generator
        self.config = config or StepConfig(temperature=0.4, max_tokens=800)

    def reflect(self, step: PlanStep, synthesized_context: str) -> tuple[str, list[str]]:
        response = complete_text(
            self.generator,
            _SYSTEM_PROMPT,
            build_reflection_prompt(step, synthesized_context),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return parse_reflection(response)

    def execute(self, state: ReasoningState) -> NodeResult:
        step = state.current_step()
        if step is None:
            raise ValueError("no current step available")

        summary, findings = self.reflect(step, state.synthesized_context)
        elapsed_ms = 0.0
        if state.step_started_at is not None:
            elapsed_ms = (time.perf_counter() - state.step_started_at) * 1000.0
        state.add_past_step(
            PastStep(
                step=step,
                retrieved_docs=list(state.reranked_docs),
                summary=summary,
                key_findings=findings,
                execution_time_ms=elapsed_ms,
            )
        )
        state.increment_step()
        logger.debug("Completed step %d with %d findings", step.index, len(findings))
        return NodeResult(state=state)
