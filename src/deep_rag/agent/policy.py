"""Policy step: decides whether another reasoning iteration is worthwhile."""

from __future__ import annotations

import logging
import re

from deep_rag.config import StepConfig
from deep_rag.llm import TextGenerator, complete_text
from deep_rag.workflow.graph import FINISH, POLICY, REWRITER
from deep_rag.workflow.state import NodeResult, PolicyDecision, ReasoningState

logger = logging.getLogger(__name__)

_NUMBER = re.compile(r"[-+]?\d*\.?\d+")

_SYSTEM_PROMPT = """
You are a workflow control expert for a RAG system.

Your task is to decide whether the workflow should continue to the next step or finish.

Decision criteria:
- Continue if: More steps remain and would add valuable information
- Finish if: The original question can be adequately answered with current findings
- Finish if: Additional steps would be redundant or provide diminishing returns

Respond in format:
DECISION: continue OR finish
REASONING: [clear explanation]
CONFIDENCE: [0.0-1.0]
""".strip()


def build_policy_prompt(state: ReasoningState) -> str:
    lines = [f"Original question: {state.original_question}", ""]
    if state.plan is not None:
        lines.append(f"Plan: {len(state.plan.steps)} steps total")
        lines.append(f"Completed: {len(state.past_steps)} steps")
        lines.append("")
    lines.append("Progress summary:")
    for position, past in enumerate(state.past_steps, start=1):
        lines.append(f"Step {position}: {past.summary}")
    lines.append("")
    lines.append(
        "Decide: Should the workflow continue to the next step, or is there sufficient "
        "information to answer the original question?"
    )
    lines.append("")
    lines.append("Respond in format:\nDECISION: continue OR finish\nREASONING: [explanation]\nCONFIDENCE: [0.0-1.0]")
    return "\n".join(lines)


def parse_decision(response: str) -> PolicyDecision:
    """Continue with confidence 0.5 unless the response says otherwise."""

    decision = PolicyDecision(should_continue=True, confidence=0.5)
    for raw_line in response.splitlines():
        line = raw_line.strip()
        upper = line.upper()
        if upper.startswith("DECISION:"):
            verdict = upper[len("DECISION:") :]
            if "FINISH" in verdict or "STOP" in verdict:
                decision.should_continue = False
        elif upper.startswith("REASONING:"):
            decision.reasoning = line[len("REASONING:") :].strip()
        elif upper.startswith("CONFIDENCE:"):
            match = _NUMBER.search(line[len("CONFIDENCE:") :])
            if match is not None:
                confidence = float(match.group())
                if 0.0 <= confidence <= 1.0:
                    decision.confidence = confidence
        elif upper.startswith("SUGGESTED ACTION:"):
            decision.suggested_action = line[len("SUGGESTED ACTION:") :].strip()
    return decision


class Policy:
    name = POLICY

    def __init__(self, generator: TextGenerator, config: StepConfig | None = None) -> None:
        self.generator = generator
        self.config = config or StepConfig(temperature=0.3, max_tokens=500)

    def decide(self, state: ReasoningState) -> PolicyDecision:
        if state.is_complete():
            return PolicyDecision(
                should_continue=False, reasoning="All plan steps completed", confidence=1.0
            )
        if state.has_reached_max_iterations():
            return PolicyDecision(
                should_continue=False, reasoning="Maximum iteration limit reached", confidence=1.0
            )
        response = complete_text(
            self.generator,
            _SYSTEM_PROMPT,
            build_policy_prompt(state),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        return parse_decision(response)

    def execute(self, state: ReasoningState) -> NodeResult:
        decision = self.decide(state)
        state.last_decision = decision
        state.should_continue = decision.should_continue
        logger.debug(
            "Policy decision: %s (%.2f) %s",
            "continue" if decision.should_continue else "finish",
            decision.confidence,
            decision.reasoning,
        )
        return NodeResult(state=state, next_node=REWRITER if decision.should_continue else FINISH)
