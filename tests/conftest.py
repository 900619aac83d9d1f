from __future__ import annotations

import json
import threading
from collections.abc import Callable

import pytest

from deep_rag.llm import CompletionRequest, CompletionResponse

PLAN_RESPONSE = json.dumps(
    {
        "steps": [
            {
                "index": 0,
                "sub_question": "What does the policy require for customer data?",
                "tool_type": "doc_search",
                "schema_hint": "security sections",
                "expected_outputs": ["encryption requirement"],
                "dependencies": [],
            },
            {
                "index": 1,
                "sub_question": "How often are encryption keys rotated?",
                "tool_type": "doc_search",
                "schema_hint": "",
                "expected_outputs": ["rotation interval"],
                "dependencies": "[0]",
            },
        ],
        "reasoning": "Find the requirement first, then the key management details.",
    }
)

ANALYSIS_RESPONSE = json.dumps(
    {
        "title": "Security Policy",
        "sections": [
            {"id": "s1", "title": "Data Protection", "level": 1, "start_pos": 0, "end_pos": 60,
             "type": "data_protection", "summary": "", "keywords": ["encryption"]},
            {"id": "s2", "title": "Key Management", "level": 1, "start_pos": 60, "end_pos": 120,
             "type": "key_management", "summary": "", "keywords": None},
        ],
        "semantic_regions": None,
        "custom_attributes": {"document_type": "policy"},
        "chunking_strategy": "section_based",
        "confidence": 0.8,
    }
)

DEFAULT_ROUTES: dict[str, str] = {
    "query planner": PLAN_RESPONSE,
    "query enhancement": "customer data encryption requirements",
    "retrieval strategy": "keyword",
    "information synthesis": "Customer data must be encrypted at rest and keys rotate quarterly.",
    "reflection": "SUMMARY: Customer data must be encrypted at rest.\n\nKEY FINDINGS:\n- Encryption at rest is mandatory\n- Keys rotate quarterly",
    "workflow control": "DECISION: continue\nREASONING: more steps remain\nCONFIDENCE: 0.7",
    "document structure": ANALYSIS_RESPONSE,
}


class ScriptedGenerator:
    """Answers by matching a key against the system prompt."""

    def __init__(self, routes: dict[str, str | Callable[[str], str]] | None = None) -> None:
        self.routes = dict(DEFAULT_ROUTES if routes is None else routes)
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def complete(self, request: CompletionRequest) -> CompletionResponse:
        system = next((m.content for m in request.messages if m.role == "system"), "")
        user = next((m.content for m in request.messages if m.role == "user"), "")
        with self._lock:
            self.calls.append((system, user))
        for key, response in self.routes.items():
            if key in system.lower():
                content = response(user) if callable(response) else response
                return CompletionResponse(content=content)
        return CompletionResponse(content="")

    def count(self, key: str) -> int:
        with self._lock:
            return sum(1 for system, _ in self.calls if key in system.lower())


@pytest.fixture
def generator() -> ScriptedGenerator:
    return ScriptedGenerator()


@pytest.fixture
def make_generator() -> Callable[..., ScriptedGenerator]:
    def _make(routes: dict[str, str | Callable[[str], str]] | None = None, **overrides: str) -> ScriptedGenerator:
        merged: dict[str, str | Callable[[str], str]] = dict(DEFAULT_ROUTES if routes is None else routes)
        merged.update({key.replace("_", " "): value for key, value in overrides.items()})
        return ScriptedGenerator(merged)

    return _make
