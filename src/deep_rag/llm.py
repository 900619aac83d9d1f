"""Text generation contract and a LangChain chat-model adapter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from deep_rag.errors import GenerationError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Message:
    role: str  # "system", "user" or "assistant"
    content: str


@dataclass(slots=True)
class CompletionRequest:
    messages: list[Message]
    temperature: float = 0.5
    max_tokens: int = 1000
    top_p: float | None = None
    stop: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UsageStats:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(slots=True)
class CompletionResponse:
    content: str
    finish_reason: str = "stop"
    usage: UsageStats = field(default_factory=UsageStats)
    model: str = ""


class TextGenerator(Protocol):
    """Minimal text generation contract consumed by schema analysis and steps."""

    def complete(self, request: CompletionRequest) -> CompletionResponse:
        """Generate a completion for the ordered role-tagged messages."""


def complete_text(
    generator: TextGenerator,
    system_prompt: str,
    user_prompt: str,
    *,
    temperature: float,
    max_tokens: int,
) -> str:
    """Run a two-message (system + user) completion and return its text."""

    response = generator.complete(
        CompletionRequest(
            messages=[
                Message(role="system", content=system_prompt),
                Message(role="user", content=user_prompt),
            ],
            temperature=temperature,
            max_tokens=max_tokens,
        )
    )
    return response.content


class LangChainGenerator:
    """Adapts a LangChain chat model (e.g. `ChatOpenAI`) to `TextGenerator`.

    Sampling parameters are bound per call so one model instance can serve
    every reasoning role.
    """

    def __init__(self, chat_model: Any) -> None:
        self.chat_model = chat_model

    def complete(self, request: CompletionRequest) -> CompletionResponse:
        messages = [_to_langchain_message(message) for message in request.messages]
        bind_kwargs: dict[str, Any] = {
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        if request.top_p is not None:
            bind_kwargs["top_p"] = request.top_p
        if request.stop:
            bind_kwargs["stop"] = request.stop

        try:
            result = self.chat_model.bind(**bind_kwargs).invoke(messages)
        except Exception as exc:
            raise GenerationError(f"chat model call failed: {exc}") from exc

        metadata = getattr(result, "response_metadata", {}) or {}
        usage_metadata = getattr(result, "usage_metadata", None) or {}
        usage = UsageStats(
            prompt_tokens=int(usage_metadata.get("input_tokens", 0)),
            completion_tokens=int(usage_metadata.get("output_tokens", 0)),
            total_tokens=int(usage_metadata.get("total_tokens", 0)),
        )
        logger.debug("Completion finished: %d total tokens", usage.total_tokens)
        return CompletionResponse(
            content=_content_text(result),
            finish_reason=str(metadata.get("finish_reason", "stop")),
            usage=usage,
            model=str(metadata.get("model_name", "")),
        )


def _to_langchain_message(message: Message) -> BaseMessage:
    if message.role == "system":
        return SystemMessage(content=message.content)
    if message.role == "assistant":
        return AIMessage(content=message.content)
    return HumanMessage(content=message.content)


def _content_text(result: Any) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(str(item["text"]))
            else:
                parts.append(str(item))
        return " ".join(parts).strip()
    return str(content)
