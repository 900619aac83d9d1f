"""Reasoning step registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Callable
from time import perf_counter
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from deep_rag.types import StepTrace
from deep_rag.workflow.state import Node, NodeResult, ReasoningState


class StepSpec(BaseModel):
    """Declarative step specification for registration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    description: str = ""
    step: Any
    tags: list[str] = Field(default_factory=list)

    def invoke(self, state: ReasoningState) -> NodeResult | None:
        return self.step.execute(state)


class StepRegistry:
    """Plugin table of named reasoning steps; exports workflow nodes."""

    def __init__(self) -> None:
        self._steps: dict[str, StepSpec] = {}
        self._observer: Callable[[StepTrace], None] | None = None

    def register(self, spec: StepSpec) -> None:
        if spec.name in self._steps:
            raise ValueError(f"Step already registered: {spec.name}")
        self._steps[spec.name] = spec

    def set_observer(self, observer: Callable[[StepTrace], None] | None) -> None:
        """Set an optional callback invoked after each step execution."""
        self._observer = observer

    def execute(self, name: str, state: ReasoningState) -> NodeResult | None:
        spec = self._steps.get(name)
        if spec is None:
            raise KeyError(f"Unknown step: {name}")
        return self._execute_spec(spec, state)

    def as_nodes(self) -> dict[str, Node]:
        return {name: _RegisteredNode(self, name) for name in self._steps}

    def specs(self) -> list[StepSpec]:
        return list(self._steps.values())

    def _execute_spec(self, spec: StepSpec, state: ReasoningState) -> NodeResult | None:
        start = perf_counter()
        failed = True
        result: NodeResult | None = None
        try:
            result = spec.invoke(state)
            failed = False
            return result
        finally:
            if self._observer is not None:
                self._observer(
                    StepTrace(
                        name=spec.name,
                        latency_ms=(perf_counter() - start) * 1000.0,
                        next_node=(result.next_node or None) if result is not None else None,
                        failed=failed,
                    )
                )


class _RegisteredNode:
    def __init__(self, registry: StepRegistry, name: str) -> None:
        self._registry = registry
        self.name = name

    def execute(self, state: ReasoningState) -> NodeResult | None:
        return self._registry.execute(self.name, state)
