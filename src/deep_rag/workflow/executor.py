"""Runs a workflow graph against one reasoning state."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from deep_rag.errors import (
    IterationLimitError,
    NodeExecutionError,
    TopologyError,
    WorkflowError,
    WorkflowStateError,
    WorkflowTimeoutError,
)
from deep_rag.workflow.graph import FINISH, LOOP_HEAD, Graph
from deep_rag.workflow.state import NodeResult, ReasoningState

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0
GRAPH_ITERATION_LIMIT = 100


class Executor:
    """Walks the graph from its start node until a termination condition holds.

    The run stops normally when the next node is `FINISH`, the state's
    `should_continue` is false, the loop head is about to be re-entered with
    the plan complete, the state's reasoning-iteration limit is reached, or
    the current node has no outgoing edges. Deadline and cancellation are
    polled once per node boundary. `iteration_limit` is a hard guard against
    topology defects; exceeding it raises `IterationLimitError`.
    """

    def __init__(
        self,
        graph: Graph,
        *,
        timeout_seconds: float | None = DEFAULT_TIMEOUT_SECONDS,
        iteration_limit: int = GRAPH_ITERATION_LIMIT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.graph = graph
        self.timeout_seconds = timeout_seconds
        self.iteration_limit = iteration_limit
        self._clock = clock

    def execute(
        self,
        initial_state: ReasoningState | None,
        *,
        timeout_seconds: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> ReasoningState:
        if len(self.graph) == 0:
            raise WorkflowError("graph has no nodes")
        if not self.graph.start:
            raise WorkflowError("no start node defined")
        if initial_state is None:
            raise WorkflowError("initial state is None")

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        deadline = self._clock() + timeout if timeout else None

        state = initial_state
        current = self.graph.start
        iterations = 0

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise WorkflowTimeoutError(f"execution cancelled before node {current}")
            if deadline is not None and self._clock() >= deadline:
                raise WorkflowTimeoutError(f"execution timed out before node {current}")

            iterations += 1
            if iterations > self.iteration_limit:
                raise IterationLimitError(
                    f"exceeded maximum iteration count ({self.iteration_limit})"
                )

            result = self._run_node(current, state)
            state = result.state

            if result.next_node:
                next_node = result.next_node
            else:
                options = self.graph.next_nodes(current)
                if not options:
                    logger.debug("Node %s has no outgoing edges; run complete", current)
                    break
                next_node = options[0] if len(options) == 1 else route_next(state, options)

            logger.debug("Transition %s -> %s", current, next_node)
            if next_node == FINISH or not state.should_continue:
                break
            if next_node == LOOP_HEAD and state.is_complete():
                break
            if state.has_reached_max_iterations():
                break
            current = next_node

        return state

    def execute_step(self, state: ReasoningState, node_name: str) -> ReasoningState:
        """Run a single node outside the main loop."""

        return self._run_node(node_name, state).state

    def _run_node(self, name: str, state: ReasoningState) -> NodeResult:
        try:
            node = self.graph.get_node(name)
        except TopologyError as exc:
            raise NodeExecutionError(name, "is not registered") from exc

        try:
            result = node.execute(state)
        except Exception as exc:
            raise NodeExecutionError(name, f"execution failed: {exc}") from exc

        if result is None:
            raise NodeExecutionError(name, "returned no result")
        if result.state is None:
            raise NodeExecutionError(name, "returned no state")
        if result.state.error is not None:
            raise WorkflowStateError(f"workflow error: {result.state.error}") from result.state.error
        return result


def route_next(state: ReasoningState, options: list[str]) -> str:
    """Built-in multi-edge routing: finish when not continuing, else the first edge."""

    if not state.should_continue or not options:
        return FINISH
    return options[0]
