"""Directed graph of named workflow nodes."""

from __future__ import annotations

from collections.abc import Mapping

from deep_rag.errors import TopologyError
from deep_rag.workflow.state import Node

FINISH = "finish"

PLANNER = "planner"
REWRITER = "rewriter"
SUPERVISOR = "supervisor"
RETRIEVER = "retriever"
RERANKER = "reranker"
DISTILLER = "distiller"
REFLECTOR = "reflector"
POLICY = "policy"

PIPELINE = (
    PLANNER,
    REWRITER,
    SUPERVISOR,
    RETRIEVER,
    RERANKER,
    DISTILLER,
    REFLECTOR,
    POLICY,
)
LOOP_HEAD = REWRITER


class Graph:
    def __init__(self) -> None:
        self._nodes: dict[str, Node] = {}
        self._edges: dict[str, list[str]] = {}
        self.start: str = ""

    def add_node(self, node: Node | None) -> None:
        if node is None:
            raise TopologyError("node is None")
        name = getattr(node, "name", "")
        if not name:
            raise TopologyError("node name is empty")
        if name in self._nodes:
            raise TopologyError(f"node {name} already exists")
        self._nodes[name] = node

    def add_edge(self, source: str, target: str) -> None:
        if source not in self._nodes:
            raise TopologyError(f"from node {source} does not exist")
        if target not in self._nodes:
            raise TopologyError(f"to node {target} does not exist")
        self._edges.setdefault(source, []).append(target)

    def set_start(self, name: str) -> None:
        if name not in self._nodes:
            raise TopologyError(f"start node {name} does not exist")
        self.start = name

    def get_node(self, name: str) -> Node:
        node = self._nodes.get(name)
        if node is None:
            raise TopologyError(f"node {name} not found")
        return node

    def next_nodes(self, name: str) -> list[str]:
        return list(self._edges.get(name, []))

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes


def build_deep_thinking_graph(nodes: Mapping[str, Node]) -> Graph:
    """Wire the canonical pipeline with one feedback edge from policy to rewriter.

    Policy may also exit to `FINISH`, which the executor handles.
    """

    graph = Graph()
    for name in PIPELINE:
        node = nodes.get(name)
        if node is None:
            raise TopologyError(f"required node {name} not provided")
        graph.add_node(node)

    for source, target in zip(PIPELINE, PIPELINE[1:]):
        graph.add_edge(source, target)
    graph.add_edge(POLICY, REWRITER)
    graph.set_start(PLANNER)
    return graph
