"""Exception hierarchy shared by the orchestration, schema and retrieval layers."""

from __future__ import annotations


class DeepRagError(Exception):
    """Base class for all errors raised by this package."""


class TopologyError(DeepRagError):
    """Raised when a workflow graph is constructed with an invalid shape."""


class WorkflowError(DeepRagError):
    """Base class for errors that abort a reasoning run."""


class NodeExecutionError(WorkflowError):
    """A node failed, or returned no result or no state."""

    def __init__(self, node_name: str, message: str) -> None:
        super().__init__(f"node {node_name} {message}")
        self.node_name = node_name


class WorkflowStateError(WorkflowError):
    """A node returned a state carrying a terminal error."""


class IterationLimitError(WorkflowError):
    """The hard graph iteration ceiling was exceeded (a topology defect)."""


class WorkflowTimeoutError(WorkflowError):
    """The run deadline passed or the run was cancelled."""


class SchemaResolutionError(DeepRagError):
    """No resolution strategy produced a usable document schema."""


class RetrievalError(DeepRagError):
    """Embedding or vector search failed during retrieval."""


class EmbeddingError(DeepRagError):
    """The embedding collaborator could not produce vectors."""


class GenerationError(DeepRagError):
    """The text generation collaborator failed."""
