"""Deep-thinking multi-hop RAG package."""

from .config import AgentConfig, ChunkingConfig, RetrievalConfig, SchemaConfig

__all__ = ["AgentConfig", "ChunkingConfig", "RetrievalConfig", "SchemaConfig"]
