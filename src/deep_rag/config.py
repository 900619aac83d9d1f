"""Configuration models for the deep-thinking RAG system."""

from __future__ import annotations

from functools import lru_cache

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ChunkingConfig(BaseModel):
    """Configures schema-guided chunking (character based)."""

    chunk_size: int = Field(default=1000, ge=50)
    chunk_overlap: int = Field(default=150, ge=0)
    max_section_size: int = Field(default=2000, ge=100)


class RetrievalConfig(BaseModel):
    """Configures retrieval strategies and fusion constants."""

    top_k: int = Field(default=10, ge=1)
    reranker_top_n: int = Field(default=3, ge=1)
    rrf_k: int = Field(default=60, ge=1)
    bm25_k1: float = Field(default=1.5, gt=0.0)
    bm25_b: float = Field(default=0.75, ge=0.0, le=1.0)
    keyword_candidate_multiplier: int = Field(default=10, ge=1)
    keyword_min_candidates: int = Field(default=100, ge=1)


class SchemaConfig(BaseModel):
    """Configures layered schema resolution."""

    enable_pattern_matching: bool = True
    enable_llm_analysis: bool = True
    enable_caching: bool = True
    cache_ttl_seconds: float = Field(default=24 * 3600.0, gt=0.0)
    max_content_chars: int = Field(default=8000, ge=100)
    analysis_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    analysis_max_tokens: int = Field(default=3000, ge=1)


class StepConfig(BaseModel):
    """Sampling parameters for one reasoning step."""

    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    max_tokens: int = Field(default=500, ge=1)


class AgentConfig(BaseModel):
    """Configures the reasoning loop and its per-role LLM calls."""

    max_iterations: int = Field(default=10, ge=1)
    timeout_seconds: float = Field(default=300.0, gt=0.0)
    graph_iteration_limit: int = Field(default=100, ge=1)
    planner: StepConfig = Field(default_factory=lambda: StepConfig(temperature=0.7, max_tokens=2000))
    rewriter: StepConfig = Field(default_factory=lambda: StepConfig(temperature=0.5, max_tokens=500))
    supervisor: StepConfig = Field(default_factory=lambda: StepConfig(temperature=0.3, max_tokens=300))
    distiller: StepConfig = Field(default_factory=lambda: StepConfig(temperature=0.5, max_tokens=1500))
    reflector: StepConfig = Field(default_factory=lambda: StepConfig(temperature=0.4, max_tokens=800))
    policy: StepConfig = Field(default_factory=lambda: StepConfig(temperature=0.3, max_tokens=500))


class Settings(BaseSettings):
    """Process-level settings loaded from the environment or a `.env` file."""

    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    embedding_model: str = "text-embedding-3-small"
    embedding_dimension: int = 1536
    patterns_dir: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DEEP_RAG_",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
