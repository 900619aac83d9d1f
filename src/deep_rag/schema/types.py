"""Document schema records, reusable schema patterns and resolution results.

Schemas and patterns are pydantic models so they round-trip through the JSON
pattern files loaded by `PatternRegistry`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _none_to_dict(value: Any) -> Any:
    return {} if value is None else value


class Section(BaseModel):
    """A logical division of a document; offsets are document-relative."""

    id: str
    title: str = ""
    level: int = 1
    start_pos: int = 0
    end_pos: int = 0
    type: str = ""
    summary: str = ""
    keywords: list[str] = Field(default_factory=list)
    parent_id: str = ""
    child_ids: list[str] = Field(default_factory=list)

    @field_validator("keywords", "child_ids", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class HierarchyNode(BaseModel):
    id: str
    path: str
    title: str = ""
    level: int = 0
    start_pos: int = 0
    end_pos: int = 0
    children: list[HierarchyNode] = Field(default_factory=list)


class HierarchyTree(BaseModel):
    root: HierarchyNode | None = None
    max_depth: int = 0


class Boundary(BaseModel):
    start_pos: int
    end_pos: int


class SemanticRegion(BaseModel):
    """A topic-based region; may span several sections."""

    id: str
    type: str = ""
    description: str = ""
    keywords: list[str] = Field(default_factory=list)
    boundaries: list[Boundary] = Field(default_factory=list)
    confidence: float = 0.0
    related_sections: list[str] = Field(default_factory=list)

    @field_validator("keywords", "boundaries", "related_sections", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_list(value)


class DocumentSchema(BaseModel):
    """Structural description of one document used for chunking and filtering."""

    doc_id: str = ""
    format: str = ""
    title: str = ""
    sections: list[Section] = Field(default_factory=list)
    hierarchy: HierarchyTree | None = None
    semantic_regions: list[SemanticRegion] = Field(default_factory=list)
    custom_attributes: dict[str, Any] = Field(default_factory=dict)
    chunking_strategy: str = ""
    chunk_metadata: dict[str, Any] = Field(default_factory=dict)
    parsing_method: str = ""
    confidence: float = 0.0
    created_at: int = 0

    @field_validator("sections", "semantic_regions", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return _none_to_list(value)

    @field_validator("custom_attributes", "chunk_metadata", mode="before")
    @classmethod
    def coerce_null_dicts(cls, value: Any) -> Any:
        return _none_to_dict(value)


class SchemaPattern(BaseModel):
    """Reusable schema template matched by indicator keywords."""

    name: str = Field(min_length=1)
    description: str = ""
    indicators: list[str] = Field(default_factory=list)
    priority: int = 0
    requires_llm_enhancement: bool = False
    template: DocumentSchema = Field(default_factory=DocumentSchema)


class ResolverStrategy(str, Enum):
    EXPLICIT = "explicit"
    PATTERN = "pattern"
    LLM = "llm"
    HYBRID = "hybrid"


@dataclass(slots=True)
class ResolutionResult:
    schema: DocumentSchema
    strategy: ResolverStrategy
    confidence: float
    pattern_used: str | None = None
    processing_time_ms: float = 0.0
