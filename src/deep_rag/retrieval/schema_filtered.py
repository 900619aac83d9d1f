"""Schema-aware retrieval: vector search constrained by schema metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from deep_rag.retrieval.vector import VectorRetriever
from deep_rag.types import RetrievedDocument


@dataclass(slots=True)
class SchemaFilters:
    """Constraints derived from the current plan step and relevant schemas."""

    document_ids: list[str] = field(default_factory=list)
    section_types: list[str] = field(default_factory=list)
    hierarchy_paths: list[str] = field(default_factory=list)
    semantic_tags: list[str] = field(default_factory=list)
    custom_attributes: dict[str, Any] = field(default_factory=dict)
    min_relevance_score: float = 0.0

    def is_empty(self) -> bool:
        return not (
            self.document_ids
            or self.section_types
            or self.hierarchy_paths
            or self.semantic_tags
            or self.custom_attributes
            or self.min_relevance_score > 0
        )


def build_metadata_filter(schema_filters: SchemaFilters | None) -> dict[str, Any] | None:
    """Translate schema filters into vector-store metadata predicates."""

    if schema_filters is None:
        return None

    filters: dict[str, Any] = {}
    if schema_filters.document_ids:
        filters["doc_id"] = list(schema_filters.document_ids)
    if schema_filters.section_types:
        filters["section_type"] = list(schema_filters.section_types)
    if schema_filters.hierarchy_paths:
        filters["hierarchy_path"] = list(schema_filters.hierarchy_paths)
    if schema_filters.semantic_tags:
        filters["semantic_tags"] = list(schema_filters.semantic_tags)
    if schema_filters.min_relevance_score > 0:
        filters["min_score"] = schema_filters.min_relevance_score
    for key, value in schema_filters.custom_attributes.items():
        filters[key] = value
    return filters


class SchemaFilteredRetriever:
    """Delegates to vector search after adding schema-derived predicates.

    `filters` may be `SchemaFilters` or an already-built metadata dict; `None`
    degrades to an unfiltered vector search.
    """

    name = "schema_filtered"

    def __init__(self, vector_retriever: VectorRetriever) -> None:
        self.vector_retriever = vector_retriever

    def search(
        self,
        query: str,
        top_k: int,
        filters: SchemaFilters | dict[str, Any] | None = None,
    ) -> list[RetrievedDocument]:
        if isinstance(filters, SchemaFilters):
            metadata_filter = build_metadata_filter(filters)
        else:
            metadata_filter = filters
        return self.vector_retriever.search(query, top_k, metadata_filter)
