"""Schema overlay for chunks: section, hierarchy and semantic-region metadata."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from deep_rag.schema.analyzer import hierarchy_paths
from deep_rag.schema.types import DocumentSchema, Section


@dataclass(slots=True)
class ChunkMetadata:
    doc_id: str
    chunk_index: int
    start_pos: int
    end_pos: int
    chunking_method: str
    section_id: str = ""
    section_title: str = ""
    section_type: str = ""
    section_level: int = 0
    hierarchy_path: str = ""
    semantic_tags: list[str] = field(default_factory=list)
    semantic_types: list[str] = field(default_factory=list)
    custom_attributes: dict[str, Any] = field(default_factory=dict)

    def to_store_metadata(self) -> dict[str, Any]:
        """Flatten into vector-store metadata; empty fields are omitted."""

        metadata: dict[str, Any] = dict(self.custom_attributes)
        metadata.update(
            {
                "doc_id": self.doc_id,
                "chunk_index": self.chunk_index,
                "start_pos": self.start_pos,
                "end_pos": self.end_pos,
                "chunking_method": self.chunking_method,
            }
        )
        if self.section_id:
            metadata["section_id"] = self.section_id
            metadata["section_title"] = self.section_title
            metadata["section_level"] = self.section_level
        if self.section_type:
            metadata["section_type"] = self.section_type
        if self.hierarchy_path:
            metadata["hierarchy_path"] = self.hierarchy_path
        if self.semantic_tags:
            metadata["semantic_tags"] = list(self.semantic_tags)
        if self.semantic_types:
            metadata["semantic_types"] = list(self.semantic_types)
        return metadata


class MetadataBuilder:
    """Builds chunk metadata against one resolved schema."""

    def __init__(self, schema: DocumentSchema) -> None:
        self.schema = schema
        self._paths = hierarchy_paths(schema.hierarchy)

    def build_chunk_metadata(
        self, chunk_index: int, start: int, end: int, method: str
    ) -> ChunkMetadata:
        metadata = ChunkMetadata(
            doc_id=self.schema.doc_id,
            chunk_index=chunk_index,
            start_pos=start,
            end_pos=end,
            chunking_method=method,
            custom_attributes=dict(self.schema.custom_attributes),
        )

        section = self.find_section(start, end)
        if section is not None:
            metadata.section_id = section.id
            metadata.section_title = section.title
            metadata.section_type = section.type
            metadata.section_level = section.level
            metadata.hierarchy_path = self._paths.get(section.id, "")

        for region in self.schema.semantic_regions:
            if not any(_overlaps(start, end, b.start_pos, b.end_pos) for b in region.boundaries):
                continue
            if region.type and region.type not in metadata.semantic_types:
                metadata.semantic_types.append(region.type)
            for keyword in region.keywords:
                if keyword not in metadata.semantic_tags:
                    metadata.semantic_tags.append(keyword)
        return metadata

    def find_section(self, start: int, end: int) -> Section | None:
        """Prefer the deepest section containing the span, else the first overlapping one."""

        containing = [
            section
            for section in self.schema.sections
            if section.start_pos <= start and end <= section.end_pos and section.end_pos > section.start_pos
        ]
        if containing:
            return max(containing, key=lambda section: section.level)
        for section in self.schema.sections:
            if _overlaps(start, end, section.start_pos, section.end_pos):
                return section
        return None


def _overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    return start < other_end and other_start < end


@dataclass(slots=True)
class IndexEntry:
    schema: DocumentSchema
    chunk_ids: list[str] = field(default_factory=list)


class DocumentIndex:
    """Maps document ids to their resolved schema and stored chunk ids."""

    def __init__(self) -> None:
        self._entries: dict[str, IndexEntry] = {}
        self._lock = threading.Lock()

    def add(self, schema: DocumentSchema, chunk_ids: list[str]) -> None:
        with self._lock:
            self._entries[schema.doc_id] = IndexEntry(schema=schema, chunk_ids=list(chunk_ids))

    def get(self, doc_id: str) -> IndexEntry | None:
        with self._lock:
            return self._entries.get(doc_id)

    def schemas(self) -> dict[str, DocumentSchema]:
        with self._lock:
            return {doc_id: entry.schema for doc_id, entry in self._entries.items()}

    def remove(self, doc_id: str) -> IndexEntry | None:
        with self._lock:
            return self._entries.pop(doc_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
