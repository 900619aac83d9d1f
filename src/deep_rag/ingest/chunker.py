"""Schema-guided chunking with document-relative offsets."""

from __future__ import annotations

import logging
import re
from typing import Any

from deep_rag.config import ChunkingConfig
from deep_rag.schema.metadata import MetadataBuilder
from deep_rag.schema.types import DocumentSchema
from deep_rag.types import DocumentChunk

logger = logging.getLogger(__name__)

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")

SECTION_BASED = "section_based"
HIERARCHICAL = "hierarchical"
SEMANTIC = "semantic"
SLIDING_WINDOW = "sliding_window"


class SchemaChunker:
    """Splits a document according to its schema's recommended strategy.

    - `section_based` / `hierarchical`: one chunk per section offset span;
      sections longer than `max_section_size` are windowed.
    - `semantic`: paragraphs packed up to `chunk_size`.
    - `sliding_window` (also the fallback for unknown strategies and schemas
      without usable sections): fixed-size windows with overlap that never
      cut through a word.

    Chunk text is always `content[start_pos:end_pos]`.
    """

    def __init__(self, config: ChunkingConfig | None = None) -> None:
        self.config = config or ChunkingConfig()
        if self.config.chunk_overlap >= self.config.chunk_size:
            raise ValueError("chunk_overlap must be less than chunk_size")

    def chunk_document(
        self,
        doc_id: str,
        content: str,
        schema: DocumentSchema,
        metadata: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        if schema.doc_id != doc_id:
            schema = schema.model_copy(update={"doc_id": doc_id})
        strategy = schema.chunking_strategy or SLIDING_WINDOW

        spans: list[tuple[int, int]] = []
        method = strategy
        if strategy in (SECTION_BASED, HIERARCHICAL):
            spans = self._section_spans(content, schema)
        elif strategy == SEMANTIC:
            spans = self._paragraph_spans(content)
        if not spans:
            method = SLIDING_WINDOW
            spans = self._windows(content, 0, len(content))

        builder = MetadataBuilder(schema)
        chunks: list[DocumentChunk] = []
        for index, (start, end) in enumerate(spans):
            chunk_metadata = dict(metadata or {})
            chunk_metadata.update(builder.build_chunk_metadata(index, start, end, method).to_store_metadata())
            chunks.append(
                DocumentChunk(
                    chunk_id=f"{doc_id}-chunk-{index:04d}",
                    doc_id=doc_id,
                    index=index,
                    text=content[start:end],
                    start_pos=start,
                    end_pos=end,
                    metadata=chunk_metadata,
                )
            )
        logger.debug("Chunked %s into %d chunks (%s)", doc_id, len(chunks), method)
        return chunks

    def _section_spans(self, content: str, schema: DocumentSchema) -> list[tuple[int, int]]:
        length = len(content)
        sections = sorted(
            (
                section
                for section in schema.sections
                if 0 <= section.start_pos < section.end_pos and section.start_pos < length
            ),
            key=lambda section: (section.start_pos, section.level),
        )
        spans: list[tuple[int, int]] = []
        for section in sections:
            start, end = section.start_pos, min(section.end_pos, length)
            if end - start > self.config.max_section_size:
                spans.extend(self._windows(content, start, end))
                continue
            trimmed = _trim(content, start, end)
            if trimmed is not None:
                spans.append(trimmed)
        return spans

    def _paragraph_spans(self, content: str) -> list[tuple[int, int]]:
        paragraphs: list[tuple[int, int]] = []
        cursor = 0
        for match in _PARAGRAPH_BREAK.finditer(content):
            trimmed = _trim(content, cursor, match.start())
            if trimmed is not None:
                paragraphs.append(trimmed)
            cursor = match.end()
        trimmed = _trim(content, cursor, len(content))
        if trimmed is not None:
            paragraphs.append(trimmed)

        spans: list[tuple[int, int]] = []
        current: tuple[int, int] | None = None
        for start, end in paragraphs:
            if end - start > self.config.chunk_size:
                if current is not None:
                    spans.append(current)
                    current = None
                spans.extend(self._windows(content, start, end))
            elif current is None:
                current = (start, end)
            elif end - current[0] <= self.config.chunk_size:
                current = (current[0], end)
            else:
                spans.append(current)
                current = (start, end)
        if current is not None:
            spans.append(current)
        return spans

    def _windows(self, content: str, span_start: int, span_end: int) -> list[tuple[int, int]]:
        size = self.config.chunk_size
        overlap = self.config.chunk_overlap
        spans: list[tuple[int, int]] = []

        start = _skip_space(content, span_start, span_end)
        while start < span_end:
            end = min(start + size, span_end)
            if end < span_end:
                end = _last_break(content, start, end)
            trimmed = _trim(content, start, end)
            if trimmed is not None:
                spans.append(trimmed)
            if end >= span_end:
                break

            next_start = max(end - overlap, start + 1)
            while next_start < end and not content[next_start - 1].isspace():
                next_start += 1
            start = _skip_space(content, next_start, span_end)
        return spans


def _skip_space(content: str, start: int, limit: int) -> int:
    while start < limit and content[start].isspace():
        start += 1
    return start


def _last_break(content: str, start: int, end: int) -> int:
    """Move `end` back to the last whitespace after `start`, if there is one."""

    if content[end].isspace() or content[end - 1].isspace():
        return end
    for index in range(end - 1, start, -1):
        if content[index].isspace():
            return index
    return end


def _trim(content: str, start: int, end: int) -> tuple[int, int] | None:
    start = _skip_space(content, start, end)
    while end > start and content[end - 1].isspace():
        end -= 1
    if end <= start:
        return None
    return start, end
