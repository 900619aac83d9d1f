"""End-to-end ingest pipeline: resolve schema -> chunk -> embed -> upsert."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from deep_rag.ingest.chunker import SchemaChunker
from deep_rag.ingest.embedder import Embedder
from deep_rag.retrieval.vector_store import VectorStore
from deep_rag.schema.metadata import DocumentIndex
from deep_rag.schema.resolver import DocumentInput, SchemaResolver
from deep_rag.schema.types import DocumentSchema, ResolutionResult
from deep_rag.types import DocumentChunk, RetrievedDocument

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class IngestResult:
    doc_id: str
    resolution: ResolutionResult
    chunks: list[DocumentChunk]


@dataclass(slots=True)
class BatchIngestResult:
    ingested: list[IngestResult] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)


class IngestPipeline:
    """Resolves, chunks, embeds and stores documents.

    Every successfully ingested document is recorded in `index` together
    with the ids of its stored chunks.
    """

    def __init__(
        self,
        resolver: SchemaResolver,
        chunker: SchemaChunker,
        embedder: Embedder,
        vector_store: VectorStore,
        index: DocumentIndex | None = None,
    ) -> None:
        self._resolver = resolver
        self._chunker = chunker
        self._embedder = embedder
        self._vector_store = vector_store
        self.index = index or DocumentIndex()

    def ingest(
        self,
        doc_id: str,
        content: str,
        format: str = "text",
        metadata: dict[str, Any] | None = None,
        explicit_schema: DocumentSchema | None = None,
    ) -> IngestResult:
        """Ingest one document and return its resolution and created chunks."""

        resolution = self._resolver.resolve(doc_id, content, format, explicit_schema)
        chunks = self._chunker.chunk_document(doc_id, content, resolution.schema, metadata)
        if chunks:
            embeddings = self._embedder.embed([chunk.text for chunk in chunks])
            self._vector_store.upsert(
                [
                    RetrievedDocument(
                        id=chunk.chunk_id,
                        content=chunk.text,
                        embedding=embedding,
                        metadata=chunk.metadata,
                    )
                    for chunk, embedding in zip(chunks, embeddings, strict=True)
                ]
            )
        chunk_ids = [chunk.chunk_id for chunk in chunks]
        previous = self.index.get(doc_id)
        if previous is not None:
            stale = [chunk_id for chunk_id in previous.chunk_ids if chunk_id not in chunk_ids]
            if stale:
                self._vector_store.delete(stale)
                logger.debug("Removed %d stale chunks of %s", len(stale), doc_id)
        self.index.add(resolution.schema.model_copy(update={"doc_id": doc_id}), chunk_ids)
        logger.info(
            "Ingested %s: %d chunks, schema via %s",
            doc_id,
            len(chunks),
            resolution.strategy.value,
        )
        return IngestResult(doc_id=doc_id, resolution=resolution, chunks=chunks)

    def ingest_many(
        self,
        documents: list[DocumentInput],
        metadata: dict[str, Any] | None = None,
    ) -> BatchIngestResult:
        """Ingest many documents; one failure never aborts its siblings."""

        batch = BatchIngestResult()
        for document in documents:
            try:
                batch.ingested.append(
                    self.ingest(
                        document.doc_id,
                        document.content,
                        document.format,
                        metadata,
                        document.explicit_schema,
                    )
                )
            except Exception as exc:
                logger.warning("Ingestion failed for %s: %s", document.doc_id, exc)
                batch.errors[document.doc_id] = exc
        return batch
