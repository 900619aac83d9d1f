"""FastAPI entrypoint for ingest, query, search, schema and trace endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from deep_rag.agent.agent import DeepThinkingAgent
from deep_rag.config import (
    AgentConfig,
    ChunkingConfig,
    RetrievalConfig,
    SchemaConfig,
    Settings,
    get_settings,
)
from deep_rag.errors import DeepRagError, SchemaResolutionError, WorkflowTimeoutError
from deep_rag.ingest.chunker import SchemaChunker
from deep_rag.ingest.embedder import Embedder, HashingEmbedder, LangChainEmbedder
from deep_rag.ingest.pipeline import IngestPipeline, IngestResult
from deep_rag.llm import LangChainGenerator, TextGenerator
from deep_rag.obs.tracing import TraceStore
from deep_rag.retrieval.base import RetrievalStrategy
from deep_rag.retrieval.schema_filtered import SchemaFilters
from deep_rag.retrieval.strategies import build_strategies
from deep_rag.retrieval.vector_store import InMemoryVectorStore, VectorStore
from deep_rag.schema.analyzer import SchemaAnalyzer
from deep_rag.schema.registry import PatternRegistry
from deep_rag.schema.resolver import SchemaResolver
from deep_rag.schema.types import DocumentSchema

logger = logging.getLogger(__name__)


def _create_generator(settings: Settings) -> TextGenerator | None:
    if not settings.openai_api_key:
        return None

    from langchain_openai import ChatOpenAI

    return LangChainGenerator(
        ChatOpenAI(model=settings.openai_model, api_key=settings.openai_api_key, temperature=0)
    )


def _create_embedder(settings: Settings) -> Embedder:
    if not settings.openai_api_key:
        return HashingEmbedder()

    from langchain_openai import OpenAIEmbeddings

    return LangChainEmbedder(
        OpenAIEmbeddings(model=settings.embedding_model, api_key=settings.openai_api_key),
        dimension=settings.embedding_dimension,
    )


class IngestRequest(BaseModel):
    doc_id: str = Field(min_length=1)
    content: str = Field(min_length=1)
    format: str = "text"
    metadata: dict[str, Any] = Field(default_factory=dict)
    document_schema: DocumentSchema | None = Field(default=None, alias="schema")


class QueryRequest(BaseModel):
    question: str = Field(min_length=1)
    max_iterations: int | None = Field(default=None, ge=1, le=50)
    timeout_seconds: float | None = Field(default=None, gt=0.0)
    document_ids: list[str] = Field(default_factory=list)
    section_types: list[str] = Field(default_factory=list)


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k: int = Field(default=5, ge=1, le=50)
    strategy: RetrievalStrategy = RetrievalStrategy.HYBRID
    document_ids: list[str] = Field(default_factory=list)
    section_types: list[str] = Field(default_factory=list)
    semantic_tags: list[str] = Field(default_factory=list)
    min_score: float = Field(default=0.0, ge=0.0)


def create_app(
    *,
    settings: Settings | None = None,
    generator: TextGenerator | None = None,
    embedder: Embedder | None = None,
    vector_store: VectorStore | None = None,
    agent_config: AgentConfig | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    generator = generator if generator is not None else _create_generator(settings)
    embedder = embedder or _create_embedder(settings)
    vector_store = vector_store if vector_store is not None else InMemoryVectorStore()
    retrieval_config = RetrievalConfig()

    registry = PatternRegistry()
    registry.register_builtin_patterns()
    if settings.patterns_dir:
        registry.load_directory(settings.patterns_dir)

    schema_config = SchemaConfig()
    analyzer = SchemaAnalyzer(generator, schema_config) if generator is not None else None
    resolver = SchemaResolver(registry, analyzer, config=schema_config)
    pipeline = IngestPipeline(resolver, SchemaChunker(ChunkingConfig()), embedder, vector_store)
    strategies = build_strategies(vector_store, embedder, retrieval_config)
    trace_store = TraceStore()
    agent = (
        DeepThinkingAgent(
            generator,
            strategies,
            config=agent_config,
            retrieval_config=retrieval_config,
            trace_store=trace_store,
        )
        if generator is not None
        else None
    )

    app = FastAPI(title="Deep Thinking RAG", version="0.1.0")

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "llm_configured": generator is not None,
            "documents": len(pipeline.index),
            "chunks": vector_store.count(),
            "patterns": registry.count(),
            "trace_count": len(trace_store),
        }

    @app.post("/ingest")
    def ingest(request: IngestRequest) -> dict[str, Any]:
        try:
            result = _ingest(pipeline, request, llm_available=analyzer is not None)
        except DeepRagError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

        return {
            "doc_id": result.doc_id,
            "chunks_created": len(result.chunks),
            "chunk_ids": [chunk.chunk_id for chunk in result.chunks],
            "strategy": result.resolution.strategy.value,
            "pattern_used": result.resolution.pattern_used,
            "confidence": result.resolution.confidence,
        }

    @app.post("/query")
    def query(request: QueryRequest) -> dict[str, Any]:
        if agent is None:
            raise HTTPException(status_code=503, detail="No LLM configured")

        schemas = pipeline.index.schemas()
        if request.document_ids:
            schemas = {doc_id: schemas[doc_id] for doc_id in request.document_ids if doc_id in schemas}
        filters = None
        if request.document_ids or request.section_types:
            filters = SchemaFilters(
                document_ids=list(request.document_ids),
                section_types=list(request.section_types),
            )

        try:
            state = agent.run(
                request.question,
                max_iterations=request.max_iterations,
                timeout=request.timeout_seconds,
                relevant_schemas=schemas,
                filters=filters,
            )
        except WorkflowTimeoutError as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc
        except DeepRagError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc

        return {
            "answer": state.final_answer,
            "trace_id": state.trace_id,
            "iterations": len(state.past_steps),
            "plan_reasoning": state.plan.reasoning if state.plan is not None else "",
            "steps": [
                {
                    "sub_question": past.step.sub_question,
                    "summary": past.summary,
                    "key_findings": past.key_findings,
                    "sources": [document.id for document in past.retrieved_docs],
                }
                for past in state.past_steps
            ],
        }

    @app.post("/search")
    def search(request: SearchRequest) -> dict[str, Any]:
        retriever = strategies[request.strategy]
        filters: SchemaFilters | None = None
        if request.strategy is RetrievalStrategy.SCHEMA_FILTERED:
            filters = SchemaFilters(
                document_ids=list(request.document_ids),
                section_types=list(request.section_types),
                semantic_tags=list(request.semantic_tags),
                min_relevance_score=request.min_score,
            )
        try:
            hits = retriever.search(request.query, request.top_k, filters)
        except DeepRagError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        return {
            "strategy": request.strategy.value,
            "items": [
                {
                    "id": hit.id,
                    "doc_id": hit.metadata.get("doc_id"),
                    "score": hit.score,
                    "text": hit.content,
                    "metadata": hit.metadata,
                }
                for hit in hits
            ],
        }

    @app.get("/schemas/{doc_id}")
    def schema_detail(doc_id: str) -> dict[str, Any]:
        entry = pipeline.index.get(doc_id)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Schema not found: {doc_id}")
        return {"schema": entry.schema.model_dump(), "chunk_ids": entry.chunk_ids}

    @app.get("/patterns")
    def patterns() -> dict[str, Any]:
        return {
            "items": [
                {
                    "name": pattern.name,
                    "description": pattern.description,
                    "priority": pattern.priority,
                    "indicators": pattern.indicators,
                    "requires_llm_enhancement": pattern.requires_llm_enhancement,
                }
                for pattern in registry.list()
            ]
        }

    @app.get("/traces/{trace_id}")
    def trace_detail(trace_id: str) -> dict[str, Any]:
        try:
            record = trace_store.get(trace_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return asdict(record)

    return app


def _ingest(pipeline: IngestPipeline, request: IngestRequest, *, llm_available: bool) -> IngestResult:
    """Without an LLM, documents matching no pattern fall back to sliding windows."""

    try:
        return pipeline.ingest(
            request.doc_id,
            request.content,
            request.format,
            request.metadata,
            request.document_schema,
        )
    except SchemaResolutionError:
        if llm_available or request.document_schema is not None:
            raise
    logger.warning("No schema resolved for %s; using sliding-window chunking", request.doc_id)
    fallback = DocumentSchema(
        doc_id=request.doc_id,
        format=request.format,
        chunking_strategy="sliding_window",
        parsing_method="default",
    )
    return pipeline.ingest(
        request.doc_id, request.content, request.format, request.metadata, fallback
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


configure_logging(get_settings().log_level)
app = create_app()
