"""Layered schema resolution: explicit, cached, pattern, then LLM analysis."""

from __future__ import annotations

import dataclasses
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from deep_rag.config import SchemaConfig
from deep_rag.errors import SchemaResolutionError
from deep_rag.obs.tracing import Timer
from deep_rag.schema.analyzer import SchemaAnalyzer
from deep_rag.schema.cache import SchemaCache
from deep_rag.schema.registry import PatternRegistry
from deep_rag.schema.types import (
    DocumentSchema,
    ResolutionResult,
    ResolverStrategy,
    SchemaPattern,
)

logger = logging.getLogger(__name__)

MATCH_THRESHOLD = 0.5


@dataclass(slots=True)
class DocumentInput:
    doc_id: str
    content: str
    format: str = "text"
    explicit_schema: DocumentSchema | None = None


@dataclass(slots=True)
class BatchResolution:
    """Outcome of `resolve_many`; failures are kept per document."""

    results: dict[str, ResolutionResult] = field(default_factory=dict)
    errors: dict[str, Exception] = field(default_factory=dict)


class SchemaResolver:
    def __init__(
        self,
        registry: PatternRegistry,
        analyzer: SchemaAnalyzer | None = None,
        cache: SchemaCache | None = None,
        config: SchemaConfig | None = None,
    ) -> None:
        self.registry = registry
        self.analyzer = analyzer
        self.config = config or SchemaConfig()
        if cache is None and self.config.enable_caching:
            cache = SchemaCache(self.config.cache_ttl_seconds)
        self.cache = cache

    def resolve(
        self,
        doc_id: str,
        content: str,
        format: str,
        explicit_schema: DocumentSchema | None = None,
    ) -> ResolutionResult:
        """Resolve the structural schema for one document.

        Strategies are tried in order and the first applicable one wins:
        an explicit schema, a cached result, the highest-priority matching
        pattern, and finally LLM analysis. Only the last can fail.
        """

        with Timer() as timer:
            if explicit_schema is not None:
                return ResolutionResult(
                    schema=explicit_schema,
                    strategy=ResolverStrategy.EXPLICIT,
                    confidence=1.0,
                    processing_time_ms=timer.elapsed(),
                )

            if self.cache is not None:
                cached = self.cache.get(doc_id)
                if cached is not None:
                    logger.debug("Schema cache hit for %s", doc_id)
                    return dataclasses.replace(cached, processing_time_ms=timer.elapsed())

            result = None
            if self.config.enable_pattern_matching:
                result = self._resolve_by_pattern(doc_id, content, format)
            if result is None:
                result = self._resolve_by_analysis(doc_id, content, format)
            result.processing_time_ms = timer.elapsed()

        if self.cache is not None:
            self.cache.set(doc_id, result)
        logger.info(
            "Resolved schema for %s via %s (confidence %.2f)",
            doc_id,
            result.strategy.value,
            result.confidence,
        )
        return result

    def resolve_many(
        self,
        documents: list[DocumentInput],
        max_workers: int = 4,
    ) -> BatchResolution:
        batch = BatchResolution()
        if not documents:
            return batch
        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
            futures = {
                document.doc_id: pool.submit(
                    self.resolve,
                    document.doc_id,
                    document.content,
                    document.format,
                    document.explicit_schema,
                )
                for document in documents
            }
            for doc_id, future in futures.items():
                try:
                    batch.results[doc_id] = future.result()
                except Exception as exc:
                    logger.warning("Schema resolution failed for %s: %s", doc_id, exc)
                    batch.errors[doc_id] = exc
        return batch

    def match_pattern(self, content: str) -> tuple[SchemaPattern, float] | None:
        """Return the first pattern, by priority, whose indicator hit rate is >= 0.5."""

        lowered = content.lower()
        for pattern in self.registry.list():
            confidence = indicator_confidence(pattern.indicators, lowered)
            if confidence >= MATCH_THRESHOLD:
                return pattern, confidence
        return None

    def _resolve_by_pattern(
        self, doc_id: str, content: str, format: str
    ) -> ResolutionResult | None:
        matched = self.match_pattern(content)
        if matched is None:
            return None
        pattern, confidence = matched

        schema = pattern.template.model_copy(deep=True)
        schema.doc_id = doc_id
        schema.format = format
        schema.created_at = int(time.time())
        schema.confidence = confidence
        result = ResolutionResult(
            schema=schema,
            strategy=ResolverStrategy.PATTERN,
            confidence=confidence,
            pattern_used=pattern.name,
        )

        if pattern.requires_llm_enhancement and self._analysis_enabled():
            try:
                result.schema = self.analyzer.enhance(schema, content)
                result.strategy = ResolverStrategy.HYBRID
            except Exception as exc:
                logger.debug("Enhancement of %s with %s skipped: %s", doc_id, pattern.name, exc)
        return result

    def _resolve_by_analysis(self, doc_id: str, content: str, format: str) -> ResolutionResult:
        if not self._analysis_enabled():
            raise SchemaResolutionError(f"no schema pattern matched document {doc_id}")
        schema = self.analyzer.analyze_document(doc_id, content, format)
        return ResolutionResult(
            schema=schema,
            strategy=ResolverStrategy.LLM,
            confidence=schema.confidence,
        )

    def _analysis_enabled(self) -> bool:
        return self.analyzer is not None and self.config.enable_llm_analysis


def indicator_confidence(indicators: list[str], lowered_content: str) -> float:
    """Fraction of indicators found as case-insensitive substrings."""

    if not indicators:
        return 0.0
    found = sum(1 for indicator in indicators if indicator.lower() in lowered_content)
    return found / len(indicators)
