"""Registry of reusable schema patterns."""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from pydantic import ValidationError

from deep_rag.schema.types import DocumentSchema, SchemaPattern, Section

logger = logging.getLogger(__name__)


class PatternRegistry:
    """Stores schema patterns keyed by name.

    `list()` orders patterns by descending priority; equal priorities keep
    registration order. Replacing a pattern by name keeps its original slot.
    Instances are constructed and owned by the call site, so tests get
    isolated registries.
    """

    def __init__(self) -> None:
        self._patterns: dict[str, SchemaPattern] = {}
        self._lock = threading.RLock()

    def register(self, pattern: SchemaPattern) -> None:
        if not pattern.name:
            raise ValueError("pattern name is required")
        with self._lock:
            self._patterns[pattern.name] = pattern

    def get(self, name: str) -> SchemaPattern | None:
        with self._lock:
            return self._patterns.get(name)

    def list(self) -> list[SchemaPattern]:
        with self._lock:
            patterns = list(self._patterns.values())
        return sorted(patterns, key=lambda pattern: pattern.priority, reverse=True)

    def delete(self, name: str) -> None:
        with self._lock:
            if name not in self._patterns:
                raise KeyError(f"Pattern not found: {name}")
            del self._patterns[name]

    def count(self) -> int:
        with self._lock:
            return len(self._patterns)

    def clear(self) -> None:
        with self._lock:
            self._patterns = {}

    def load_file(self, path: str | Path) -> SchemaPattern:
        """Load and register one pattern from a JSON record."""

        pattern = SchemaPattern.model_validate_json(Path(path).read_text(encoding="utf-8"))
        self.register(pattern)
        return pattern

    def save_file(self, name: str, path: str | Path) -> None:
        pattern = self.get(name)
        if pattern is None:
            raise KeyError(f"Pattern not found: {name}")
        Path(path).write_text(pattern.model_dump_json(indent=2), encoding="utf-8")

    def load_directory(self, directory: str | Path) -> int:
        """Load every `*.json` pattern in `directory`.

        Unreadable or invalid files are logged and skipped. Returns the number
        of patterns loaded.
        """

        loaded = 0
        for path in sorted(Path(directory).iterdir()):
            if not path.is_file() or path.suffix.lower() != ".json":
                continue
            try:
                self.load_file(path)
            except (OSError, ValueError, ValidationError) as exc:
                logger.warning("Skipping schema pattern %s: %s", path, exc)
                continue
            loaded += 1
        logger.info("Loaded %d schema patterns from %s", loaded, directory)
        return loaded

    def register_builtin_patterns(self) -> None:
        self.register(
            SchemaPattern(
                name="sec_10k",
                description="SEC 10-K Annual Report filing",
                indicators=[
                    "ITEM 1A. Risk Factors",
                    "ITEM 1. Business",
                    "ITEM 7. Management's Discussion",
                    "Form 10-K",
                ],
                priority=100,
                requires_llm_enhancement=False,
                template=DocumentSchema(
                    format="pdf",
                    chunking_strategy="section_based",
                    parsing_method="predefined_schema",
                    sections=[
                        Section(id="item1", title="Item 1. Business", level=1, type="business_overview"),
                        Section(id="item1a", title="Item 1A. Risk Factors", level=1, type="risk_factors"),
                        Section(id="item7", title="Item 7. MD&A", level=1, type="financial_analysis"),
                    ],
                    custom_attributes={
                        "document_type": "sec_filing",
                        "filing_type": "10-K",
                    },
                ),
            )
        )
        self.register(
            SchemaPattern(
                name="research_paper",
                description="Academic research paper",
                indicators=[
                    "Abstract",
                    "Introduction",
                    "Methodology",
                    "Results",
                    "Conclusion",
                    "References",
                ],
                priority=90,
                requires_llm_enhancement=True,
                template=DocumentSchema(
                    format="pdf",
                    chunking_strategy="hierarchical",
                    parsing_method="predefined_schema",
                    sections=[
                        Section(id="abstract", title="Abstract", level=1, type="abstract"),
                        Section(id="intro", title="Introduction", level=1, type="introduction"),
                        Section(id="method", title="Methodology", level=1, type="methodology"),
                        Section(id="results", title="Results", level=1, type="results"),
                        Section(id="conclusion", title="Conclusion", level=1, type="conclusion"),
                    ],
                    custom_attributes={"document_type": "research_paper"},
                ),
            )
        )
