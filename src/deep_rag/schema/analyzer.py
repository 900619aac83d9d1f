"""LLM-driven structural analysis of documents."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from deep_rag.config import SchemaConfig
from deep_rag.errors import SchemaResolutionError
from deep_rag.llm import TextGenerator, complete_text
from deep_rag.schema.types import (
    DocumentSchema,
    HierarchyNode,
    HierarchyTree,
    Section,
    SemanticRegion,
)

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = """
You are a document structure analysis expert. Your task is to analyze documents and extract their structural schema.

Your analysis should identify:
1. Logical sections with clear boundaries and semantic types
2. Hierarchical structure (headings, subheadings, nesting)
3. Semantic regions (topic-based areas that may span multiple sections)
4. Custom attributes specific to the document type
5. An appropriate chunking strategy for RAG systems

Always respond with valid JSON matching the requested structure. Be precise with position markers (start_pos, end_pos).
""".strip()

_ANALYSIS_TEMPLATE = """
Analyze the following {format} document and provide a detailed structural schema.

Document content:
---
{content}
---

Provide your analysis as a JSON object with the following structure:
{{
  "title": "document title if identifiable",
  "sections": [
    {{"id": "unique_section_id", "title": "section title", "level": 1, "start_pos": 0, "end_pos": 100,
      "type": "semantic type (e.g. introduction, methodology, results)", "summary": "brief summary",
      "keywords": ["key", "terms"]}}
  ],
  "semantic_regions": [
    {{"id": "region_id", "type": "region type (e.g. problem_statement)", "description": "what this region contains",
      "keywords": ["relevant", "terms"], "boundaries": [{{"start_pos": 0, "end_pos": 100}}], "confidence": 0.9}}
  ],
  "custom_attributes": {{"key": "value pairs of document-specific metadata"}},
  "chunking_strategy": "section_based, hierarchical, semantic, or sliding_window",
  "confidence": 0.9
}}
""".strip()

_TRUNCATION_MARKER = "\n\n[Content truncated for analysis...]"


class _AnalysisPayload(BaseModel):
    title: str = ""
    sections: list[Section] = Field(default_factory=list)
    semantic_regions: list[SemanticRegion] = Field(default_factory=list)
    custom_attributes: dict[str, Any] = Field(default_factory=dict)
    chunking_strategy: str = ""
    confidence: float = 0.0

    @field_validator("sections", "semantic_regions", mode="before")
    @classmethod
    def coerce_null_lists(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("custom_attributes", mode="before")
    @classmethod
    def coerce_null_dict(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("title", "chunking_strategy", mode="before")
    @classmethod
    def coerce_null_text(cls, value: Any) -> Any:
        return "" if value is None else value


class SchemaAnalyzer:
    """Derives a `DocumentSchema` by asking the text generator for JSON."""

    def __init__(self, generator: TextGenerator, config: SchemaConfig | None = None) -> None:
        self.generator = generator
        self.config = config or SchemaConfig()

    def analyze_document(self, doc_id: str, content: str, format: str) -> DocumentSchema:
        prompt = self.build_prompt(content, format)
        try:
            response = complete_text(
                self.generator,
                _SYSTEM_PROMPT,
                prompt,
                temperature=self.config.analysis_temperature,
                max_tokens=self.config.analysis_max_tokens,
            )
        except Exception as exc:
            raise SchemaResolutionError(f"LLM analysis failed: {exc}") from exc

        schema = parse_analysis_response(response, doc_id, format)
        schema.parsing_method = "llm_analysis"
        schema.created_at = int(time.time())
        logger.debug(
            "Analyzed %s: %d sections, %d regions",
            doc_id,
            len(schema.sections),
            len(schema.semantic_regions),
        )
        return schema

    def enhance(self, schema: DocumentSchema, content: str) -> DocumentSchema:
        """Refine a pattern-instantiated schema with a fresh analysis.

        Analysis sections and regions replace the template's when present;
        custom attributes are merged with template values taking precedence;
        the template's chunking strategy is kept.
        """

        analyzed = self.analyze_document(schema.doc_id, content, schema.format)
        enhanced = schema.model_copy(deep=True)
        if analyzed.sections:
            enhanced.sections = analyzed.sections
            enhanced.hierarchy = analyzed.hierarchy
        if analyzed.semantic_regions:
            enhanced.semantic_regions = analyzed.semantic_regions
        enhanced.custom_attributes = {**analyzed.custom_attributes, **schema.custom_attributes}
        if not enhanced.title:
            enhanced.title = analyzed.title
        if not enhanced.chunking_strategy:
            enhanced.chunking_strategy = analyzed.chunking_strategy
        enhanced.confidence = max(schema.confidence, analyzed.confidence)
        enhanced.parsing_method = "pattern_llm_enhanced"
        return enhanced

    def build_prompt(self, content: str, format: str) -> str:
        limit = self.config.max_content_chars
        truncated = content
        if len(content) > limit:
            truncated = content[:limit] + _TRUNCATION_MARKER
        return _ANALYSIS_TEMPLATE.format(format=format, content=truncated)


def extract_json_object(text: str) -> str | None:
    """Return the first balanced `{...}` block in `text`, or None.

    Braces inside JSON string literals do not count towards the depth.
    """

    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def parse_analysis_response(response: str, doc_id: str, format: str) -> DocumentSchema:
    json_text = extract_json_object(response)
    if json_text is None:
        raise SchemaResolutionError("no valid JSON found in LLM response")
    try:
        payload = _AnalysisPayload.model_validate(json.loads(json_text))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise SchemaResolutionError(f"failed to parse analysis JSON: {exc}") from exc

    sections = [section.model_copy(update={"child_ids": []}) for section in payload.sections]
    hierarchy = build_hierarchy(sections)
    return DocumentSchema(
        doc_id=doc_id,
        format=format,
        title=payload.title,
        sections=sections,
        hierarchy=hierarchy,
        semantic_regions=payload.semantic_regions,
        custom_attributes=payload.custom_attributes,
        chunking_strategy=payload.chunking_strategy,
        confidence=payload.confidence,
    )


def build_hierarchy(sections: list[Section]) -> HierarchyTree:
    """Build a tree from a flat, document-ordered section list.

    Every level-1 section is a direct child of a synthetic root. Deeper
    sections nest under the closest preceding shallower section, and their
    `parent_id` / `child_ids` are filled in place. Sections with no
    shallower ancestor stay out of the tree. `max_depth` is the highest
    level seen.
    """

    if not sections:
        return HierarchyTree(root=None, max_depth=0)

    root = HierarchyNode(id="root", path="0", title="Document Root", level=0)
    by_id = {section.id: section for section in sections}
    stack: list[tuple[Section, HierarchyNode]] = []
    max_depth = 0

    for section in sections:
        max_depth = max(max_depth, section.level)
        while stack and stack[-1][0].level >= section.level:
            stack.pop()

        if section.level == 1:
            parent_node = root
        elif stack:
            parent_section, parent_node = stack[-1]
            section.parent_id = parent_section.id
            by_id[parent_section.id].child_ids.append(section.id)
        else:
            continue

        position = len(parent_node.children) + 1
        path = str(position) if parent_node is root else f"{parent_node.path}.{position}"
        node = HierarchyNode(
            id=section.id,
            path=path,
            title=section.title,
            level=section.level,
            start_pos=section.start_pos,
            end_pos=section.end_pos,
        )
        parent_node.children.append(node)
        stack.append((section, node))

    return HierarchyTree(root=root, max_depth=max_depth)


def hierarchy_paths(tree: HierarchyTree | None) -> dict[str, str]:
    """Map section id to its dotted hierarchy path."""

    paths: dict[str, str] = {}
    if tree is None or tree.root is None:
        return paths
    pending = list(tree.root.children)
    while pending:
        node = pending.pop()
        paths[node.id] = node.path
        pending.extend(node.children)
    return paths
