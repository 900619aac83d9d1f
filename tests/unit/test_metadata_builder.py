from deep_rag.schema.analyzer import build_hierarchy
from deep_rag.schema.metadata import DocumentIndex, MetadataBuilder
from deep_rag.schema.types import Boundary, DocumentSchema, SemanticRegion, Section


def _schema() -> DocumentSchema:
    sections = [
        Section(id="risk", title="Risk Factors", level=1, start_pos=0, end_pos=200, type="risk_factors"),
        Section(id="market", title="Market Risk", level=2, start_pos=50, end_pos=150, type="market_risk"),
        Section(id="mdna", title="MD&A", level=1, start_pos=200, end_pos=400, type="financial_analysis"),
    ]
    return DocumentSchema(
        doc_id="10k",
        sections=sections,
        hierarchy=build_hierarchy(sections),
        semantic_regions=[
            SemanticRegion(
                id="r1",
                type="risk_discussion",
                keywords=["volatility", "rates"],
                boundaries=[Boundary(start_pos=100, end_pos=250)],
            )
        ],
        custom_attributes={"filing_type": "10-K"},
    )


def test_deepest_containing_section_wins() -> None:
    metadata = MetadataBuilder(_schema()).build_chunk_metadata(0, 60, 120, "section_based")

    assert metadata.section_id == "market"
    assert metadata.section_level == 2
    assert metadata.hierarchy_path == "1.1"
    assert metadata.semantic_types == ["risk_discussion"]
    assert metadata.semantic_tags == ["volatility", "rates"]


def test_overlapping_span_falls_back_to_first_section() -> None:
    metadata = MetadataBuilder(_schema()).build_chunk_metadata(3, 180, 260, "sliding_window")

    assert metadata.section_id == "risk"


def test_store_metadata_omits_empty_fields() -> None:
    schema = DocumentSchema(doc_id="plain", custom_attributes={"source": "upload"})
    stored = MetadataBuilder(schema).build_chunk_metadata(2, 0, 40, "sliding_window").to_store_metadata()

    assert stored == {
        "source": "upload",
        "doc_id": "plain",
        "chunk_index": 2,
        "start_pos": 0,
        "end_pos": 40,
        "chunking_method": "sliding_window",
    }


def test_store_metadata_carries_schema_fields() -> None:
    stored = MetadataBuilder(_schema()).build_chunk_metadata(1, 210, 240, "section_based").to_store_metadata()

    assert stored["section_type"] == "financial_analysis"
    assert stored["hierarchy_path"] == "2"
    assert stored["semantic_tags"] == ["volatility", "rates"]
    assert stored["filing_type"] == "10-K"


def test_document_index() -> None:
    index = DocumentIndex()
    index.add(DocumentSchema(doc_id="a"), ["a-chunk-0000"])
    index.add(DocumentSchema(doc_id="b"), [])

    assert len(index) == 2
    assert index.get("a").chunk_ids == ["a-chunk-0000"]
    assert set(index.schemas()) == {"a", "b"}
    assert index.remove("a") is not None
    assert index.get("a") is None
