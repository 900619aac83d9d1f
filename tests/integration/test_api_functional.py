import pytest
from fastapi.testclient import TestClient

from deep_rag.api.main import create_app
from deep_rag.config import Settings

_FILING = (
    "Form 10-K annual report for fiscal year 2025.\n\n"
    "ITEM 1. Business. We sell industrial sensors to manufacturers worldwide.\n\n"
    "ITEM 1A. Risk Factors. Supply chain disruption could delay sensor shipments."
)
_POLICY = "Data Protection. Customer data is encrypted at rest with managed keys. " * 2


@pytest.fixture
def client(generator) -> TestClient:
    return TestClient(create_app(settings=Settings(openai_api_key=""), generator=generator))


@pytest.fixture
def offline_client() -> TestClient:
    return TestClient(create_app(settings=Settings(openai_api_key="")))


def test_health(client: TestClient) -> None:
    body = client.get("/health").json()

    assert body["status"] == "ok"
    assert body["llm_configured"] is True
    assert body["documents"] == 0
    assert body["patterns"] == 2


def test_ingest_query_and_trace(client: TestClient) -> None:
    filing = client.post("/ingest", json={"doc_id": "acme-10k", "content": _FILING, "metadata": {"source": "edgar"}})
    policy = client.post("/ingest", json={"doc_id": "security-policy", "content": _POLICY, "format": "markdown"})

    assert filing.status_code == 200
    assert filing.json()["pattern_used"] == "sec_10k"
    assert filing.json()["strategy"] == "pattern"
    assert policy.json()["strategy"] == "llm"
    assert policy.json()["chunks_created"] == 2

    response = client.post("/query", json={"question": "How is customer data protected?"})

    assert response.status_code == 200
    body = response.json()
    assert body["iterations"] == 2
    assert "1. What does the policy require for customer data?" in body["answer"]
    assert body["plan_reasoning"].startswith("Find the requirement first")
    assert body["steps"][0]["key_findings"] == ["Encryption at rest is mandatory", "Keys rotate quarterly"]

    trace = client.get(f"/traces/{body['trace_id']}")
    assert trace.status_code == 200
    assert trace.json()["question"] == "How is customer data protected?"
    assert trace.json()["steps"][0]["name"] == "planner"

    health = client.get("/health").json()
    assert health["documents"] == 2
    assert health["trace_count"] == 1


def test_search_strategies(client: TestClient) -> None:
    client.post("/ingest", json={"doc_id": "acme-10k", "content": _FILING})
    client.post("/ingest", json={"doc_id": "security-policy", "content": _POLICY})

    keyword = client.post("/search", json={"query": "supply chain disruption", "strategy": "keyword"}).json()
    filtered = client.post(
        "/search",
        json={"query": "customer data", "strategy": "schema_filtered", "section_types": ["key_management"]},
    ).json()

    assert keyword["items"][0]["doc_id"] == "acme-10k"
    assert filtered["strategy"] == "schema_filtered"
    assert [item["metadata"]["section_type"] for item in filtered["items"]] == ["key_management"]


def test_explicit_schema_in_request(client: TestClient) -> None:
    response = client.post(
        "/ingest",
        json={
            "doc_id": "notes",
            "content": "Quarterly review notes.\n\nRevenue grew in every region.",
            "schema": {"chunking_strategy": "semantic", "custom_attributes": {"team": "finance"}},
        },
    )

    assert response.json()["strategy"] == "explicit"
    detail = client.get("/schemas/notes").json()
    assert detail["schema"]["doc_id"] == "notes"
    assert detail["schema"]["custom_attributes"] == {"team": "finance"}
    assert detail["chunk_ids"] == ["notes-chunk-0000"]


def test_lookups_for_unknown_ids(client: TestClient) -> None:
    assert client.get("/schemas/missing").status_code == 404
    assert client.get("/traces/missing").status_code == 404


def test_patterns_listing(client: TestClient) -> None:
    items = client.get("/patterns").json()["items"]

    assert [item["name"] for item in items] == ["sec_10k", "research_paper"]
    assert items[0]["priority"] == 100


def test_request_validation(client: TestClient) -> None:
    assert client.post("/query", json={"question": ""}).status_code == 422
    assert client.post("/ingest", json={"doc_id": "x", "content": ""}).status_code == 422


def test_unparseable_plan_is_server_error(make_generator) -> None:
    client = TestClient(
        create_app(settings=Settings(openai_api_key=""), generator=make_generator(query_planner="no plan"))
    )

    assert client.post("/query", json={"question": "Anything?"}).status_code == 500


def test_query_without_llm_is_unavailable(offline_client: TestClient) -> None:
    assert offline_client.post("/query", json={"question": "Anything?"}).status_code == 503


def test_ingest_without_llm_falls_back_to_windows(offline_client: TestClient) -> None:
    response = offline_client.post("/ingest", json={"doc_id": "memo", "content": "Lunch is at noon."})

    assert response.status_code == 200
    assert response.json()["chunks_created"] == 1
    assert offline_client.get("/health").json()["llm_configured"] is False
