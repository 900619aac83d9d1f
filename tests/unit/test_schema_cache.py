from deep_rag.schema.cache import SchemaCache
from deep_rag.schema.types import DocumentSchema, ResolutionResult, ResolverStrategy


def _result(doc_id: str) -> ResolutionResult:
    return ResolutionResult(
        schema=DocumentSchema(doc_id=doc_id),
        strategy=ResolverStrategy.LLM,
        confidence=0.7,
    )


def test_entries_expire_lazily() -> None:
    now = [100.0]
    cache = SchemaCache(10.0, clock=lambda: now[0])
    cache.set("doc", _result("doc"))

    now[0] = 109.0
    assert cache.get("doc") is not None

    now[0] = 111.0
    assert cache.get("doc") is None
    assert len(cache) == 0


def test_set_overwrites_and_clear_empties() -> None:
    cache = SchemaCache(60.0)
    cache.set("doc", _result("doc"))
    replacement = _result("doc")
    cache.set("doc", replacement)

    assert cache.get("doc") is replacement
    cache.clear()
    assert cache.get("doc") is None
