"""BM25 lexical scoring over a filtered candidate set."""

from __future__ import annotations

import math
from collections import Counter
from typing import Any

from deep_rag.config import RetrievalConfig
from deep_rag.errors import RetrievalError
from deep_rag.retrieval.vector_store import VectorStore
from deep_rag.types import RetrievedDocument

STOPWORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to",
        "for", "of", "with", "by", "from", "is", "was", "are", "were", "be",
    }
)


def tokenize(text: str) -> list[str]:
    """Lowercase, split on whitespace, drop stopwords and tokens under 3 chars."""

    return [
        word
        for word in text.lower().split()
        if len(word) > 2 and word not in STOPWORDS
    ]


def document_frequencies(
    query_terms: list[str], corpus_tokens: list[list[str]]
) -> dict[str, int]:
    frequencies: dict[str, int] = {}
    for term in set(query_terms):
        frequencies[term] = sum(1 for tokens in corpus_tokens if term in tokens)
    return frequencies


def bm25_score(
    query_terms: list[str],
    doc_tokens: list[str],
    doc_freqs: dict[str, int],
    corpus_size: int,
    avg_doc_len: float,
    *,
    k1: float = 1.5,
    b: float = 0.75,
) -> float:
    """Okapi BM25 with the non-negative `ln((N-df+0.5)/(df+0.5)+1)` idf."""

    if not doc_tokens or avg_doc_len <= 0:
        return 0.0
    term_freq = Counter(doc_tokens)
    doc_len = float(len(doc_tokens))

    score = 0.0
    for term in query_terms:
        tf = float(term_freq.get(term, 0))
        if tf == 0:
            continue
        df = doc_freqs.get(term, 0)
        idf = math.log((corpus_size - df + 0.5) / (df + 0.5) + 1.0)
        numerator = tf * (k1 + 1.0)
        denominator = tf + k1 * (1.0 - b + b * (doc_len / avg_doc_len))
        score += idf * (numerator / denominator)
    return score


def rank_bm25(
    query: str,
    candidates: list[RetrievedDocument],
    top_k: int,
    *,
    k1: float = 1.5,
    b: float = 0.75,
) -> list[RetrievedDocument]:
    """Score `candidates` against `query`, drop zero scores, keep the best `top_k`."""

    query_terms = tokenize(query)
    if not query_terms or not candidates:
        return []

    corpus_tokens = [tokenize(doc.content) for doc in candidates]
    corpus_size = len(candidates)
    avg_doc_len = sum(len(tokens) for tokens in corpus_tokens) / corpus_size
    doc_freqs = document_frequencies(query_terms, corpus_tokens)

    scored: list[RetrievedDocument] = []
    for doc, tokens in zip(candidates, corpus_tokens, strict=True):
        score = bm25_score(
            query_terms, tokens, doc_freqs, corpus_size, avg_doc_len, k1=k1, b=b
        )
        if score > 0:
            scored.append(doc.with_score(score))

    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:top_k]


class KeywordRetriever:
    """BM25 retrieval over an over-sized candidate set from the vector store.

    The store has no inverted index, so candidates are fetched through the
    filtered similarity search with a neutral probe vector; only the filter
    and the candidate cap matter for that call.
    """

    name = "keyword"

    def __init__(
        self,
        store: VectorStore,
        dimension: int,
        config: RetrievalConfig | None = None,
    ) -> None:
        self.store = store
        self.dimension = dimension
        self.config = config or RetrievalConfig()

    def search(
        self,
        query: str,
        top_k: int,
        filters: dict[str, Any] | None = None,
    ) -> list[RetrievedDocument]:
        if not tokenize(query):
            return []

        filters = dict(filters or {})
        filters.pop("min_score", None)
        candidate_k = max(
            top_k * self.config.keyword_candidate_multiplier,
            self.config.keyword_min_candidates,
        )
        try:
            candidates = self.store.search(
                [0.0] * self.dimension,
                candidate_k,
                metadata_filter=filters or None,
            )
        except Exception as exc:
            raise RetrievalError(f"candidate search failed: {exc}") from exc

        return rank_bm25(
            query,
            candidates,
            top_k,
            k1=self.config.bm25_k1,
            b=self.config.bm25_b,
        )
