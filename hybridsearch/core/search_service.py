"""
Hybrid query orchestration.
Runs the lexical and vector searches side by side, fuses, reranks and paginates.
"""

import math
import threading
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, TypeVar

from hybridsearch.vector.types import VectorResult, as_utc
from util.logging import logger

from . import config
from .fusion import HybridResult, fuse_results
from .lexical import ILexicalSearch, NullLexicalSearch, SearchFilters
from .reranker import ContextualReranker, RankingContext

T = TypeVar("T")


@dataclass
class HybridSearchOptions:
    vector_weight: float = 0.5
    text_weight: float = 0.5
    limit: int = 20
    page: int = 1
    filters: Optional[SearchFilters] = None


@dataclass
class PaginatedResult(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


@dataclass
class RAGResult:
    query: str
    results: List[VectorResult]
    context: str
    total_results: int


def paginate(items: List[T], page: int, limit: int) -> PaginatedResult:
    """Slice one page out of an already-ranked list."""
    total = len(items)
    start = (page - 1) * limit
    total_pages = math.ceil(total / limit) if limit > 0 else 0
    return PaginatedResult(
        items=items[start:start + limit],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


def matches_filters(result: VectorResult, filters: Optional[SearchFilters]) -> bool:
    """Check a vector hit's metadata against the search filters."""
    if filters is None:
        return True
    meta = result.metadata
    if filters.scope_id and meta.scope_id != filters.scope_id:
        return False
    if filters.category and meta.category not in filters.category:
        return False
    if filters.status and meta.status not in filters.status:
        return False
    if filters.priority and meta.priority not in filters.priority:
        return False

    created = as_utc(meta.created_at)
    if filters.start_date and created < as_utc(filters.start_date):
        return False
    if filters.end_date and created > as_utc(filters.end_date):
        return False
    return True


class SearchStats:
    """In-process search counters."""

    def __init__(self):
        self._lock = threading.Lock()
        self.total_searches = 0
        self.total_time_ms = 0.0
        self.queries = Counter()

    def record(self, query: str, duration_ms: float):
        with self._lock:
            self.total_searches += 1
            self.total_time_ms += duration_ms
            key = query.strip().lower()
            if key:
                self.queries[key] += 1

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            average = self.total_time_ms / self.total_searches if self.total_searches else 0.0
            return {
                "total_searches": self.total_searches,
                "average_response_time_ms": round(average, 2),
                "popular_queries": [
                    {"query": query, "count": count}
                    for query, count in self.queries.most_common(10)
                ],
            }


class HybridSearchService:
    """Query surface over the vector index and an external full-text engine."""

    def __init__(self, store, embedding_client, lexical: Optional[ILexicalSearch] = None,
                 reranker: Optional[ContextualReranker] = None):
        self.store = store
        self.embedding_client = embedding_client
        self.lexical = lexical or NullLexicalSearch()
        self.reranker = reranker or ContextualReranker()
        self.stats = SearchStats()
        self._pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="hybrid")

    def _vector_search(self, query: str, limit: int, filters: Optional[SearchFilters]) -> List[VectorResult]:
        query_vector = self.embedding_client.embed(query)
        hits = self.store.search(query_vector, limit)
        return [hit for hit in hits if matches_filters(hit, filters)]

    def _collect(self, future, kind: str, query: str) -> list:
        try:
            return future.result()
        except Exception as e:
            logger.log_search_failure(kind, query, e)
            return []

    def hybrid_search(self, query: str, options: Optional[HybridSearchOptions] = None) -> PaginatedResult:
        """
        Run a fused lexical + semantic search.

        Both engines are asked for ``page * limit * 2`` candidates. A sub-search
        that fails contributes an empty batch instead of failing the query.

        Returns:
            PaginatedResult of HybridResult
        """
        options = options or HybridSearchOptions()
        if options.limit < 1:
            raise ValueError("limit must be >= 1")
        if options.page < 1:
            raise ValueError("page must be >= 1")

        start = time.time()
        fetch = options.page * options.limit * 2

        lexical_future = self._pool.submit(self.lexical.search, query, options.filters, fetch)
        vector_future = self._pool.submit(self._vector_search, query, fetch, options.filters)
        lexical_hits = self._collect(lexical_future, "lexical", query)
        vector_hits = self._collect(vector_future, "vector", query)

        fused = fuse_results(lexical_hits, vector_hits, options.vector_weight, options.text_weight)
        page = paginate(fused, options.page, options.limit)

        duration_ms = (time.time() - start) * 1000
        self.stats.record(query, duration_ms)
        logger.log_search("hybrid", query, len(page.items), duration_ms, {
            "lexical_hits": len(lexical_hits),
            "vector_hits": len(vector_hits),
            "total": page.total,
            "page": options.page,
        })
        return page

    def rank_search_results(self, results: List[HybridResult], query: str,
                            context: Optional[RankingContext] = None) -> List[HybridResult]:
        """Apply contextual boosts to already-fused results."""
        ranked = self.reranker.rerank(results, context)
        logger.log_search("rank", query, len(ranked))
        return ranked

    def rag_search(self, query: str, scope_id: Optional[str] = None, category: Optional[str] = None,
                   max_results: Optional[int] = None) -> RAGResult:
        """
        Vector-only retrieval for answer generation.

        Hits below RAG_SIMILARITY_THRESHOLD are dropped. The context string has
        one line per hit.

        Raises:
            EmbeddingProviderError: The query could not be embedded
        """
        max_results = max_results if max_results is not None else config.RAG_DEFAULT_LIMIT
        if max_results < 1:
            raise ValueError("max_results must be >= 1")

        start = time.time()
        query_vector = self.embedding_client.embed(query)
        candidates = self.store.search(query_vector, max_results * 2)

        results = []
        for hit in candidates:
            if scope_id and hit.metadata.scope_id != scope_id:
                continue
            if category and hit.metadata.category != category:
                continue
            if hit.score < config.RAG_SIMILARITY_THRESHOLD:
                continue
            results.append(hit)
        results = results[:max_results]

        context = "\n".join(
            f"[{hit.metadata.record_type}] {hit.metadata.title or hit.id}: Score={hit.score:.3f}"
            for hit in results
        )

        duration_ms = (time.time() - start) * 1000
        self.stats.record(query, duration_ms)
        logger.log_search("rag", query, len(results), duration_ms, {"candidates": len(candidates)})
        return RAGResult(query=query, results=results, context=context, total_results=len(results))

    def get_search_stats(self) -> Dict[str, Any]:
        return self.stats.snapshot()
