"""
HTTP query surface for the hybrid retrieval engine.
"""

from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse

from .schemas import (
    HybridSearchRequest,
    HybridSearchResponse,
    HybridResultModel,
    RankRequest,
    RankResponse,
    RAGRequest,
    RAGResponse,
    VectorHit,
    SearchStatsResponse,
    VectorizeResponse,
    DeleteVectorResponse,
    VectorStatsResponse,
    ReindexResponse,
    PersistResponse,
    HealthResponse,
)
from ..core import config, heartbeat
from ..core.config import VERSION, debug_enabled
from ..core.errors import DimensionMismatch, EmbeddingProviderError, PersistenceError, SourceNotFound
from ..core.fusion import HybridResult
from ..core.lexical import NullLexicalSearch, SearchFilters
from ..core.reranker import RankingContext
from ..core.search_service import HybridSearchOptions, HybridSearchService
from ..core.vectorization import VectorizationService
from util.logging import logger

# Lazily created service singletons
_store = None
_embedding_client = None
_record_source = None
_lexical = None
_search_service = None
_vectorization_service = None


def get_store():
    global _store
    if _store is None:
        _store = config.get_vector_store()
    return _store


def get_embedding_client():
    global _embedding_client
    if _embedding_client is None:
        _embedding_client = config.get_embedding_client()
    return _embedding_client


def get_record_source():
    """Record source used by vectorization. Replace with set_services() to wire a real one."""
    global _record_source
    if _record_source is None:
        _record_source = config.get_record_source()
    return _record_source


def get_lexical():
    global _lexical
    if _lexical is None:
        _lexical = NullLexicalSearch()
    return _lexical


def get_search_service() -> HybridSearchService:
    global _search_service
    if _search_service is None:
        _search_service = HybridSearchService(get_store(), get_embedding_client(), get_lexical())
    return _search_service


def get_vectorization_service() -> VectorizationService:
    global _vectorization_service
    if _vectorization_service is None:
        _vectorization_service = VectorizationService(get_store(), get_embedding_client(), get_record_source())
    return _vectorization_service


def set_services(store=None, embedding_client=None, record_source=None, lexical=None):
    """Replace service dependencies and drop the services built on top of them."""
    global _store, _embedding_client, _record_source, _lexical, _search_service, _vectorization_service
    if store is not None:
        _store = store
    if embedding_client is not None:
        _embedding_client = embedding_client
    if record_source is not None:
        _record_source = record_source
    if lexical is not None:
        _lexical = lexical
    _search_service = None
    _vectorization_service = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    issues = config.validate_config()
    for issue in issues:
        logger.warning(f"Configuration issue: {issue}")

    store = get_store()
    # DimensionMismatch here is fatal: the stored index was built for another model
    store.load()

    if config.is_flush_enabled():
        heartbeat.register_persist_task(store)
        heartbeat.start_background()

    try:
        yield
    finally:
        heartbeat.stop()
        heartbeat.unregister_task(heartbeat.PERSIST_TASK)
        try:
            store.persist()
        except PersistenceError as e:
            logger.error(f"Final index persist failed: {e}")


# Initialize the FastAPI application
app = FastAPI(
    title="Hybrid Search API",
    version=VERSION,
    description="Hybrid lexical + semantic retrieval over inquiries, responses and FAQ entries",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan,
)


def _error(status_code: int, exc: Exception, reason: str = None) -> JSONResponse:
    content = {"detail": str(exc), "error_type": type(exc).__name__}
    if reason:
        content["reason"] = reason
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(DimensionMismatch)
async def dimension_mismatch_handler(request: Request, exc: DimensionMismatch):
    return _error(400, exc)


@app.exception_handler(SourceNotFound)
async def source_not_found_handler(request: Request, exc: SourceNotFound):
    return _error(404, exc)


@app.exception_handler(EmbeddingProviderError)
async def embedding_error_handler(request: Request, exc: EmbeddingProviderError):
    status_code = 504 if exc.reason == EmbeddingProviderError.TIMEOUT else 502
    return _error(status_code, exc, exc.reason)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    return _error(500, exc)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return _error(400, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    logger.error(f"Unhandled exception: {exc}")
    content = {"detail": "Internal server error", "error_type": type(exc).__name__}
    if debug_enabled():
        content["debug"] = str(exc)
    return JSONResponse(status_code=500, content=content)


def _to_model(result: HybridResult) -> HybridResultModel:
    return HybridResultModel(**asdict(result))


def _from_model(model: HybridResultModel) -> HybridResult:
    return HybridResult(**model.model_dump())


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Check system health."""
    store = get_store()
    return HealthResponse(
        status="healthy",
        version=VERSION,
        total_vectors=len(store),
        embed_provider=config.EMBED_PROVIDER,
        heartbeat=heartbeat.get_status(),
    )


@app.post("/search/hybrid", response_model=HybridSearchResponse)
def hybrid_search_endpoint(request: HybridSearchRequest,
                           service: HybridSearchService = Depends(get_search_service)):
    """Fused lexical + semantic search with pagination."""
    filters = SearchFilters(**request.filters.model_dump()) if request.filters else None
    options = HybridSearchOptions(
        vector_weight=request.vector_weight,
        text_weight=request.text_weight,
        limit=request.limit,
        page=request.page,
        filters=filters,
    )
    page = service.hybrid_search(request.query, options)
    return HybridSearchResponse(
        items=[_to_model(item) for item in page.items],
        total=page.total,
        page=page.page,
        limit=page.limit,
        total_pages=page.total_pages,
        has_next=page.has_next,
        has_prev=page.has_prev,
    )


@app.post("/search/rank", response_model=RankResponse)
def rank_endpoint(request: RankRequest, service: HybridSearchService = Depends(get_search_service)):
    """Apply contextual boosts to a list of fused results."""
    context = RankingContext(**request.context.model_dump()) if request.context else None
    ranked = service.rank_search_results([_from_model(r) for r in request.results], request.query, context)
    return RankResponse(results=[_to_model(r) for r in ranked])


@app.post("/search/rag", response_model=RAGResponse)
def rag_endpoint(request: RAGRequest, service: HybridSearchService = Depends(get_search_service)):
    """Vector-only retrieval with a similarity threshold and a context string."""
    result = service.rag_search(request.query, request.scope_id, request.category, request.max_results)
    return RAGResponse(
        query=result.query,
        results=[VectorHit(id=hit.id, score=hit.score, metadata=hit.metadata.to_dict()) for hit in result.results],
        context=result.context,
        total_results=result.total_results,
    )


@app.get("/search/stats", response_model=SearchStatsResponse)
def search_stats_endpoint(service: HybridSearchService = Depends(get_search_service)):
    return SearchStatsResponse(**service.get_search_stats())


@app.post("/vectors/{record_type}/{record_id}", response_model=VectorizeResponse)
def vectorize_endpoint(record_type: str, record_id: str,
                       service: VectorizationService = Depends(get_vectorization_service)):
    """Vectorize one record from the record source."""
    metadata = service.vectorize(record_type, record_id)
    return VectorizeResponse(record_type=record_type, record_id=record_id, success=True, title=metadata.title)


@app.delete("/vectors/{record_id}", response_model=DeleteVectorResponse)
def delete_vector_endpoint(record_id: str, service: VectorizationService = Depends(get_vectorization_service)):
    return DeleteVectorResponse(record_id=record_id, deleted=service.remove(record_id))


@app.get("/vectors/stats", response_model=VectorStatsResponse)
def vector_stats_endpoint(service: VectorizationService = Depends(get_vectorization_service)):
    stats = service.get_vectorization_stats()
    return VectorStatsResponse(
        total_vectors=stats["total_vectors"],
        vectors_by_type=stats["vectors_by_type"],
        records_by_type=stats["records_by_type"],
        index_config=service.store.config.to_dict(),
    )


@app.post("/admin/reindex", response_model=ReindexResponse)
def reindex_endpoint(service: VectorizationService = Depends(get_vectorization_service)):
    """Rebuild the vector index from every record in the record source."""
    report = service.reindex_all()
    return ReindexResponse(**asdict(report))


@app.post("/admin/persist", response_model=PersistResponse)
def persist_endpoint():
    store = get_store()
    path = store.persist()
    return PersistResponse(path=str(path), total_vectors=len(store))
