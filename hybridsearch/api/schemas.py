"""
Request and response models for the hybrid search API.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime

from ..core import config


class SearchFiltersModel(BaseModel):
    scope_id: Optional[str] = None
    category: List[str] = Field(default_factory=list)
    status: List[str] = Field(default_factory=list)
    priority: List[str] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class HybridSearchRequest(BaseModel):
    query: str
    vector_weight: float = Field(default_factory=lambda: config.SEARCH_DEFAULT_VECTOR_WEIGHT)
    text_weight: float = Field(default_factory=lambda: config.SEARCH_DEFAULT_TEXT_WEIGHT)
    limit: int = Field(default_factory=lambda: config.SEARCH_DEFAULT_LIMIT)
    page: int = 1
    filters: Optional[SearchFiltersModel] = None

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v

    @field_validator('vector_weight', 'text_weight')
    @classmethod
    def weight_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError('weights must be >= 0')
        return v

    @field_validator('limit')
    @classmethod
    def limit_must_be_in_range(cls, v):
        if v < 1 or v > 100:
            raise ValueError('limit must be between 1 and 100')
        return v

    @field_validator('page')
    @classmethod
    def page_must_be_positive(cls, v):
        if v < 1:
            raise ValueError('page must be >= 1')
        return v


class HybridResultModel(BaseModel):
    id: str
    title: str
    content: str = ""
    record_type: str
    vector_score: float = 0.0
    text_score: float = 0.0
    combined_score: float = 0.0
    highlights: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class HybridSearchResponse(BaseModel):
    items: List[HybridResultModel]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class RankingContextModel(BaseModel):
    scope_id: Optional[str] = None
    recent_categories: List[str] = Field(default_factory=list)
    preferred_types: List[str] = Field(default_factory=list)


class RankRequest(BaseModel):
    query: str = ""
    results: List[HybridResultModel]
    context: Optional[RankingContextModel] = None


class RankResponse(BaseModel):
    results: List[HybridResultModel]


class RAGRequest(BaseModel):
    query: str
    scope_id: Optional[str] = None
    category: Optional[str] = None
    max_results: int = Field(default_factory=lambda: config.RAG_DEFAULT_LIMIT)

    @field_validator('query')
    @classmethod
    def query_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('query cannot be empty')
        return v

    @field_validator('max_results')
    @classmethod
    def max_results_must_be_in_range(cls, v):
        if v < 1 or v > 50:
            raise ValueError('max_results must be between 1 and 50')
        return v


class VectorHit(BaseModel):
    id: str
    score: float
    metadata: Dict[str, Any]


class RAGResponse(BaseModel):
    query: str
    results: List[VectorHit]
    context: str
    total_results: int


class PopularQuery(BaseModel):
    query: str
    count: int


class SearchStatsResponse(BaseModel):
    total_searches: int
    average_response_time_ms: float
    popular_queries: List[PopularQuery]


class VectorizeResponse(BaseModel):
    record_type: str
    record_id: str
    success: bool
    title: Optional[str] = None


class DeleteVectorResponse(BaseModel):
    record_id: str
    deleted: bool


class VectorStatsResponse(BaseModel):
    total_vectors: int
    vectors_by_type: Dict[str, int]
    records_by_type: Dict[str, int]
    index_config: Dict[str, Any]


class ReindexResponse(BaseModel):
    total: int
    succeeded: int
    failed: int
    by_type: Dict[str, int]
    failed_ids: List[str]
    duration_ms: float


class PersistResponse(BaseModel):
    path: str
    total_vectors: int


class HealthResponse(BaseModel):
    status: str
    version: str
    total_vectors: int
    embed_provider: str
    heartbeat: Dict[str, Any]


class ErrorResponse(BaseModel):
    detail: str
    error_type: str
    reason: Optional[str] = None
