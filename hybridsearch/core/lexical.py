"""
Lexical (full-text) search contract.
The full-text engine lives outside this package; only its result shape is fixed here.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class SearchFilters:
    """Optional filters applied by both engines. Empty lists mean no restriction."""
    scope_id: Optional[str] = None
    category: List[str] = field(default_factory=list)
    status: List[str] = field(default_factory=list)
    priority: List[str] = field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


@dataclass
class LexicalResult:
    """A full-text hit. ``score`` is raw and unbounded."""
    id: str
    title: str
    content: str
    record_type: str
    score: float
    highlights: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


class ILexicalSearch(ABC):
    """Abstract interface for full-text search engines."""

    @abstractmethod
    def search(self, query: str, filters: Optional[SearchFilters] = None, limit: int = 20) -> List[LexicalResult]:
        """Return at most ``limit`` hits ordered by the engine's own relevance."""
        pass


class NullLexicalSearch(ILexicalSearch):
    """No full-text engine wired; hybrid search degrades to vector-only."""

    def search(self, query: str, filters: Optional[SearchFilters] = None, limit: int = 20) -> List[LexicalResult]:
        return []


class StaticLexicalSearch(ILexicalSearch):
    """Returns a fixed batch of hits regardless of query (tests and demos)."""

    def __init__(self, results: Optional[List[LexicalResult]] = None):
        self.results = list(results or [])
        self.calls = []

    def search(self, query: str, filters: Optional[SearchFilters] = None, limit: int = 20) -> List[LexicalResult]:
        self.calls.append({"query": query, "filters": filters, "limit": limit})
        if limit <= 0:
            return []
        return [replace(result) for result in self.results[:limit]]
