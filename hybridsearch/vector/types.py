"""
Vector index data types.
Records, metadata, index configuration and search results.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import numpy as np


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO timestamp (or datetime) into an aware UTC datetime."""
    if isinstance(value, datetime):
        return as_utc(value)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


@dataclass
class VectorMetadata:
    """Metadata stored alongside each indexed vector."""

    record_type: str
    """Record type tag: inquiry, response, faq (open set)"""

    scope_id: str
    """Owning application scope"""

    created_at: datetime
    """Creation time of the source record"""

    category: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    title: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary for JSON serialization."""
        return {
            "record_type": self.record_type,
            "scope_id": self.scope_id,
            "created_at": self.created_at.isoformat(),
            "category": self.category,
            "status": self.status,
            "priority": self.priority,
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VectorMetadata":
        """Create metadata from a stored dictionary. Unknown keys are ignored."""
        return cls(
            record_type=data.get("record_type") or data.get("type"),
            scope_id=data.get("scope_id") or data.get("appId") or "",
            created_at=parse_timestamp(data.get("created_at") or data.get("createdAt")),
            category=data.get("category"),
            status=data.get("status"),
            priority=data.get("priority"),
            title=data.get("title"),
        )


@dataclass
class VectorRecord:
    """Represents a vector record with metadata."""

    id: str
    """Unique identifier for the vector record"""

    vector: np.ndarray
    """The vector representation of the content"""

    metadata: VectorMetadata
    """Metadata associated with the vector"""


@dataclass(frozen=True)
class IndexConfig:
    """Immutable index configuration. nlist/nprobe are reserved for approximate search."""

    dimension: int
    index_type: str = "IndexFlatIP"
    metric_type: str = "METRIC_INNER_PRODUCT"
    nlist: int = 100
    nprobe: int = 10

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension,
            "index_type": self.index_type,
            "metric_type": self.metric_type,
            "nlist": self.nlist,
            "nprobe": self.nprobe,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndexConfig":
        return cls(
            dimension=int(data["dimension"]),
            index_type=data.get("index_type") or data.get("indexType") or "IndexFlatIP",
            metric_type=data.get("metric_type") or data.get("metricType") or "METRIC_INNER_PRODUCT",
            nlist=int(data.get("nlist", 100)),
            nprobe=int(data.get("nprobe", 10)),
        )


@dataclass
class IndexStats:
    """Operational snapshot of the vector index."""

    total_vectors: int
    index_config: IndexConfig
    by_type: Dict[str, int] = field(default_factory=dict)


@dataclass
class VectorResult:
    """Represents a search result from vector store."""

    id: str
    """Identifier for the matching record"""

    score: float
    """Similarity score of the match (0-1)"""

    metadata: VectorMetadata
    """Metadata associated with the matched record"""
