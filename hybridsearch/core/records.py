"""
Upstream record source: the inquiries, responses and FAQ entries that get vectorized.
Record storage is owned elsewhere; this module only defines the read contract.
"""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from hybridsearch.vector.types import parse_timestamp

from .errors import SourceNotFound

INQUIRY = "inquiry"
RESPONSE = "response"
FAQ_TYPE = "faq"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Inquiry:
    id: str
    scope_id: str
    title: str
    content: str
    category: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = _utcnow()


@dataclass
class Response:
    """An answer attached to a parent inquiry."""
    id: str
    inquiry_id: str
    content: str
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = _utcnow()


@dataclass
class FAQ:
    id: str
    scope_id: str
    question: str
    answer: str
    category: Optional[str] = None
    created_at: datetime = None

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = _utcnow()


class RecordSource(ABC):
    """Read-only access to the records that feed the vector index."""

    @abstractmethod
    def get(self, record_type: str, record_id: str):
        """Fetch one record. Raises SourceNotFound when it does not exist."""
        pass

    @abstractmethod
    def list_ids(self, record_type: str) -> List[str]:
        """List every record id of the given type."""
        pass

    @abstractmethod
    def record_types(self) -> List[str]:
        """Record types this source can serve."""
        pass


class InMemoryRecordSource(RecordSource):
    """Dictionary-backed record source for tests, demos and the reindex CLI."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, object]] = {INQUIRY: {}, RESPONSE: {}, FAQ_TYPE: {}}

    def add_inquiry(self, inquiry: Inquiry) -> Inquiry:
        with self._lock:
            self._records[INQUIRY][inquiry.id] = inquiry
        return inquiry

    def add_response(self, response: Response) -> Response:
        with self._lock:
            self._records[RESPONSE][response.id] = response
        return response

    def add_faq(self, faq: FAQ) -> FAQ:
        with self._lock:
            self._records[FAQ_TYPE][faq.id] = faq
        return faq

    def remove(self, record_type: str, record_id: str) -> bool:
        with self._lock:
            return self._records.get(record_type, {}).pop(record_id, None) is not None

    def get(self, record_type: str, record_id: str):
        with self._lock:
            record = self._records.get(record_type, {}).get(record_id)
        if record is None:
            raise SourceNotFound(record_type, record_id)
        return record

    def list_ids(self, record_type: str) -> List[str]:
        with self._lock:
            return list(self._records.get(record_type, {}).keys())

    def record_types(self) -> List[str]:
        return [INQUIRY, RESPONSE, FAQ_TYPE]

    def count(self, record_type: str) -> int:
        with self._lock:
            return len(self._records.get(record_type, {}))

    @classmethod
    def from_json(cls, path: str) -> "InMemoryRecordSource":
        """
        Load records from a JSON export of the form
        ``{"inquiries": [...], "responses": [...], "faqs": [...]}``.

        ``created_at`` values are ISO-8601 strings; missing ones default to now.
        """
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)

        source = cls()
        for item in data.get("inquiries", []):
            source.add_inquiry(Inquiry(**_with_timestamp(item)))
        for item in data.get("responses", []):
            source.add_response(Response(**_with_timestamp(item)))
        for item in data.get("faqs", []):
            source.add_faq(FAQ(**_with_timestamp(item)))
        return source


def _with_timestamp(item: dict) -> dict:
    fields = dict(item)
    if fields.get("created_at"):
        fields["created_at"] = parse_timestamp(fields["created_at"])
    return fields
