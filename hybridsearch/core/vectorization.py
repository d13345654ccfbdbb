"""
Vectorization pipeline: turns upstream records into index entries.
Builds per-type embedding text, embeds it and upserts it with derived metadata.
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from hybridsearch.vector.types import VectorMetadata
from util.logging import logger

from . import config
from .errors import HybridSearchError
from .records import FAQ_TYPE, INQUIRY, RESPONSE, RecordSource

# builder(record, source) -> (embedding text, metadata)
TextBuilder = Callable[[object, RecordSource], Tuple[str, VectorMetadata]]


def build_inquiry(inquiry, source: RecordSource) -> Tuple[str, VectorMetadata]:
    text = f"{inquiry.title} {inquiry.content}"
    return text, VectorMetadata(
        record_type=INQUIRY,
        scope_id=inquiry.scope_id,
        created_at=inquiry.created_at,
        category=inquiry.category,
        status=inquiry.status,
        priority=inquiry.priority,
        title=inquiry.title,
    )


def build_response(response, source: RecordSource) -> Tuple[str, VectorMetadata]:
    """Responses embed their own content but take scope and labels from the parent inquiry."""
    inquiry = source.get(INQUIRY, response.inquiry_id)
    return response.content, VectorMetadata(
        record_type=RESPONSE,
        scope_id=inquiry.scope_id,
        created_at=response.created_at,
        category=inquiry.category,
        status=inquiry.status,
        priority=inquiry.priority,
        title=f"Response: {inquiry.title}",
    )


def build_faq(faq, source: RecordSource) -> Tuple[str, VectorMetadata]:
    text = f"{faq.question} {faq.answer}"
    return text, VectorMetadata(
        record_type=FAQ_TYPE,
        scope_id=faq.scope_id,
        created_at=faq.created_at,
        category=faq.category,
        title=faq.question,
    )


@dataclass
class ReindexReport:
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    failed_ids: List[str] = field(default_factory=list)
    duration_ms: float = 0.0


class VectorizationService:
    """Keeps the vector index in step with the record source."""

    def __init__(self, store, embedding_client, source: RecordSource, concurrency: Optional[int] = None):
        self.store = store
        self.embedding_client = embedding_client
        self.source = source
        self.concurrency = max(1, concurrency or config.REINDEX_CONCURRENCY)
        self._builders: Dict[str, TextBuilder] = {
            INQUIRY: build_inquiry,
            RESPONSE: build_response,
            FAQ_TYPE: build_faq,
        }

    def register_builder(self, record_type: str, builder: TextBuilder):
        """Register (or replace) the text builder for a record type."""
        self._builders[record_type] = builder

    def supported_types(self) -> List[str]:
        return list(self._builders.keys())

    def vectorize(self, record_type: str, record_id: str) -> VectorMetadata:
        """
        Embed one record and upsert it into the index.

        Raises:
            ValueError: Unsupported record type
            SourceNotFound: The record (or a response's parent inquiry) does not exist
            EmbeddingProviderError: The embedding call failed
        """
        builder = self._builders.get(record_type)
        if builder is None:
            raise ValueError(f"Unsupported record type: {record_type}")

        record = self.source.get(record_type, record_id)
        text, metadata = builder(record, self.source)
        vector = self.embedding_client.embed(text)
        self.store.upsert(record_id, vector, metadata)

        logger.log_vector_operation("vectorize", record_id, {"record_type": record_type})
        return metadata

    def vectorize_safely(self, record_type: str, record_id: str) -> bool:
        """Vectorize as a side effect of a record write. Failures are logged, never raised."""
        try:
            self.vectorize(record_type, record_id)
            return True
        except Exception as e:
            logger.log_vector_operation("vectorize", record_id, {
                "record_type": record_type,
                "error_type": type(e).__name__,
                "error": str(e),
                "expected": isinstance(e, (HybridSearchError, ValueError)),
            }, status="failed")
            return False

    def remove(self, record_id: str) -> bool:
        return self.store.delete(record_id)

    def reindex_all(self) -> ReindexReport:
        """
        Re-vectorize every record of every supported type.

        Per-record failures are logged, counted and skipped.

        Returns:
            ReindexReport with totals, per-type success counts and failed ids
        """
        start = time.time()
        report = ReindexReport()

        jobs = []
        for record_type in self.source.record_types():
            if record_type not in self._builders:
                logger.warning(f"Skipping record type without a text builder: {record_type}")
                continue
            for record_id in self.source.list_ids(record_type):
                jobs.append((record_type, record_id))
            report.by_type.setdefault(record_type, 0)

        report.total = len(jobs)

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="reindex") as pool:
            futures = {pool.submit(self.vectorize, record_type, record_id): (record_type, record_id)
                       for record_type, record_id in jobs}
            for future in as_completed(futures):
                record_type, record_id = futures[future]
                try:
                    future.result()
                except Exception as e:
                    report.failed += 1
                    report.failed_ids.append(record_id)
                    logger.log_vector_operation("vectorize", record_id, {
                        "record_type": record_type,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    }, status="failed")
                else:
                    report.succeeded += 1
                    report.by_type[record_type] += 1

        report.duration_ms = (time.time() - start) * 1000
        logger.log_reindex(report.total, report.succeeded, report.failed, report.duration_ms,
                           {"by_type": report.by_type})
        return report

    def get_vectorization_stats(self) -> Dict[str, object]:
        stats = self.store.stats()
        return {
            "total_vectors": stats.total_vectors,
            "vectors_by_type": stats.by_type,
            "records_by_type": {
                record_type: len(self.source.list_ids(record_type))
                for record_type in self.source.record_types()
            },
        }
