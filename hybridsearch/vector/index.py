"""
Vector index: exact cosine similarity over L2-normalised vectors.
Owns the row buffer, the id lookup and the JSON snapshot on disk.
"""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from hybridsearch.core.errors import DimensionMismatch, PersistenceError
from util.logging import logger

from .types import IndexConfig, IndexStats, VectorMetadata, VectorRecord, VectorResult


class IVectorStore(ABC):
    """Abstract interface for vector storage operations."""

    @abstractmethod
    def upsert(self, record_id: str, vector: Sequence[float], metadata: VectorMetadata) -> None:
        """Insert or replace a vector record."""
        pass

    @abstractmethod
    def batch_upsert(self, records: List[VectorRecord]) -> None:
        """Insert or replace multiple vector records."""
        pass

    @abstractmethod
    def search(self, query_vector: Sequence[float], limit: int = 10) -> List[VectorResult]:
        """Search for similar vectors and return ranked results."""
        pass

    @abstractmethod
    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID. Returns False when absent."""
        pass

    @abstractmethod
    def stats(self) -> IndexStats:
        """Return an operational snapshot of the index."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Clear all records from the store."""
        pass


def _normalize(vector: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vector)
    if norm > 0:
        return vector / norm
    return vector


class InMemoryVectorStore(IVectorStore):
    """In-memory vector store backed by a contiguous numpy row buffer.

    Rows live in ``self._rows[:len(self._ids)]``; ``self._ids[i]`` names row i
    and ``self._positions`` maps id back to its row. Deletion moves the last
    row into the freed slot, so insertion order is only kept for rows that
    were never displaced. Every public method takes the same re-entrant lock.
    """

    _INITIAL_CAPACITY = 64

    def __init__(self, config: IndexConfig, index_path: Optional[str] = None):
        self.config = config
        self.index_path = Path(index_path) if index_path else None
        self._lock = threading.RLock()
        self._reset()

    def _reset(self):
        self._rows = np.zeros((self._INITIAL_CAPACITY, self.config.dimension), dtype=np.float64)
        self._ids: List[str] = []
        self._seq: List[int] = []
        self._positions: Dict[str, int] = {}
        self._metadata: Dict[str, VectorMetadata] = {}
        self._next_seq = 0

    @property
    def dimension(self) -> int:
        return self.config.dimension

    def _check_dimension(self, vector, context: str = "vector") -> np.ndarray:
        array = np.asarray(vector, dtype=np.float64).reshape(-1)
        if array.shape[0] != self.config.dimension:
            raise DimensionMismatch(self.config.dimension, array.shape[0], context)
        return array

    def _ensure_capacity(self, needed: int):
        capacity = self._rows.shape[0]
        if needed <= capacity:
            return
        while capacity < needed:
            capacity *= 2
        grown = np.zeros((capacity, self.config.dimension), dtype=np.float64)
        grown[: len(self._ids)] = self._rows[: len(self._ids)]
        self._rows = grown

    def _put(self, record_id: str, vector: np.ndarray, metadata: VectorMetadata):
        row = self._positions.get(record_id)
        if row is None:
            row = len(self._ids)
            self._ensure_capacity(row + 1)
            self._ids.append(record_id)
            self._seq.append(self._next_seq)
            self._next_seq += 1
            self._positions[record_id] = row
        self._rows[row] = _normalize(vector)
        self._metadata[record_id] = metadata

    def upsert(self, record_id: str, vector: Sequence[float], metadata: VectorMetadata) -> None:
        """Insert or replace a vector record.

        Raises:
            DimensionMismatch: If the vector length differs from the index dimension
        """
        array = self._check_dimension(vector)
        with self._lock:
            replaced = record_id in self._positions
            self._put(record_id, array, metadata)
        logger.log_vector_operation(
            "upsert", record_id, {"record_type": metadata.record_type, "replaced": replaced}
        )

    def batch_upsert(self, records: List[VectorRecord]) -> None:
        """Validate every record, then upsert them all under one lock."""
        arrays = [self._check_dimension(record.vector) for record in records]
        with self._lock:
            for record, array in zip(records, arrays):
                self._put(record.id, array, record.metadata)
        logger.log_operation("vector.batch_upsert", "success", {"count": len(records)})

    def delete(self, record_id: str) -> bool:
        """Delete a vector record by ID."""
        with self._lock:
            row = self._positions.pop(record_id, None)
            if row is None:
                found = False
            else:
                last = len(self._ids) - 1
                if row != last:
                    moved_id = self._ids[last]
                    self._rows[row] = self._rows[last]
                    self._ids[row] = moved_id
                    self._seq[row] = self._seq[last]
                    self._positions[moved_id] = row
                self._rows[last] = 0.0
                self._ids.pop()
                self._seq.pop()
                del self._metadata[record_id]
                found = True

        if found:
            logger.log_vector_operation("delete", record_id, {"result": "deleted"})
        else:
            logger.log_vector_operation("delete", record_id, {"result": "not_found"}, status="not_found")
        return found

    def search(self, query_vector: Sequence[float], limit: int = 10) -> List[VectorResult]:
        """Search for similar vectors and return ranked results.

        Scores are cosine similarities clamped to [0, 1]. Equal scores keep
        insertion order.

        Raises:
            DimensionMismatch: If the query length differs from the index dimension
        """
        query = self._check_dimension(query_vector, context="query")
        if limit <= 0:
            return []

        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm

        with self._lock:
            count = len(self._ids)
            if count == 0:
                return []
            # Clamp before ranking so every negative cosine ties at 0
            scores = np.clip(self._rows[:count] @ query, 0.0, 1.0)
            # Order rows by insertion sequence so the stable sort breaks ties by it
            by_seq = np.argsort(np.asarray(self._seq, dtype=np.int64), kind="stable")
            ranked = by_seq[np.argsort(-scores[by_seq], kind="stable")][:limit]
            results = [
                VectorResult(
                    id=self._ids[row],
                    score=float(scores[row]),
                    metadata=replace(self._metadata[self._ids[row]]),
                )
                for row in ranked
            ]
        return results

    def get(self, record_id: str) -> Optional[VectorRecord]:
        """Return a copy of the stored (normalised) record, or None."""
        with self._lock:
            row = self._positions.get(record_id)
            if row is None:
                return None
            return VectorRecord(
                id=record_id,
                vector=self._rows[row].copy(),
                metadata=replace(self._metadata[record_id]),
            )

    def stats(self) -> IndexStats:
        with self._lock:
            by_type = Counter(meta.record_type for meta in self._metadata.values())
            return IndexStats(
                total_vectors=len(self._ids),
                index_config=self.config,
                by_type=dict(by_type),
            )

    def clear(self) -> None:
        """Clear all records from the store."""
        with self._lock:
            self._reset()
        logger.log_operation("vector.clear", "success")

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def __contains__(self, record_id) -> bool:
        with self._lock:
            return record_id in self._positions

    def _ordered_rows(self) -> Iterable[int]:
        return sorted(range(len(self._ids)), key=lambda row: self._seq[row])

    # Persistence

    def _resolve_path(self, path) -> Path:
        target = Path(path) if path else self.index_path
        if target is None:
            raise PersistenceError("No index path configured")
        return target

    def persist(self, path: Optional[str] = None) -> Path:
        """Write a JSON snapshot of the index, replacing the file atomically.

        Raises:
            PersistenceError: If the snapshot cannot be written
        """
        target = self._resolve_path(path)

        with self._lock:
            rows = list(self._ordered_rows())
            snapshot = [
                (self._ids[row], self._rows[row].copy(), self._metadata[self._ids[row]])
                for row in rows
            ]

        payload = {
            "config": self.config.to_dict(),
            "vectors": [
                {"id": record_id, "vector": vector.tolist(), "metadata": metadata.to_dict()}
                for record_id, vector, metadata in snapshot
            ],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        tmp_name = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".tmp", dir=target.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle)
            os.replace(tmp_name, target)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.log_persistence("persist", target, "failed", {"error": str(e)})
            raise PersistenceError(f"Failed to persist index: {e}", path=str(target)) from e

        logger.log_persistence("persist", target, details={"vectors": len(snapshot)})
        return target

    def load(self, path: Optional[str] = None) -> int:
        """Replace the in-memory index with the snapshot at ``path``.

        A missing or unreadable snapshot leaves an empty index. Returns the
        number of vectors loaded.

        Raises:
            DimensionMismatch: If the snapshot was built for a different dimension
        """
        target = self._resolve_path(path)

        if not target.exists():
            with self._lock:
                self._reset()
            logger.log_persistence("load", target, "empty", {"reason": "missing"})
            return 0

        try:
            with open(target, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
            stored_config = payload.get("config") or {}
            entries = payload.get("vectors") or []
            if isinstance(entries, dict):
                # Older snapshots keyed vectors by id
                entries = [dict(entry, id=entry.get("id", key)) for key, entry in entries.items()]
        except (OSError, ValueError, AttributeError) as e:
            with self._lock:
                self._reset()
            logger.log_persistence("load", target, "empty", {"reason": "unreadable", "error": str(e)})
            return 0

        stored_dimension = stored_config.get("dimension")
        if stored_dimension is not None and int(stored_dimension) != self.config.dimension:
            raise DimensionMismatch(self.config.dimension, int(stored_dimension), "stored index")

        records = []
        try:
            for entry in entries:
                vector = np.asarray(entry["vector"], dtype=np.float64).reshape(-1)
                if vector.shape[0] != self.config.dimension:
                    raise DimensionMismatch(self.config.dimension, vector.shape[0], f"stored vector {entry['id']}")
                records.append(VectorRecord(
                    id=str(entry["id"]),
                    vector=vector,
                    metadata=VectorMetadata.from_dict(entry.get("metadata") or {}),
                ))
        except DimensionMismatch:
            raise
        except (KeyError, TypeError, ValueError) as e:
            with self._lock:
                self._reset()
            logger.log_persistence("load", target, "empty", {"reason": "malformed", "error": str(e)})
            return 0

        with self._lock:
            self._reset()
            for record in records:
                self._put(record.id, record.vector, record.metadata)

        logger.log_persistence("load", target, details={"vectors": len(records)})
        return len(records)
