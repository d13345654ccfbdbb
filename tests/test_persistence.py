"""
Index snapshot persistence: round trip, atomic replace, legacy layout and load failures.
"""

import json
import os
from datetime import datetime, timezone
from unittest.mock import patch

import numpy as np
import pytest

from hybridsearch.core.errors import DimensionMismatch, PersistenceError
from hybridsearch.vector.index import InMemoryVectorStore
from hybridsearch.vector.types import IndexConfig, VectorMetadata


def make_meta(**overrides):
    fields = dict(
        record_type="inquiry",
        scope_id="app-1",
        created_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        category="billing",
        status="open",
        priority="high",
        title="Refund request",
    )
    fields.update(overrides)
    return VectorMetadata(**fields)


@pytest.fixture
def index_path(tmp_path):
    return tmp_path / "data" / "vector_index.json"


def test_persist_load_round_trip(index_path):
    """A fresh store loads back the same id, vector and metadata triples."""
    store = InMemoryVectorStore(IndexConfig(dimension=4), index_path=str(index_path))
    store.upsert("a", [1.0, 2.0, 3.0, 4.0], make_meta())
    store.upsert("b", [0.0, 1.0, 0.0, 0.0], make_meta(record_type="faq", title=None, status=None))
    store.upsert("z", [0.0, 0.0, 0.0, 0.0], make_meta(record_type="response"))
    store.persist()

    restored = InMemoryVectorStore(IndexConfig(dimension=4), index_path=str(index_path))
    assert restored.load() == 3

    assert len(restored) == 3
    for record_id in ["a", "b", "z"]:
        original = store.get(record_id)
        loaded = restored.get(record_id)
        assert np.allclose(original.vector, loaded.vector)
        assert loaded.metadata == original.metadata


def test_persist_writes_expected_layout(index_path):
    """The snapshot holds config, a vector list and a timestamp."""
    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    store.upsert("a", [1.0, 0.0], make_meta())
    store.persist()

    payload = json.loads(index_path.read_text())
    assert payload["config"]["dimension"] == 2
    assert payload["config"]["index_type"] == "IndexFlatIP"
    assert payload["vectors"][0]["id"] == "a"
    assert payload["vectors"][0]["metadata"]["created_at"] == "2024-05-01T12:30:00+00:00"
    assert "timestamp" in payload


def test_persist_leaves_no_temp_files(index_path):
    """Only the final snapshot remains in the directory after persisting twice."""
    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    store.upsert("a", [1.0, 0.0], make_meta())
    store.persist()
    store.upsert("b", [0.0, 1.0], make_meta())
    store.persist()

    assert os.listdir(index_path.parent) == ["vector_index.json"]
    assert len(json.loads(index_path.read_text())["vectors"]) == 2


def test_persist_failure_raises_and_keeps_old_snapshot(index_path):
    """A failed replace surfaces PersistenceError and leaves the previous file intact."""
    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    store.upsert("a", [1.0, 0.0], make_meta())
    store.persist()
    before = index_path.read_text()

    store.upsert("b", [0.0, 1.0], make_meta())
    with patch("hybridsearch.vector.index.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(PersistenceError):
            store.persist()

    assert index_path.read_text() == before
    assert os.listdir(index_path.parent) == ["vector_index.json"]


def test_persist_without_path_raises():
    """A store with no configured path cannot persist."""
    store = InMemoryVectorStore(IndexConfig(dimension=2))
    with pytest.raises(PersistenceError):
        store.persist()


def test_load_missing_file_starts_empty(index_path):
    """Loading a missing snapshot yields an empty index."""
    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    store.upsert("stale", [1.0, 0.0], make_meta())

    assert store.load() == 0
    assert len(store) == 0


def test_load_corrupt_file_starts_empty(index_path):
    """An unreadable snapshot is logged and treated as empty."""
    index_path.parent.mkdir(parents=True)
    index_path.write_text("{not json")

    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    assert store.load() == 0
    assert len(store) == 0


def test_load_dimension_mismatch_in_config(index_path):
    """A snapshot built for another dimension is a fatal error."""
    index_path.parent.mkdir(parents=True)
    index_path.write_text(json.dumps({"config": {"dimension": 3}, "vectors": [], "timestamp": "x"}))

    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    with pytest.raises(DimensionMismatch):
        store.load()


def test_load_dimension_mismatch_in_vector(index_path):
    """A stored vector of the wrong length is a fatal error."""
    index_path.parent.mkdir(parents=True)
    index_path.write_text(json.dumps({
        "config": {"dimension": 2},
        "vectors": [{"id": "a", "vector": [1.0, 0.0, 0.0], "metadata": make_meta().to_dict()}],
    }))

    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    with pytest.raises(DimensionMismatch):
        store.load()


def test_load_legacy_keyed_layout(index_path):
    """Older snapshots keyed vectors by id with camelCase metadata are still readable."""
    index_path.parent.mkdir(parents=True)
    index_path.write_text(json.dumps({
        "config": {"dimension": 2, "indexType": "IndexFlatIP", "metricType": "METRIC_INNER_PRODUCT"},
        "vectors": {
            "inq-1": {
                "id": "inq-1",
                "vector": [0.0, 2.0],
                "metadata": {"type": "inquiry", "appId": "app-9", "createdAt": "2024-01-01T00:00:00Z",
                             "title": "Login issue", "unknown": 1},
            }
        },
        "timestamp": "2024-01-02T00:00:00Z",
    }))

    store = InMemoryVectorStore(IndexConfig(dimension=2), index_path=str(index_path))
    assert store.load() == 1

    loaded = store.get("inq-1")
    assert loaded.metadata.record_type == "inquiry"
    assert loaded.metadata.scope_id == "app-9"
    assert loaded.metadata.title == "Login issue"
    assert loaded.metadata.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert np.allclose(loaded.vector, [0.0, 1.0])
