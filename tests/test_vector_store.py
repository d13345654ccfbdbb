"""
In-memory vector index: upsert, delete, exact search ordering and bounds.
"""

import threading
from datetime import datetime, timezone

import numpy as np
import pytest

from hybridsearch.core.errors import DimensionMismatch
from hybridsearch.vector.index import IVectorStore, InMemoryVectorStore
from hybridsearch.vector.types import IndexConfig, VectorMetadata, VectorRecord


def make_meta(record_type="inquiry", scope_id="app-1", title=None, category=None):
    return VectorMetadata(
        record_type=record_type,
        scope_id=scope_id,
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        category=category,
        title=title,
    )


@pytest.fixture
def store():
    return InMemoryVectorStore(IndexConfig(dimension=3))


def test_vector_store_interface(store):
    """Test that InMemoryVectorStore implements IVectorStore interface."""
    assert isinstance(store, IVectorStore)


def test_upsert_normalizes_to_unit_length(store):
    """Stored vectors have unit L2 norm."""
    store.upsert("a", [3.0, 4.0, 0.0], make_meta())

    stored = store.get("a")
    assert np.isclose(np.linalg.norm(stored.vector), 1.0)
    assert np.allclose(stored.vector, [0.6, 0.8, 0.0])


def test_zero_vector_stored_as_is(store):
    """A zero vector is kept unnormalised and scores 0.0 against any query."""
    store.upsert("zero", [0.0, 0.0, 0.0], make_meta())

    assert np.allclose(store.get("zero").vector, [0.0, 0.0, 0.0])
    results = store.search([1.0, 0.0, 0.0], 5)
    assert [r.score for r in results] == [0.0]


def test_upsert_wrong_dimension_raises(store):
    """Upserting a vector of the wrong length fails and stores nothing."""
    with pytest.raises(DimensionMismatch) as exc_info:
        store.upsert("bad", [1.0, 0.0], make_meta())

    assert exc_info.value.expected == 3
    assert exc_info.value.actual == 2
    assert len(store) == 0


def test_upsert_replaces_existing_record(store):
    """Upserting an existing id replaces vector and metadata without growing the index."""
    store.upsert("a", [1.0, 0.0, 0.0], make_meta(title="old"))
    store.upsert("a", [0.0, 1.0, 0.0], make_meta(title="new"))

    assert len(store) == 1
    results = store.search([0.0, 1.0, 0.0], 1)
    assert results[0].id == "a"
    assert results[0].score == pytest.approx(1.0)
    assert results[0].metadata.title == "new"


def test_batch_upsert_is_all_or_nothing(store):
    """A dimension error anywhere in the batch leaves the index untouched."""
    records = [
        VectorRecord(id="ok", vector=np.array([1.0, 0.0, 0.0]), metadata=make_meta()),
        VectorRecord(id="bad", vector=np.array([1.0, 0.0]), metadata=make_meta()),
    ]

    with pytest.raises(DimensionMismatch):
        store.batch_upsert(records)
    assert len(store) == 0


def test_batch_upsert_records(store):
    """Test adding multiple vector records."""
    store.batch_upsert([
        VectorRecord(id="record_1", vector=np.array([1.0, 0.0, 0.0]), metadata=make_meta()),
        VectorRecord(id="record_2", vector=np.array([0.0, 1.0, 0.0]), metadata=make_meta()),
    ])

    assert len(store) == 2
    assert "record_1" in store
    assert "record_2" in store


def test_search_orders_by_similarity(store):
    """Results come back by descending cosine similarity."""
    store.upsert("far", [0.0, 1.0, 0.0], make_meta())
    store.upsert("near", [1.0, 0.1, 0.0], make_meta())
    store.upsert("mid", [1.0, 1.0, 0.0], make_meta())

    results = store.search([1.0, 0.0, 0.0], 3)

    assert [r.id for r in results] == ["near", "mid", "far"]
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)


def test_search_scores_clamped_to_unit_interval(store):
    """Opposite vectors score 0 rather than a negative cosine."""
    store.upsert("same", [1.0, 0.0, 0.0], make_meta())
    store.upsert("opposite", [-1.0, 0.0, 0.0], make_meta())

    results = store.search([1.0, 0.0, 0.0], 2)

    assert results[0].score == pytest.approx(1.0)
    assert results[1].score == 0.0
    assert all(0.0 <= r.score <= 1.0 for r in results)


def test_search_ties_keep_insertion_order(store):
    """Equal scores keep the order in which records were first inserted."""
    for record_id in ["first", "second", "third"]:
        store.upsert(record_id, [1.0, 1.0, 0.0], make_meta())
    # Replacing keeps the original position
    store.upsert("first", [1.0, 1.0, 0.0], make_meta())

    results = store.search([1.0, 1.0, 0.0], 3)
    assert [r.id for r in results] == ["first", "second", "third"]


def test_search_limit_bounds(store):
    """At most ``limit`` results are returned; non-positive limits return nothing."""
    for i in range(5):
        store.upsert(f"r{i}", [1.0, float(i), 0.0], make_meta())

    assert len(store.search([1.0, 0.0, 0.0], 2)) == 2
    assert len(store.search([1.0, 0.0, 0.0], 50)) == 5
    assert store.search([1.0, 0.0, 0.0], 0) == []
    assert store.search([1.0, 0.0, 0.0], -1) == []


def test_search_empty_store(store):
    """An empty index yields no results."""
    assert store.search([1.0, 0.0, 0.0], 5) == []


def test_zero_query_scores_every_record_zero(store):
    """A zero query still ranks every record, all at 0.0 in insertion order."""
    store.upsert("a", [1.0, 0.0, 0.0], make_meta())
    store.upsert("b", [0.0, 1.0, 0.0], make_meta())
    store.upsert("c", [0.0, 0.0, 1.0], make_meta())

    results = store.search([0.0, 0.0, 0.0], 2)

    assert [r.id for r in results] == ["a", "b"]
    assert [r.score for r in results] == [0.0, 0.0]


def test_negative_similarities_tie_in_insertion_order(store):
    """Opposite-direction records are clamped to 0.0 before ranking."""
    store.upsert("first", [-1.0, 0.1, 0.0], make_meta())
    store.upsert("second", [-1.0, 0.9, 0.0], make_meta())

    results = store.search([1.0, 0.0, 0.0], 2)

    assert [r.id for r in results] == ["first", "second"]
    assert [r.score for r in results] == [0.0, 0.0]


def test_returned_metadata_is_a_copy(store):
    """Mutating returned metadata does not change the stored record."""
    store.upsert("a", [1.0, 0.0, 0.0], make_meta(title="original"))

    store.get("a").metadata.title = "changed"
    store.search([1.0, 0.0, 0.0], 1)[0].metadata.title = "changed"

    assert store.get("a").metadata.title == "original"
    assert store.search([1.0, 0.0, 0.0], 1)[0].metadata.title == "original"

def test_search_wrong_dimension_raises(store):
    """Queries of the wrong length are rejected."""
    store.upsert("a", [1.0, 0.0, 0.0], make_meta())
    with pytest.raises(DimensionMismatch):
        store.search([1.0, 0.0], 5)


def test_delete_existing_and_missing(store):
    """Deleting returns True once; a missing id is a no-op returning False."""
    store.upsert("a", [1.0, 0.0, 0.0], make_meta())
    store.upsert("b", [0.0, 1.0, 0.0], make_meta())

    assert store.delete("a") is True
    assert len(store) == 1
    assert "a" not in store
    assert store.get("a") is None

    assert store.delete("a") is False
    assert store.delete("never-existed") is False
    assert len(store) == 1


def test_delete_keeps_remaining_rows_searchable(store):
    """Deleting from the middle keeps every other record and its order intact."""
    store.upsert("a", [1.0, 1.0, 0.0], make_meta())
    store.upsert("b", [1.0, 1.0, 0.0], make_meta())
    store.upsert("c", [1.0, 1.0, 0.0], make_meta())
    store.upsert("d", [1.0, 1.0, 0.0], make_meta())

    store.delete("b")

    results = store.search([1.0, 1.0, 0.0], 10)
    assert [r.id for r in results] == ["a", "c", "d"]


def test_capacity_growth(store):
    """The row buffer grows past its initial capacity."""
    count = InMemoryVectorStore._INITIAL_CAPACITY * 2 + 3
    for i in range(count):
        store.upsert(f"r{i}", [1.0, i / count, 0.0], make_meta())

    assert len(store) == count
    assert store.search([1.0, 0.0, 0.0], 1)[0].id == "r0"


def test_stats_counts_by_type(store):
    """Stats report totals, per-type counts and the index config."""
    store.upsert("i1", [1.0, 0.0, 0.0], make_meta("inquiry"))
    store.upsert("i2", [0.0, 1.0, 0.0], make_meta("inquiry"))
    store.upsert("f1", [0.0, 0.0, 1.0], make_meta("faq"))

    stats = store.stats()

    assert stats.total_vectors == 3
    assert stats.by_type == {"inquiry": 2, "faq": 1}
    assert stats.index_config.dimension == 3
    assert stats.index_config.index_type == "IndexFlatIP"


def test_clear(store):
    """Test clearing all records from the store."""
    store.upsert("a", [1.0, 0.0, 0.0], make_meta())
    store.clear()

    assert len(store) == 0
    assert store.search([1.0, 0.0, 0.0], 5) == []


def test_concurrent_upserts(store):
    """Parallel upserts from several threads all land in the index."""
    def worker(offset):
        for i in range(50):
            store.upsert(f"t{offset}-{i}", [1.0, float(i), float(offset)], make_meta())

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(store) == 200
    assert store.stats().total_vectors == 200
