#!/usr/bin/env python3
"""
Index Rebuild Utility
Re-vectorizes every inquiry, response and FAQ record and writes a fresh index snapshot.
"""

import argparse
import sys
from pathlib import Path

# Allow running from a checkout without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from hybridsearch.core.config import (
    get_vector_store,
    get_embedding_client,
    get_record_source,
    validate_config,
)
from hybridsearch.core.errors import DimensionMismatch, PersistenceError
from hybridsearch.core.vectorization import VectorizationService


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Rebuild the hybrid search vector index")
    parser.add_argument("--records", help="JSON export of inquiries/responses/faqs (defaults to RECORD_SOURCE_PATH)")
    parser.add_argument("--index-path", help="Index file to write (defaults to VECTOR_INDEX_PATH)")
    parser.add_argument("--keep", action="store_true", help="Keep existing vectors instead of clearing first")
    parser.add_argument("--verify-query", default="test", help="Query used for the verification search")
    return parser.parse_args(argv)


def main(argv=None):
    """Rebuild the vector index from the record source."""
    args = parse_args(argv)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"ERROR: {issue}")
        sys.exit(1)

    print("Starting vector index rebuild...")

    vector_store = get_vector_store()
    embedding_client = get_embedding_client()
    record_source = get_record_source(args.records)

    if args.index_path:
        vector_store.index_path = Path(args.index_path)

    try:
        loaded = vector_store.load()
        print(f"Loaded {loaded} vectors from existing index")
    except DimensionMismatch as e:
        # Rebuilding is the fix for a dimension change, so start from empty
        print(f"WARNING: Existing index is incompatible ({e}); rebuilding from scratch")

    if not args.keep:
        vector_store.clear()
        print("✓ Cleared existing vector index")

    service = VectorizationService(vector_store, embedding_client, record_source)
    counts = {record_type: len(record_source.list_ids(record_type)) for record_type in record_source.record_types()}
    print(f"Found {sum(counts.values())} records in source: {counts}")

    report = service.reindex_all()
    for record_id in report.failed_ids:
        print(f"ERROR: Failed to vectorize record {record_id}")
    print(f"✓ Vectorized {report.succeeded}/{report.total} records in {report.duration_ms:.0f}ms")

    try:
        path = vector_store.persist()
        print(f"✓ Wrote index with {len(vector_store)} vectors to {path}")
    except PersistenceError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    # Quick smoke test - search for something
    try:
        if len(vector_store):
            test_embedding = embedding_client.embed(args.verify_query)
            results = vector_store.search(test_embedding, min(3, len(vector_store)))
            print(f"✓ Verification search returned {len(results)} results")
        else:
            print("✓ No entries to verify (empty index)")
    except Exception as e:
        print(f"WARNING: Verification search failed: {e}")

    print("Index rebuild complete!")
    return report


if __name__ == "__main__":
    main()
