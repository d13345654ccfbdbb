"""
Configuration factories and validation.
"""

import json
from unittest.mock import patch

from hybridsearch.core import config
from hybridsearch.core.records import InMemoryRecordSource
from hybridsearch.vector.embeddings import DeterministicHashEmbedding, EmbeddingClient, OpenAIEmbedding
from hybridsearch.vector.index import InMemoryVectorStore


def test_default_config_is_valid():
    """Test that the shipped defaults validate cleanly."""
    with patch('hybridsearch.core.config.EMBED_PROVIDER', 'hash'), \
         patch('hybridsearch.core.config.RECORD_SOURCE_PATH', None):
        assert config.validate_config() == []


def test_validate_config_reports_issues():
    with patch('hybridsearch.core.config.EMBED_PROVIDER', 'openai'), \
         patch('hybridsearch.core.config.OPENAI_API_KEY', None), \
         patch('hybridsearch.core.config.VECTOR_INDEX_TYPE', 'IndexLSH'), \
         patch('hybridsearch.core.config.REINDEX_CONCURRENCY', 0), \
         patch('hybridsearch.core.config.RAG_SIMILARITY_THRESHOLD', 1.5):
        issues = config.validate_config()

    assert "EMBED_PROVIDER=openai requires OPENAI_API_KEY" in issues
    assert "Invalid VECTOR_INDEX_TYPE: IndexLSH" in issues
    assert "REINDEX_CONCURRENCY must be >= 1" in issues
    assert "RAG_SIMILARITY_THRESHOLD must be within [0, 1]" in issues


def test_get_vector_store(tmp_path):
    with patch('hybridsearch.core.config.VECTOR_DIMENSION', 32), \
         patch('hybridsearch.core.config.VECTOR_INDEX_PATH', str(tmp_path / "idx.json")):
        store = config.get_vector_store()

    assert isinstance(store, InMemoryVectorStore)
    assert store.dimension == 32
    assert store.config.nlist == config.VECTOR_NLIST
    assert store.index_path == tmp_path / "idx.json"


def test_get_embedding_provider_selection():
    with patch('hybridsearch.core.config.EMBED_PROVIDER', 'hash'):
        assert isinstance(config.get_embedding_provider(), DeterministicHashEmbedding)

    with patch('hybridsearch.core.config.EMBED_PROVIDER', 'openai'), \
         patch('hybridsearch.core.config.OPENAI_API_KEY', 'sk-test'):
        provider = config.get_embedding_provider()
    assert isinstance(provider, OpenAIEmbedding)
    assert provider.api_key == 'sk-test'


def test_get_embedding_client_wraps_provider():
    provider = DeterministicHashEmbedding(dimension=config.VECTOR_DIMENSION)
    client = config.get_embedding_client(provider)

    assert isinstance(client, EmbeddingClient)
    assert client.provider is provider
    assert client.dimension == config.VECTOR_DIMENSION
    assert client.timeout_sec == config.EMBED_TIMEOUT_SEC


def test_get_record_source_from_json(tmp_path):
    """A JSON export populates the in-memory record source."""
    export = tmp_path / "records.json"
    export.write_text(json.dumps({
        "inquiries": [{"id": "inq-1", "scope_id": "app", "title": "T", "content": "C",
                       "created_at": "2024-01-01T00:00:00Z"}],
        "responses": [{"id": "res-1", "inquiry_id": "inq-1", "content": "R"}],
        "faqs": [{"id": "faq-1", "scope_id": "app", "question": "Q", "answer": "A"}],
    }))

    source = config.get_record_source(str(export))

    assert isinstance(source, InMemoryRecordSource)
    assert source.list_ids("inquiry") == ["inq-1"]
    assert source.get("response", "res-1").inquiry_id == "inq-1"
    assert source.get("inquiry", "inq-1").created_at.year == 2024


def test_get_record_source_defaults_to_empty():
    with patch('hybridsearch.core.config.RECORD_SOURCE_PATH', None):
        source = config.get_record_source()
    assert all(source.list_ids(t) == [] for t in source.record_types())
