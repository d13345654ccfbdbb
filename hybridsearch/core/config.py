"""
Hybrid retrieval configuration.
Environment-driven settings and factories for the vector store and embedding client.
"""

import os
from pathlib import Path

# Debug flag
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Vector index configuration
VECTOR_DIMENSION = int(os.getenv("VECTOR_DIMENSION", "1536"))
VECTOR_INDEX_TYPE = os.getenv("VECTOR_INDEX_TYPE", "IndexFlatIP")  # IndexFlatIP|IndexIVFFlat|IndexHNSWFlat
VECTOR_METRIC_TYPE = os.getenv("VECTOR_METRIC_TYPE", "METRIC_INNER_PRODUCT")  # METRIC_INNER_PRODUCT|METRIC_L2
VECTOR_NLIST = int(os.getenv("VECTOR_NLIST", "100"))
VECTOR_NPROBE = int(os.getenv("VECTOR_NPROBE", "10"))
VECTOR_INDEX_PATH = os.getenv("VECTOR_INDEX_PATH", "./data/vector_index.json")

# Embedding provider configuration
EMBED_PROVIDER = os.getenv("EMBED_PROVIDER", "hash")  # hash|sentence_transformers|openai
EMBED_MODEL_NAME = os.getenv("EMBED_MODEL_NAME", "all-mpnet-base-v2")
EMBED_TIMEOUT_SEC = float(os.getenv("EMBED_TIMEOUT_SEC", "30"))
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_EMBEDDING_MODEL = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

# Vectorization
RECORD_SOURCE_PATH = os.getenv("RECORD_SOURCE_PATH")  # JSON export of inquiries/responses/faqs
REINDEX_CONCURRENCY = int(os.getenv("REINDEX_CONCURRENCY", "4"))

# Periodic index flush (heartbeat)
FLUSH_ENABLED = os.getenv("FLUSH_ENABLED", "true").lower() == "true"
FLUSH_INTERVAL_SEC = int(os.getenv("FLUSH_INTERVAL_SEC", "300"))

# Hybrid search defaults
SEARCH_DEFAULT_LIMIT = int(os.getenv("SEARCH_DEFAULT_LIMIT", "20"))
SEARCH_DEFAULT_VECTOR_WEIGHT = float(os.getenv("SEARCH_DEFAULT_VECTOR_WEIGHT", "0.5"))
SEARCH_DEFAULT_TEXT_WEIGHT = float(os.getenv("SEARCH_DEFAULT_TEXT_WEIGHT", "0.5"))

# RAG retrieval
RAG_DEFAULT_LIMIT = int(os.getenv("RAG_DEFAULT_LIMIT", "10"))
RAG_SIMILARITY_THRESHOLD = float(os.getenv("RAG_SIMILARITY_THRESHOLD", "0.7"))

# Contextual rerank multipliers
BOOST_SCOPE = float(os.getenv("BOOST_SCOPE", "1.2"))
BOOST_CATEGORY = float(os.getenv("BOOST_CATEGORY", "1.1"))
BOOST_TYPE = float(os.getenv("BOOST_TYPE", "1.15"))
BOOST_RECENCY = float(os.getenv("BOOST_RECENCY", "1.05"))
BOOST_RECENCY_DAYS = int(os.getenv("BOOST_RECENCY_DAYS", "30"))

# Version string
VERSION = "1.0.0"

VALID_EMBED_PROVIDERS = ["hash", "sentence_transformers", "openai"]
VALID_INDEX_TYPES = ["IndexFlatIP", "IndexIVFFlat", "IndexHNSWFlat"]
VALID_METRIC_TYPES = ["METRIC_INNER_PRODUCT", "METRIC_L2"]


def get_index_config():
    """Build the immutable index configuration from settings."""
    from hybridsearch.vector.types import IndexConfig

    return IndexConfig(
        dimension=VECTOR_DIMENSION,
        index_type=VECTOR_INDEX_TYPE,
        metric_type=VECTOR_METRIC_TYPE,
        nlist=VECTOR_NLIST,
        nprobe=VECTOR_NPROBE,
    )


def get_vector_store():
    """Create the configured vector store (not yet loaded from disk)."""
    from hybridsearch.vector.index import InMemoryVectorStore

    return InMemoryVectorStore(get_index_config(), index_path=VECTOR_INDEX_PATH)


def get_embedding_provider():
    """Get configured embedding provider implementation."""
    if EMBED_PROVIDER == "sentence_transformers":
        from hybridsearch.vector.embeddings import SentenceTransformerEmbedding
        return SentenceTransformerEmbedding(EMBED_MODEL_NAME)
    elif EMBED_PROVIDER == "openai":
        from hybridsearch.vector.embeddings import OpenAIEmbedding
        return OpenAIEmbedding(
            api_key=OPENAI_API_KEY,
            model=OPENAI_EMBEDDING_MODEL,
            base_url=OPENAI_BASE_URL,
            timeout=EMBED_TIMEOUT_SEC,
            dimension=VECTOR_DIMENSION,
        )
    else:
        from hybridsearch.vector.embeddings import DeterministicHashEmbedding
        return DeterministicHashEmbedding(dimension=VECTOR_DIMENSION)


def get_embedding_client(provider=None):
    """Wrap the configured provider with timeout and dimension checks."""
    from hybridsearch.vector.embeddings import EmbeddingClient

    return EmbeddingClient(
        provider if provider is not None else get_embedding_provider(),
        dimension=VECTOR_DIMENSION,
        timeout_sec=EMBED_TIMEOUT_SEC,
    )


def get_record_source(path=None):
    """Record source for vectorization: a JSON export when configured, otherwise empty."""
    from hybridsearch.core.records import InMemoryRecordSource

    path = path or RECORD_SOURCE_PATH
    if path:
        return InMemoryRecordSource.from_json(path)
    return InMemoryRecordSource()


def debug_enabled():
    """Check if debug mode is enabled."""
    return os.getenv("DEBUG", "true").lower() == "true"


def ensure_index_directory():
    """Ensure the index directory exists."""
    Path(VECTOR_INDEX_PATH).parent.mkdir(parents=True, exist_ok=True)


def get_flush_interval():
    """Get periodic index flush interval in seconds."""
    return FLUSH_INTERVAL_SEC


def is_flush_enabled():
    """Check if periodic index flush is enabled."""
    return FLUSH_ENABLED


def validate_config():
    """Validate configuration and return any issues."""
    issues = []

    if VECTOR_DIMENSION < 1:
        issues.append("VECTOR_DIMENSION must be >= 1")

    if VECTOR_INDEX_TYPE not in VALID_INDEX_TYPES:
        issues.append(f"Invalid VECTOR_INDEX_TYPE: {VECTOR_INDEX_TYPE}")

    if VECTOR_METRIC_TYPE not in VALID_METRIC_TYPES:
        issues.append(f"Invalid VECTOR_METRIC_TYPE: {VECTOR_METRIC_TYPE}")

    if EMBED_PROVIDER not in VALID_EMBED_PROVIDERS:
        issues.append(f"Invalid EMBED_PROVIDER: {EMBED_PROVIDER}")

    if EMBED_PROVIDER == "openai" and not OPENAI_API_KEY:
        issues.append("EMBED_PROVIDER=openai requires OPENAI_API_KEY")

    if EMBED_TIMEOUT_SEC <= 0:
        issues.append("EMBED_TIMEOUT_SEC must be > 0")

    if RECORD_SOURCE_PATH and not Path(RECORD_SOURCE_PATH).exists():
        issues.append(f"RECORD_SOURCE_PATH does not exist: {RECORD_SOURCE_PATH}")

    if REINDEX_CONCURRENCY < 1:
        issues.append("REINDEX_CONCURRENCY must be >= 1")

    if FLUSH_INTERVAL_SEC < 1:
        issues.append("FLUSH_INTERVAL_SEC must be >= 1")

    if SEARCH_DEFAULT_VECTOR_WEIGHT < 0 or SEARCH_DEFAULT_TEXT_WEIGHT < 0:
        issues.append("Search weights must be >= 0")

    if not 0.0 <= RAG_SIMILARITY_THRESHOLD <= 1.0:
        issues.append("RAG_SIMILARITY_THRESHOLD must be within [0, 1]")

    return issues
