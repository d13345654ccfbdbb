"""
Error kinds raised by the hybrid retrieval engine.
"""

from typing import Optional


class HybridSearchError(Exception):
    """Base exception for all hybrid retrieval errors."""
    pass


class DimensionMismatch(HybridSearchError, ValueError):
    """Vector length differs from the configured index dimension."""

    def __init__(self, expected: int, actual: int, context: str = "vector"):
        super().__init__(f"{context} dimension mismatch: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class EmbeddingProviderError(HybridSearchError):
    """Embedding provider failed (not configured, timeout, bad response, wrong dimension)."""

    NOT_CONFIGURED = "not_configured"
    TIMEOUT = "timeout"
    BAD_RESPONSE = "bad_response"
    DIMENSION_MISMATCH = "dimension_mismatch"

    def __init__(self, message: str, reason: str = BAD_RESPONSE, provider: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.provider = provider


class SourceNotFound(HybridSearchError, LookupError):
    """Vectorization was requested for a record that does not exist upstream."""

    def __init__(self, record_type: str, record_id: str):
        super().__init__(f"{record_type} not found: {record_id}")
        self.record_type = record_type
        self.record_id = record_id


class PersistenceError(HybridSearchError):
    """Durable index storage could not be read or written."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
