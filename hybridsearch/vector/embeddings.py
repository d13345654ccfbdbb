"""
Embedding providers and the timeout/dimension-checking client used by the index.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
import hashlib
from typing import List, Optional

import numpy as np
import requests

from hybridsearch.core.errors import EmbeddingProviderError
from util.logging import logger, truncate


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider.

    Stretches a SHA-256 digest stream over every dimension so identical text
    always maps to the same vector. No model download, so it backs tests and
    offline runs.
    """

    def __init__(self, dimension: int = 1536):
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using a hash counter."""
        seed = text.encode("utf-8")
        words_needed = self.dimension
        raw = bytearray()
        counter = 0
        while len(raw) < words_needed * 4:
            raw.extend(hashlib.sha256(seed + counter.to_bytes(4, "big")).digest())
            counter += 1

        values = np.frombuffer(bytes(raw[: words_needed * 4]), dtype=">u4").astype(np.float64)
        # Map to [-1, 1] for cosine similarity
        return ((values / 2**32) * 2 - 1).tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    The model is loaded on first use.
    """

    def __init__(self, model_name: str = "all-mpnet-base-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        embedding = self.model.encode(text, convert_to_tensor=False)
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension


class OpenAIEmbedding(IEmbeddingProvider):
    """Embeddings from an OpenAI-compatible ``/embeddings`` HTTP endpoint."""

    name = "openai"

    def __init__(self, api_key: Optional[str], model: str = "text-embedding-3-small",
                 base_url: str = "https://api.openai.com/v1", timeout: float = 30.0,
                 dimension: int = 1536):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        if not self.api_key:
            raise EmbeddingProviderError(
                "OpenAI API key is not configured",
                reason=EmbeddingProviderError.NOT_CONFIGURED,
                provider=self.name,
            )

        try:
            response = requests.post(
                f"{self.base_url}/embeddings",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "input": text},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise EmbeddingProviderError(
                f"Embedding request timed out after {self.timeout}s",
                reason=EmbeddingProviderError.TIMEOUT,
                provider=self.name,
            ) from e
        except (requests.RequestException, ValueError) as e:
            raise EmbeddingProviderError(
                f"Embedding request failed: {e}",
                reason=EmbeddingProviderError.BAD_RESPONSE,
                provider=self.name,
            ) from e

        try:
            return [float(x) for x in payload["data"][0]["embedding"]]
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise EmbeddingProviderError(
                "Embedding response did not contain a vector",
                reason=EmbeddingProviderError.BAD_RESPONSE,
                provider=self.name,
            ) from e

    def get_dimension(self) -> int:
        return self.dimension


class EmbeddingClient:
    """
    Wraps an embedding provider with a deadline and a dimension check.

    The provider call runs on a worker thread; the caller waits at most
    ``timeout_sec`` for it.
    """

    def __init__(self, provider: IEmbeddingProvider, dimension: int, timeout_sec: float = 30.0,
                 max_workers: int = 4):
        self.provider = provider
        self.dimension = dimension
        self.timeout_sec = timeout_sec
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="embed")

    @property
    def provider_name(self) -> str:
        return getattr(self.provider, "name", type(self.provider).__name__)

    def embed(self, text: str) -> np.ndarray:
        """
        Embed text into a vector of the configured dimension.

        Args:
            text: Text to embed

        Returns:
            Numpy float64 array of length ``dimension``

        Raises:
            EmbeddingProviderError: not configured, timed out, bad response or wrong dimension
        """
        future = self._executor.submit(self.provider.embed_text, text)
        try:
            raw = future.result(timeout=self.timeout_sec)
        except FutureTimeout as e:
            future.cancel()
            logger.log_operation("embedding.embed", "timeout", {
                "provider": self.provider_name,
                "timeout_sec": self.timeout_sec,
                "text": truncate(text, 50),
            })
            raise EmbeddingProviderError(
                f"Embedding provider did not respond within {self.timeout_sec}s",
                reason=EmbeddingProviderError.TIMEOUT,
                provider=self.provider_name,
            ) from e
        except EmbeddingProviderError:
            raise
        except Exception as e:
            raise EmbeddingProviderError(
                f"Embedding provider failed: {e}",
                reason=EmbeddingProviderError.BAD_RESPONSE,
                provider=self.provider_name,
            ) from e

        try:
            vector = np.asarray(raw, dtype=np.float64).reshape(-1)
        except (TypeError, ValueError) as e:
            raise EmbeddingProviderError(
                "Embedding provider returned a non-numeric vector",
                reason=EmbeddingProviderError.BAD_RESPONSE,
                provider=self.provider_name,
            ) from e

        if vector.shape[0] != self.dimension:
            raise EmbeddingProviderError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {vector.shape[0]}",
                reason=EmbeddingProviderError.DIMENSION_MISMATCH,
                provider=self.provider_name,
            )
        return vector

    def embed_texts(self, texts: List[str]) -> np.ndarray:
        """Embed multiple texts into an array of shape (len(texts), dimension)."""
        if not texts:
            return np.zeros((0, self.dimension), dtype=np.float64)
        return np.vstack([self.embed(text) for text in texts])

    def close(self):
        self._executor.shutdown(wait=False)
