"""
Vector index layer: embedding providers, the in-memory index and its types.
"""

# Package initialization for vector module
from .index import IVectorStore, InMemoryVectorStore
from .types import VectorMetadata, VectorRecord, VectorResult, IndexConfig, IndexStats
from .embeddings import (
    IEmbeddingProvider,
    DeterministicHashEmbedding,
    SentenceTransformerEmbedding,
    OpenAIEmbedding,
    EmbeddingClient,
)

__all__ = [
    'IVectorStore',
    'InMemoryVectorStore',
    'VectorMetadata',
    'VectorRecord',
    'VectorResult',
    'IndexConfig',
    'IndexStats',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'OpenAIEmbedding',
    'EmbeddingClient',
]
