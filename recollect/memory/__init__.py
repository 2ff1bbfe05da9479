"""
Long-term Memory System.

This module provides semantic recall over everything the assistant has
been told to remember, backed by a durable record store and an HNSW
vector index that can always be rebuilt from it.
"""

from .base import Memory, MemoryMetadata, MemoryType, RecordStore
from .embeddings import (
    EmbeddingProvider,
    FakeEmbeddingProvider,
    LocalEmbeddingProvider,
    OpenAIEmbeddingProvider,
    create_embedding_provider,
)
from .errors import (
    EmbeddingError,
    IndexCapacityError,
    MemoryNotFoundError,
    MemoryStoreError,
    StorageError,
    VectorIndexError,
)
from .memory_manager import (
    ImportanceHeuristics,
    MemoryManager,
    RetentionPolicy,
    create_memory_manager,
    create_record_store,
)
from .record_store import FileRecordStore, InMemoryRecordStore
from .vector_index import HnswVectorIndex

__all__ = [
    "Memory",
    "MemoryMetadata",
    "MemoryType",
    "RecordStore",
    "EmbeddingProvider",
    "FakeEmbeddingProvider",
    "LocalEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "create_embedding_provider",
    "EmbeddingError",
    "IndexCapacityError",
    "MemoryNotFoundError",
    "MemoryStoreError",
    "StorageError",
    "VectorIndexError",
    "ImportanceHeuristics",
    "MemoryManager",
    "RetentionPolicy",
    "create_memory_manager",
    "create_record_store",
    "FileRecordStore",
    "InMemoryRecordStore",
    "HnswVectorIndex",
]
