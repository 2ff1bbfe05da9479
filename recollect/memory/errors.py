"""
Error taxonomy for the memory subsystem.

Failures that only degrade search quality (EmbeddingError, VectorIndexError)
are caught by the MemoryManager and logged. Failures that would lose an
explicit write (StorageError) or reference an unknown memory
(MemoryNotFoundError) are surfaced to the caller.
"""


class MemoryStoreError(Exception):
    """Base class for all memory subsystem errors."""


class EmbeddingError(MemoryStoreError):
    """The embedding provider failed, returned a bad vector, or timed out."""


class VectorIndexError(MemoryStoreError):
    """The vector index is corrupt, unavailable, or does not match config."""


class IndexCapacityError(VectorIndexError):
    """The vector index has no free slots left."""


class MemoryNotFoundError(MemoryStoreError, KeyError):
    """An operation referenced a memory id that does not exist."""

    def __init__(self, memory_id: str):
        self.memory_id = memory_id
        super().__init__(f"Memory not found: {memory_id}")

    def __str__(self) -> str:
        return f"Memory not found: {self.memory_id}"


class StorageError(MemoryStoreError):
    """The record store failed on a write the caller asked for."""
