"""
Test fixtures and sample data for recollect tests.
"""

from typing import Optional

from recollect.memory.base import Memory, MemoryMetadata
from recollect.memory.embeddings import EmbeddingProvider
from recollect.memory.errors import EmbeddingError


def unit(dimensions: int, axis: int) -> list[float]:
    """One-hot vector along `axis`."""
    vector = [0.0] * dimensions
    vector[axis] = 1.0
    return vector


def make_memory(
    id: str = "mem-1",
    content: str = "The user's favourite colour is green.",
    type: str = "fact",
    created_at: int = 1_700_000_000_000,
    importance: float = 0.5,
    embedding: Optional[list[float]] = None,
    metadata: Optional[dict] = None,
) -> Memory:
    """Create a sample Memory for testing."""
    return Memory(
        id=id,
        content=content,
        type=type,
        created_at=created_at,
        importance=importance,
        embedding=embedding,
        metadata=MemoryMetadata.from_dict(metadata),
    )


def make_memories(count: int = 5, dimensions: int = 8) -> list[Memory]:
    """Create memories with distinct axis embeddings and increasing timestamps."""
    return [
        make_memory(
            id=f"mem-{i}",
            content=f"Sample memory #{i}",
            created_at=1_700_000_000_000 + i * 1000,
            importance=round(0.1 + 0.8 * i / max(count - 1, 1), 2),
            embedding=unit(dimensions, i % dimensions),
        )
        for i in range(count)
    ]


class StaticEmbeddingProvider(EmbeddingProvider):
    """
    Embedding provider with hand-picked vectors.

    Texts in `vectors` get exactly that vector. Any other text gets its own
    one-hot axis (in order of first appearance), so unrelated texts score 0.
    Texts in `failing` raise EmbeddingError.
    """

    def __init__(
        self,
        dimensions: int = 16,
        vectors: Optional[dict[str, list[float]]] = None,
        failing: Optional[set[str]] = None,
        first_free_axis: int = 8,
    ):
        self._dimension = dimensions
        self.vectors = dict(vectors or {})
        self.failing = set(failing or ())
        self._next_axis = first_free_axis
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "static"

    def get_dimensions(self) -> int:
        return self._dimension

    async def get_embedding(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.failing:
            raise EmbeddingError(f"refusing to embed {text!r}")
        if text not in self.vectors:
            self.vectors[text] = unit(self._dimension, self._next_axis % self._dimension)
            self._next_axis += 1
        return list(self.vectors[text])
