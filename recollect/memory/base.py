"""
Base interfaces and data structures for long-term memory.

Defines the Memory entity, its metadata bag, and the abstract contract
that record store backends must implement.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class MemoryType(str, Enum):
    """Well-known memory types. The type field itself stays open-ended."""
    FACT = "fact"
    EVENT = "event"
    GOAL = "goal"
    DECISION = "decision"
    CONVERSATION = "conversation"
    MANUAL = "manual"
    OBSERVATION = "observation"
    REFLECTION = "reflection"
    PLAN = "plan"


def _type_value(value: Any) -> str:
    if isinstance(value, MemoryType):
        return value.value
    return str(value)


@dataclass
class MemoryMetadata:
    """
    Metadata attached to a memory.

    `similarity` is transient: it is only set on search results and is
    never written to the record store. Anything that is not a well-known
    key lives in `extra` and is serialized flat alongside the known keys.
    """
    similarity: Optional[float] = None
    source: Optional[str] = None
    type: Optional[str] = None
    extra: dict[str, Any] = field(default_factory=dict)

    WELL_KNOWN = ("similarity", "source", "type")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "MemoryMetadata":
        values = dict(data or {})
        similarity = values.pop("similarity", None)
        source = values.pop("source", None)
        type_ = values.pop("type", None)
        return cls(
            similarity=float(similarity) if similarity is not None else None,
            source=str(source) if source is not None else None,
            type=_type_value(type_) if type_ is not None else None,
            extra=values,
        )

    def to_dict(self, include_transient: bool = True) -> dict[str, Any]:
        data = dict(self.extra)
        if self.source is not None:
            data["source"] = self.source
        if self.type is not None:
            data["type"] = self.type
        if include_transient and self.similarity is not None:
            data["similarity"] = self.similarity
        return data

    def get(self, key: str, default: Any = None) -> Any:
        if key in self.WELL_KNOWN:
            value = getattr(self, key)
            return default if value is None else value
        return self.extra.get(key, default)

    def merged(self, updates: Mapping[str, Any]) -> "MemoryMetadata":
        """Return a new metadata bag with `updates` layered on top."""
        data = self.to_dict(include_transient=False)
        data.update(updates)
        data.pop("similarity", None)
        return MemoryMetadata.from_dict(data)

    def copy(self) -> "MemoryMetadata":
        return MemoryMetadata(
            similarity=self.similarity,
            source=self.source,
            type=self.type,
            extra=dict(self.extra),
        )


@dataclass
class Memory:
    """A single stored memory."""
    id: str
    content: str
    type: str = MemoryType.FACT.value
    created_at: int = field(default_factory=now_ms)
    importance: float = 0.5
    embedding: Optional[list[float]] = None
    metadata: MemoryMetadata = field(default_factory=MemoryMetadata)

    def __post_init__(self):
        self.type = _type_value(self.type)

    @property
    def timestamp(self) -> int:
        """Alias for created_at (epoch milliseconds)."""
        return self.created_at

    @property
    def similarity(self) -> Optional[float]:
        return self.metadata.similarity

    def copy(self) -> "Memory":
        """Copy with an independent metadata bag and embedding list."""
        return Memory(
            id=self.id,
            content=self.content,
            type=self.type,
            created_at=self.created_at,
            importance=self.importance,
            embedding=list(self.embedding) if self.embedding is not None else None,
            metadata=self.metadata.copy(),
        )

    def with_similarity(self, similarity: float) -> "Memory":
        memory = self.copy()
        memory.metadata.similarity = float(similarity)
        return memory

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the record store. Transient fields are dropped."""
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type,
            "created_at": self.created_at,
            "importance": self.importance,
            "embedding": list(self.embedding) if self.embedding is not None else None,
            "metadata": self.metadata.to_dict(include_transient=False),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Memory":
        """
        Rebuild a Memory from its stored form.

        Raises:
            KeyError, TypeError, ValueError: if the record is corrupt
        """
        memory_id = data["id"]
        if not isinstance(memory_id, str) or not memory_id:
            raise ValueError(f"Invalid memory id: {memory_id!r}")

        content = data["content"]
        if not isinstance(content, str):
            raise TypeError(f"Memory {memory_id} content is not a string")

        # Older records used camelCase or a bare timestamp
        created_at = data.get("created_at", data.get("createdAt", data.get("timestamp")))
        if created_at is None:
            raise KeyError("created_at")

        importance = float(data.get("importance", 0.5))
        if not 0.0 <= importance <= 1.0:
            raise ValueError(f"Memory {memory_id} importance out of range: {importance}")

        embedding = data.get("embedding")
        if embedding is not None:
            embedding = [float(x) for x in embedding]

        return cls(
            id=memory_id,
            content=content,
            type=data.get("type") or MemoryType.FACT.value,
            created_at=int(created_at),
            importance=importance,
            embedding=embedding,
            metadata=MemoryMetadata.from_dict(data.get("metadata")),
        )


class RecordStore(ABC):
    """
    Abstract interface for durable memory record storage.

    The record store is the source of truth; the vector index is a
    rebuildable cache derived from it.

    Implementations: JSON files (local), in-memory (tests), PostgreSQL (production)
    """

    async def initialize(self) -> None:
        """Prepare the backend (create directories, tables, pools)."""

    @abstractmethod
    async def save(self, id: str, data: dict[str, Any]) -> None:
        """
        Insert or replace a record.

        Raises:
            StorageError: if the write did not reach durable storage
        """
        pass

    @abstractmethod
    async def get(self, id: str) -> Optional[dict[str, Any]]:
        """Fetch a record by id, or None if it does not exist."""
        pass

    @abstractmethod
    async def delete(self, id: str) -> None:
        """Delete a record. Deleting a missing id is a no-op."""
        pass

    @abstractmethod
    async def list(self) -> list[dict[str, Any]]:
        """Return every record in the store's iteration order."""
        pass

    @abstractmethod
    async def query(self, filter: Optional[Mapping[str, Any]] = None) -> list[dict[str, Any]]:
        """
        Return records whose fields equal the filter values.

        Keys may be dotted paths into nested objects, e.g. "metadata.source".
        An empty filter matches everything.
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every record."""
        pass

    async def close(self) -> None:
        """Clean up resources."""


def match_filter(record: Mapping[str, Any], filter: Optional[Mapping[str, Any]]) -> bool:
    """Check a record against a dotted-key equality filter."""
    if not filter:
        return True

    for key, expected in filter.items():
        current: Any = record
        for part in key.split("."):
            if not isinstance(current, Mapping) or part not in current:
                return False
            current = current[part]
        if current != expected:
            return False
    return True
