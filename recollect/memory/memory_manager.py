"""
Memory Manager - Orchestrates the long-term memory system.

This is the high-level interface the assistant runtime uses.
It handles:
- Creating memories and generating their embeddings
- Searching by meaning, with keyword fallback when embeddings fail
- Updating and deleting memories
- Bounding the total count with importance/recency eviction

The record store is the source of truth. The vector index is derived
from it and can always be rebuilt; initialize() does exactly that after
a restart.
"""

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from .base import Memory, MemoryMetadata, MemoryType, RecordStore, _type_value, now_ms
from .embeddings import EmbeddingProvider, create_embedding_provider
from .errors import (
    EmbeddingError,
    MemoryNotFoundError,
    StorageError,
    VectorIndexError,
)
from .record_store import FileRecordStore, InMemoryRecordStore
from .vector_index import META_SUFFIX, HnswVectorIndex, cosine_similarity

logger = logging.getLogger("recollect.memory.manager")

UPDATABLE_FIELDS = {"content", "type", "importance", "metadata"}


def _validate_importance(importance: Any) -> float:
    value = float(importance)
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"importance must be within [0, 1], got {value}")
    return value


@dataclass(frozen=True)
class RetentionPolicy:
    """
    Two-tier eviction split.

    The important tier keeps the top `important_ratio * max` memories by
    importance; the recent tier keeps the newest `recent_ratio * max` of
    the rest. Tier sizes round half up (15 * 0.7 -> 11) and are clamped
    so their sum never exceeds max.
    """
    important_ratio: float = 0.7
    recent_ratio: float = 0.3

    @staticmethod
    def _round_half_up(value: float) -> int:
        # Round to 9 places first so float error just below a half still rounds up
        return math.floor(round(value, 9) + 0.5)

    def tier_sizes(self, max_memories: int) -> tuple[int, int]:
        important = min(max_memories, max(0, self._round_half_up(max_memories * self.important_ratio)))
        recent = min(max_memories - important, max(0, self._round_half_up(max_memories * self.recent_ratio)))
        return important, recent


@dataclass(frozen=True)
class ImportanceHeuristics:
    """Default importance for memories created without one."""
    base: float = 0.5
    long_content_chars: int = 500
    very_long_content_chars: int = 1000
    length_bonus: float = 0.1
    conversation_bonus: float = 0.2

    def score(self, content: str, type: str, base: Optional[float] = None) -> float:
        importance = self.base if base is None else float(base)

        if len(content) > self.long_content_chars:
            importance += self.length_bonus
        if len(content) > self.very_long_content_chars:
            importance += self.length_bonus

        if type == MemoryType.CONVERSATION.value:
            importance += self.conversation_bonus

        return max(0.0, min(1.0, importance))


class MemoryManager:
    """
    Single authority for the memory lifecycle.

    All mutating operations run under one asyncio lock per instance.
    Searches don't take the lock: they grab the current index reference
    once, and rebuilds swap in a freshly built index in one assignment.
    """

    def __init__(
        self,
        record_store: RecordStore,
        embedding_provider: EmbeddingProvider,
        max_memories: int = 1000,
        similarity_threshold: float = 0.6,
        embedding_timeout: float | None = 10.0,
        index_path: str | None = None,
        index_capacity: int | None = None,
        retention: RetentionPolicy | None = None,
        importance: ImportanceHeuristics | None = None,
        hnsw_m: int = 16,
        hnsw_ef_construction: int = 200,
        hnsw_ef_search: int = 50,
        compact_ratio: float = 0.25,
    ):
        if max_memories <= 0:
            raise ValueError(f"max_memories must be positive, got {max_memories}")
        if not 0.0 <= similarity_threshold <= 1.0:
            raise ValueError(f"similarity_threshold must be within [0, 1], got {similarity_threshold}")

        self.record_store = record_store
        self.embedding_provider = embedding_provider
        self.max_memories = max_memories
        self.similarity_threshold = similarity_threshold
        self.embedding_timeout = embedding_timeout
        self.index_path = index_path
        self.retention = retention or RetentionPolicy()
        self.importance = importance or ImportanceHeuristics()
        self.hnsw_m = hnsw_m
        self.hnsw_ef_construction = hnsw_ef_construction
        self.hnsw_ef_search = hnsw_ef_search
        self.compact_ratio = compact_ratio

        self.dimension = embedding_provider.get_dimensions()
        # Room for max + 1 live entries before pruning, plus tombstones
        self.index_capacity = index_capacity or max(2 * max_memories, max_memories + 1)
        if self.index_capacity <= max_memories:
            logger.warning(
                f"index_capacity ({self.index_capacity}) <= max_memories ({max_memories}); "
                f"inserts past capacity will be rejected until the next rebuild"
            )

        self._index = self._new_index()
        self._ids: set[str] = set()
        self._lock = asyncio.Lock()
        self._store_ready = False
        self._initialized = False
        logger.info(
            f"MemoryManager created: provider={embedding_provider.name}, "
            f"dimension={self.dimension}, max_memories={max_memories}"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """
        Load every record and (re)build the vector index from it.

        Uses the persisted index at `index_path` only when it matches the
        records exactly. Corrupt records are logged and skipped.
        """
        async with self._lock:
            if not self._store_ready:
                await self.record_store.initialize()
                self._store_ready = True

            memories = await self._load_memories()
            self._ids = {m.id for m in memories}

            indexable = []
            for memory in memories:
                if memory.embedding is not None and len(memory.embedding) != self.dimension:
                    logger.warning(
                        f"Memory {memory.id} has a {len(memory.embedding)}-dim embedding, "
                        f"expected {self.dimension}; it will not be indexed"
                    )
                    continue
                indexable.append(memory)

            index = self._load_persisted_index(indexable)
            if index is None:
                index = self._build_index(indexable)
            self._index = index
            self._initialized = True

        logger.info(
            f"MemoryManager initialized with {len(self._ids)} stored memories "
            f"({self._index.size} indexed)"
        )
        if len(self._ids) > self.max_memories:
            logger.warning(
                f"Store holds {len(self._ids)} memories, above max_memories={self.max_memories}; "
                f"the next write will prune"
            )

    def _ensure_initialized(self) -> None:
        """Ensure the system is initialized."""
        if not self._initialized:
            raise RuntimeError("MemoryManager not initialized. Call initialize() first.")

    async def close(self) -> None:
        """Persist the index (if configured) and release the record store."""
        if self._initialized:
            self.persist_index()
        await self.record_store.close()
        self._store_ready = False
        self._initialized = False
        logger.info("MemoryManager closed")

    # ------------------------------------------------------------------
    # Embedding
    # ------------------------------------------------------------------

    async def _embed(self, text: str) -> list[float]:
        """
        Embed text with the configured timeout.

        Raises:
            EmbeddingError: on provider failure, timeout, or a bad vector
        """
        call = self.embedding_provider.get_embedding(text)
        try:
            if self.embedding_timeout:
                embedding = await asyncio.wait_for(call, timeout=self.embedding_timeout)
            else:
                embedding = await call
        except asyncio.TimeoutError as e:
            raise EmbeddingError(f"Embedding timed out after {self.embedding_timeout}s") from e
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"{self.embedding_provider.name} failed: {e}") from e

        if embedding is None or len(embedding) != self.dimension:
            got = None if embedding is None else len(embedding)
            raise EmbeddingError(f"Expected a {self.dimension}-dim embedding, got {got}")
        return [float(x) for x in embedding]

    async def _try_embed(self, content: str) -> Optional[list[float]]:
        """Embed content for storage; None when empty or on failure."""
        if not content.strip():
            logger.debug("Empty content, skipping embedding")
            return None
        try:
            return await self._embed(content)
        except EmbeddingError as e:
            logger.warning(f"Storing memory without embedding: {e}")
            return None

    # ------------------------------------------------------------------
    # Index helpers
    # ------------------------------------------------------------------

    def _new_index(self) -> HnswVectorIndex:
        return HnswVectorIndex(
            dimension=self.dimension,
            capacity=self.index_capacity,
            m=self.hnsw_m,
            ef_construction=self.hnsw_ef_construction,
            ef_search=self.hnsw_ef_search,
            compact_ratio=self.compact_ratio,
        )

    def _build_index(self, memories: Sequence[Memory]) -> HnswVectorIndex:
        """Build a new index off to the side; the caller swaps it in."""
        index = self._new_index()
        skipped = 0
        for memory in memories:
            if memory.embedding is None:
                continue
            try:
                index.add(memory.embedding, memory)
            except VectorIndexError as e:
                skipped += 1
                logger.warning(f"Skipping memory {memory.id} while building index: {e}")

        logger.info(f"Built vector index: {index.size} entries, {skipped} skipped")
        return index

    def _index_add(self, memory: Memory) -> None:
        if memory.embedding is None:
            return
        try:
            self._index.add(memory.embedding, memory)
        except VectorIndexError as e:
            logger.warning(f"Memory {memory.id} stored but not indexed: {e}")

    async def _index_remove(self, memory_id: str) -> None:
        try:
            self._index.remove(memory_id)
        except VectorIndexError as e:
            logger.warning(f"Failed to drop {memory_id} from the index, rebuilding: {e}")
            self._index = self._build_index(
                [m for m in await self._load_memories()
                 if m.embedding is None or len(m.embedding) == self.dimension]
            )

    def _load_persisted_index(self, memories: Sequence[Memory]) -> Optional[HnswVectorIndex]:
        if not self.index_path or not Path(self.index_path).exists():
            return None

        by_id = {m.id: m for m in memories if m.embedding is not None}
        try:
            index = HnswVectorIndex.load(
                self.index_path,
                by_id,
                dimension=self.dimension,
                capacity=self.index_capacity,
                m=self.hnsw_m,
                ef_construction=self.hnsw_ef_construction,
                ef_search=self.hnsw_ef_search,
                compact_ratio=self.compact_ratio,
            )
        except VectorIndexError as e:
            logger.warning(f"Discarding persisted vector index: {e}")
            return None

        if index.ids() != set(by_id):
            logger.warning("Persisted vector index is out of date with the record store, rebuilding")
            return None
        return index

    def persist_index(self) -> bool:
        """Write the current index to `index_path`. Failures are logged."""
        if not self.index_path:
            return False
        try:
            self._index.persist(self.index_path)
        except VectorIndexError as e:
            logger.warning(f"Could not persist vector index: {e}")
            return False
        return True

    async def rebuild_index(self) -> int:
        """Rebuild the index from the record store. Returns entries indexed."""
        self._ensure_initialized()
        async with self._lock:
            memories = await self._load_memories()
            self._ids = {m.id for m in memories}
            self._index = self._build_index(
                [m for m in memories if m.embedding is None or len(m.embedding) == self.dimension]
            )
            return self._index.size

    # ------------------------------------------------------------------
    # Store helpers
    # ------------------------------------------------------------------

    async def _load_memories(self) -> list[Memory]:
        """Read all records, skipping any that fail to parse."""
        records = await self.record_store.list()
        memories = []
        for data in records:
            try:
                memories.append(Memory.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                record_id = data.get("id", "?") if isinstance(data, dict) else "?"
                logger.warning(f"Skipping corrupt memory record {record_id}: {e}")
        return memories

    async def _save(self, memory: Memory) -> None:
        try:
            await self.record_store.save(memory.id, memory.to_dict())
        except StorageError:
            raise
        except Exception as e:
            logger.error(f"Failed to save memory {memory.id}: {e}")
            raise StorageError(f"Failed to save memory {memory.id}: {e}") from e

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_memory(
        self,
        content: str,
        type: MemoryType | str = MemoryType.FACT,
        metadata: Mapping[str, Any] | MemoryMetadata | None = None,
        *,
        importance: float | None = None,
        base_importance: float | None = None,
        timestamp: int | None = None,
    ) -> Memory:
        """
        Create, persist and index a new memory.

        Embedding failures never abort creation: the memory is stored
        without a vector and is only reachable by keyword search.

        Args:
            content: Text body
            type: Memory type (open-ended)
            metadata: Extra metadata; a "similarity" key is dropped
            importance: Explicit importance in [0, 1]
            base_importance: Starting point for the importance heuristic
            timestamp: Creation time in epoch ms (defaults to now)

        Returns:
            The created Memory

        Raises:
            StorageError: if the record store rejected the write
            ValueError: if an explicit importance is outside [0, 1]
        """
        self._ensure_initialized()

        if not isinstance(content, str):
            raise TypeError(f"content must be a string, got {content.__class__.__name__}")

        type_value = _type_value(type)
        if importance is None:
            importance = self.importance.score(content, type_value, base_importance)
        else:
            importance = _validate_importance(importance)

        if isinstance(metadata, MemoryMetadata):
            meta = metadata.copy()
        else:
            meta = MemoryMetadata.from_dict(metadata)
        meta.similarity = None

        logger.debug(f"Creating {type_value} memory: \"{content[:100]}{'...' if len(content) > 100 else ''}\"")
        embedding = await self._try_embed(content)

        memory = Memory(
            id=str(uuid.uuid4()),
            content=content,
            type=type_value,
            created_at=int(timestamp) if timestamp is not None else now_ms(),
            importance=importance,
            embedding=embedding,
            metadata=meta,
        )

        async with self._lock:
            await self._save(memory)
            self._ids.add(memory.id)
            self._index_add(memory)
            await self._prune_locked()

        logger.info(
            f"Stored memory {memory.id} (type={type_value}, importance={importance:.2f}, "
            f"embedded={embedding is not None})"
        )
        return memory.copy()

    async def add_memory(
        self,
        content: str,
        metadata: Mapping[str, Any] | None = None,
    ) -> Memory:
        """
        Caller-facing create.

        `type`, `importance` and `timestamp` are read from metadata when
        present; everything else is stored as metadata.
        """
        meta = dict(metadata or {})
        type_value = meta.get("type") or MemoryType.FACT.value
        importance = meta.pop("importance", None)
        timestamp = meta.pop("timestamp", None)
        return await self.create_memory(
            content,
            type_value,
            meta,
            importance=importance,
            timestamp=timestamp,
        )

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search_by_content(self, query: str, limit: int = 5) -> list[Memory]:
        """
        Find memories semantically related to `query`.

        Results carry metadata.similarity and are ordered by similarity,
        newest first on ties. If the query can't be embedded, falls back
        to case-insensitive keyword matching ordered by recency.
        """
        self._ensure_initialized()

        if limit <= 0 or not query or not query.strip():
            return []

        try:
            vector = await self._embed(query)
        except EmbeddingError as e:
            logger.warning(f"Query embedding failed, falling back to keyword search: {e}")
            return await self._keyword_search(query, limit)

        return await self._vector_search(vector, limit)

    async def search_memories(self, query: str, limit: int = 5) -> list[Memory]:
        """Caller-facing alias for search_by_content."""
        return await self.search_by_content(query, limit)

    async def search_by_embedding(self, vector: Sequence[float], limit: int = 5) -> list[Memory]:
        """Like search_by_content, for callers that already hold a query vector."""
        self._ensure_initialized()

        if limit <= 0:
            return []
        if len(vector) != self.dimension:
            logger.warning(f"Query vector has {len(vector)} dimensions, expected {self.dimension}")
            return []
        if not all(math.isfinite(float(x)) for x in vector):
            logger.warning("Query vector contains NaN or infinite values")
            return []

        return await self._vector_search(vector, limit)

    async def _vector_search(self, vector: Sequence[float], limit: int) -> list[Memory]:
        index = self._index
        try:
            candidates = index.search(vector, limit)
        except VectorIndexError as e:
            logger.warning(f"Vector index search failed, falling back to linear scan: {e}")
            candidates = await self._linear_scan(vector, limit)

        results = []
        for memory, similarity in candidates:
            # NaN never passes
            if not similarity >= self.similarity_threshold:
                logger.debug(f"Dropping candidate {memory.id}: similarity {similarity:.4f} below threshold")
                continue
            results.append(memory.with_similarity(similarity))

        logger.info(f"Vector search returned {len(results)} of {len(candidates)} candidates")
        return results[:limit]

    async def _linear_scan(self, vector: Sequence[float], limit: int) -> list[tuple[Memory, float]]:
        """Exact cosine scan over stored records that have embeddings."""
        scored = []
        for memory in await self._load_memories():
            if memory.embedding is None or len(memory.embedding) != self.dimension:
                continue
            scored.append((memory, cosine_similarity(vector, memory.embedding)))

        scored.sort(key=lambda pair: (-pair[1], -pair[0].created_at))
        return scored[:limit]

    async def _keyword_search(
        self,
        query: str,
        limit: int,
        type: str | None = None,
    ) -> list[Memory]:
        needle = query.lower()
        matches = [
            m for m in await self._load_memories()
            if needle in m.content.lower() and (type is None or m.type == type)
        ]
        matches.sort(key=lambda m: m.created_at, reverse=True)
        logger.info(f"Keyword search found {len(matches)} memories")
        return matches[:limit]

    async def search_memories_by_type(
        self,
        query: str,
        type: MemoryType | str,
        limit: int = 5,
    ) -> list[Memory]:
        """Keyword search restricted to a single memory type."""
        self._ensure_initialized()
        if limit <= 0:
            return []
        return await self._keyword_search(query, limit, type=_type_value(type))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    async def get_memory(self, memory_id: str) -> Optional[Memory]:
        """Fetch a single memory, or None if unknown."""
        self._ensure_initialized()

        data = await self.record_store.get(memory_id)
        if data is None:
            return None
        try:
            return Memory.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Memory {memory_id} is corrupt: {e}")
            return None

    async def get_recent(self, limit: int = 5, type: MemoryType | str | None = None) -> list[Memory]:
        """Most recent memories, optionally of one type. Never touches the index."""
        self._ensure_initialized()

        memories = await self._load_memories()
        if type is not None:
            type_value = _type_value(type)
            memories = [m for m in memories if m.type == type_value]

        memories.sort(key=lambda m: m.created_at, reverse=True)
        return memories[:max(limit, 0)]

    async def get_all_memories(self) -> list[Memory]:
        """Every stored memory, newest first."""
        self._ensure_initialized()

        memories = await self._load_memories()
        memories.sort(key=lambda m: m.created_at, reverse=True)
        return memories

    async def get_memories_by_type(self, type: MemoryType | str) -> list[Memory]:
        self._ensure_initialized()

        type_value = _type_value(type)
        memories = []
        for data in await self.record_store.query({"type": type_value}):
            try:
                memories.append(Memory.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping corrupt memory record: {e}")
        return memories

    async def count(self) -> int:
        """Number of memories currently stored."""
        self._ensure_initialized()
        return len(self._ids)

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    async def update_memory(self, memory_id: str, updates: Mapping[str, Any]) -> Memory:
        """
        Apply `updates` (content, type, importance, metadata) to a memory.

        id and created_at never change. A content change re-embeds the
        memory and replaces its index entry.

        Raises:
            MemoryNotFoundError: if memory_id is unknown
            StorageError: if the record store rejected the write
            ValueError: if importance is outside [0, 1]
        """
        self._ensure_initialized()

        for key in updates:
            if key not in UPDATABLE_FIELDS:
                logger.warning(f"Ignoring update to field '{key}' on memory {memory_id}")

        new_importance = None
        if "importance" in updates:
            new_importance = _validate_importance(updates["importance"])
        if "content" in updates and not isinstance(updates["content"], str):
            raise TypeError("content must be a string")

        async with self._lock:
            data = await self.record_store.get(memory_id)
            if data is None:
                raise MemoryNotFoundError(memory_id)
            try:
                current = Memory.from_dict(data)
            except (KeyError, TypeError, ValueError) as e:
                raise StorageError(f"Stored memory {memory_id} is corrupt: {e}") from e

            updated = current.copy()
            if "type" in updates:
                updated.type = _type_value(updates["type"])
            if new_importance is not None:
                updated.importance = new_importance
            if "metadata" in updates:
                updated.metadata = current.metadata.merged(updates["metadata"] or {})

            content_changed = "content" in updates and updates["content"] != current.content
            if content_changed:
                updated.content = updates["content"]
                updated.embedding = await self._try_embed(updated.content)

            await self._save(updated)

            if content_changed:
                await self._index_remove(memory_id)
                self._index_add(updated)
            elif updated.embedding is not None and not self._index.replace_record(updated):
                self._index_add(updated)

        logger.info(f"Updated memory {memory_id} (content_changed={content_changed})")
        return updated.copy()

    async def delete_memory(self, memory_id: str) -> None:
        """Remove a memory from the store and the index. Safe to repeat."""
        self._ensure_initialized()

        async with self._lock:
            try:
                await self.record_store.delete(memory_id)
            except StorageError:
                raise
            except Exception as e:
                logger.error(f"Failed to delete memory {memory_id}: {e}")
                raise StorageError(f"Failed to delete memory {memory_id}: {e}") from e

            self._ids.discard(memory_id)
            await self._index_remove(memory_id)

        logger.info(f"Deleted memory {memory_id}")

    async def clear(self) -> None:
        """Delete every memory and reset the index."""
        self._ensure_initialized()

        async with self._lock:
            try:
                await self.record_store.clear()
            except StorageError:
                raise
            except Exception as e:
                logger.error(f"Failed to clear memories: {e}")
                raise StorageError(f"Failed to clear memories: {e}") from e

            self._ids.clear()
            self._index = self._new_index()

            if self.index_path:
                for path in (Path(self.index_path), Path(self.index_path + META_SUFFIX)):
                    try:
                        path.unlink(missing_ok=True)
                    except OSError as e:
                        logger.warning(f"Could not remove persisted index file {path}: {e}")

        logger.info("All memories cleared")

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    async def prune(self) -> int:
        """Run an eviction pass. Returns the number of memories evicted."""
        self._ensure_initialized()
        async with self._lock:
            return await self._prune_locked()

    async def _prune_locked(self) -> int:
        if len(self._ids) <= self.max_memories:
            return 0

        memories = await self._load_memories()
        if len(memories) <= self.max_memories:
            self._ids = {m.id for m in memories}
            return 0

        important_n, recent_n = self.retention.tier_sizes(self.max_memories)
        logger.info(
            f"Pruning {len(memories)} memories down to {self.max_memories} "
            f"(important={important_n}, recent={recent_n})"
        )

        # sorted() copies, so concurrent readers never see a half-sorted list
        by_importance = sorted(memories, key=lambda m: (m.importance, m.created_at), reverse=True)
        important = by_importance[:important_n]
        recent = sorted(
            by_importance[important_n:], key=lambda m: m.created_at, reverse=True
        )[:recent_n]
        keep = {m.id for m in important} | {m.id for m in recent}

        evicted = 0
        for memory in memories:
            if memory.id in keep:
                continue
            try:
                await self.record_store.delete(memory.id)
            except StorageError as e:
                logger.error(f"Failed to evict memory {memory.id}, keeping it: {e}")
                keep.add(memory.id)
                continue
            evicted += 1
            logger.debug(f"Evicted memory {memory.id} (importance={memory.importance:.2f})")

        retained = [
            m for m in memories
            if m.id in keep and (m.embedding is None or len(m.embedding) == self.dimension)
        ]
        self._ids = {m.id for m in memories if m.id in keep}
        self._index = self._build_index(retained)

        logger.info(f"Pruned {evicted} memories, {len(self._ids)} remain")
        return evicted


def create_record_store(storage_config) -> RecordStore:
    """Build the record store selected by a StorageConfig."""
    backend = storage_config.backend
    if backend == "file":
        return FileRecordStore(base_path=storage_config.data_path)
    elif backend == "memory":
        return InMemoryRecordStore()
    elif backend == "postgres":
        if not storage_config.postgres_url:
            raise ValueError("postgres_url required for postgres storage backend")
        from .pg_record_store import PostgresRecordStore
        return PostgresRecordStore(
            connection_string=storage_config.postgres_url,
            table_name=storage_config.table_name,
        )
    else:
        raise ValueError(f"Unknown storage backend: {backend}")


async def create_memory_manager(config) -> MemoryManager:
    """
    Factory function to create a configured, initialized MemoryManager.

    Args:
        config: A recollect.config.Config

    Returns:
        Initialized MemoryManager
    """
    embedding_provider = create_embedding_provider(
        provider=config.embedding.provider,
        api_key=config.embedding.api_key,
        model=config.embedding.model,
        base_url=config.embedding.base_url or None,
        dimensions=config.embedding.dimensions,
    )

    record_store = create_record_store(config.storage)

    manager = MemoryManager(
        record_store=record_store,
        embedding_provider=embedding_provider,
        max_memories=config.memory.max_memories,
        similarity_threshold=config.memory.similarity_threshold,
        embedding_timeout=config.embedding.timeout,
        index_path=config.index.index_path or None,
        index_capacity=config.index.capacity,
        retention=RetentionPolicy(
            important_ratio=config.memory.important_ratio,
            recent_ratio=config.memory.recent_ratio,
        ),
        importance=ImportanceHeuristics(base=config.memory.base_importance),
        hnsw_m=config.index.m,
        hnsw_ef_construction=config.index.ef_construction,
        hnsw_ef_search=config.index.ef_search,
        compact_ratio=config.index.compact_ratio,
    )

    await manager.initialize()
    return manager
