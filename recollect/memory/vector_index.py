"""
HNSW Vector Index over memory embeddings.

Wraps a faiss IndexHNSWFlat with inner-product metric. Vectors are
L2-normalised before insertion, so inner product equals cosine similarity.

Deletes use tombstones: remove() detaches a graph slot from its memory in
O(1) and searches skip detached slots. Once tombstones exceed
`compact_ratio` of the occupied slots the graph is rebuilt from the live
vectors, which costs O(N log N). Until then a removed vector still occupies
a slot and still counts against capacity.

The index is a cache. The record store stays authoritative and any
persisted index that disagrees with it is discarded and rebuilt.
"""

import json
import logging
import os
from pathlib import Path
from typing import Mapping, Optional, Sequence

import numpy as np

import faiss  # type: ignore

from .base import Memory
from .errors import IndexCapacityError, VectorIndexError

logger = logging.getLogger("recollect.memory.index")

META_SUFFIX = ".meta.json"
META_VERSION = 1


def normalize(vector: Sequence[float], dimension: int) -> np.ndarray:
    """Convert to a float32 unit vector, validating shape and values."""
    v = np.asarray(vector, dtype=np.float32).reshape(-1)
    if v.shape[0] != dimension:
        raise VectorIndexError(f"dim mismatch: expected {dimension}, got {v.shape[0]}")
    if not np.all(np.isfinite(v)):
        raise VectorIndexError("vector contains NaN or infinite values")
    norm = float(np.linalg.norm(v))
    if norm > 0:
        v = v / norm
    return np.ascontiguousarray(v, dtype=np.float32)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity between two raw vectors (0.0 if either is zero)."""
    va = np.asarray(a, dtype=np.float32)
    vb = np.asarray(b, dtype=np.float32)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0:
        return 0.0
    return float(np.dot(va, vb) / denom)


class HnswVectorIndex:
    """
    Approximate nearest-neighbour index keyed by memory id.

    Holds a reference to each indexed Memory so search results can be
    returned (and tie-broken by timestamp) without a store round trip.
    """

    def __init__(
        self,
        dimension: int,
        capacity: int,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 50,
        compact_ratio: float = 0.25,
    ):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self.dimension = int(dimension)
        self.capacity = int(capacity)
        self.m = m
        self.ef_construction = ef_construction
        self.ef_search = ef_search
        self.compact_ratio = compact_ratio

        # slot -> memory id, None once tombstoned
        self._slots: list[Optional[str]] = []
        self._slot_of: dict[str, int] = {}
        self._vectors: dict[str, np.ndarray] = {}
        self._memories: dict[str, Memory] = {}
        self._index = self._create()

    def _create(self) -> "faiss.Index":
        idx = faiss.IndexHNSWFlat(self.dimension, self.m, faiss.METRIC_INNER_PRODUCT)
        idx.hnsw.efConstruction = self.ef_construction
        idx.hnsw.efSearch = self.ef_search
        return idx

    @property
    def size(self) -> int:
        """Number of live (searchable) entries."""
        return len(self._slot_of)

    @property
    def slots_used(self) -> int:
        return len(self._slots)

    @property
    def tombstones(self) -> int:
        return len(self._slots) - len(self._slot_of)

    def __len__(self) -> int:
        return self.size

    def contains(self, memory_id: str) -> bool:
        return memory_id in self._slot_of

    def ids(self) -> set[str]:
        return set(self._slot_of)

    def add(self, vector: Sequence[float], memory: Memory) -> None:
        """
        Index `vector` for `memory`. Re-adding an id replaces its old entry.

        Raises:
            VectorIndexError: on a malformed vector
            IndexCapacityError: if no slot is free even after compaction
        """
        v = normalize(vector, self.dimension)

        if memory.id in self._slot_of:
            self.remove(memory.id)

        if len(self._slots) >= self.capacity and self.tombstones > 0:
            self.compact()
        if len(self._slots) >= self.capacity:
            raise IndexCapacityError(
                f"Vector index full ({self.capacity} slots), cannot add {memory.id}"
            )

        slot = len(self._slots)
        try:
            self._index.add(v.reshape(1, -1))
        except Exception as e:
            raise VectorIndexError(f"faiss add failed for {memory.id}: {e}") from e
        self._slots.append(memory.id)
        self._slot_of[memory.id] = slot
        self._vectors[memory.id] = v
        self._memories[memory.id] = memory
        logger.debug(f"Indexed memory {memory.id} at slot {slot}")

    def remove(self, memory_id: str) -> bool:
        """Tombstone the entry for `memory_id`. Returns False if it was absent."""
        slot = self._slot_of.pop(memory_id, None)
        if slot is None:
            return False

        self._slots[slot] = None
        self._vectors.pop(memory_id, None)
        self._memories.pop(memory_id, None)
        logger.debug(f"Tombstoned memory {memory_id} (slot {slot})")

        if self._slots and self.tombstones > self.compact_ratio * len(self._slots):
            self.compact()
        return True

    def replace_record(self, memory: Memory) -> bool:
        """Swap the Memory held for an id without touching its vector."""
        if memory.id not in self._slot_of:
            return False
        self._memories[memory.id] = memory
        return True

    def compact(self) -> None:
        """Rebuild the graph from live vectors, dropping tombstoned slots."""
        live_ids = [mid for mid in self._slots if mid is not None]
        dropped = len(self._slots) - len(live_ids)

        index = self._create()
        if live_ids:
            try:
                index.add(np.stack([self._vectors[mid] for mid in live_ids]))
            except Exception as e:
                raise VectorIndexError(f"faiss rebuild failed during compaction: {e}") from e

        self._index = index
        self._slots = list(live_ids)
        self._slot_of = {mid: i for i, mid in enumerate(live_ids)}
        logger.info(f"Compacted vector index: {len(live_ids)} live, {dropped} tombstones dropped")

    def clear(self) -> None:
        self._index = self._create()
        self._slots = []
        self._slot_of = {}
        self._vectors = {}
        self._memories = {}

    def search(self, vector: Sequence[float], k: int) -> list[tuple[Memory, float]]:
        """
        Find up to `k` nearest memories.

        Returns (memory, similarity) pairs ordered by similarity descending,
        ties broken by most recent created_at first.
        """
        if k <= 0 or not self._slot_of:
            return []

        q = normalize(vector, self.dimension)

        # Over-fetch so tombstones and boundary ties don't starve the result
        kk = min(len(self._slots), 2 * k + self.tombstones)
        try:
            _, labels = self._index.search(q.reshape(1, -1), kk)
        except Exception as e:
            raise VectorIndexError(f"faiss search failed: {e}") from e

        results: list[tuple[Memory, float]] = []
        seen = set()
        for label in labels.reshape(-1).tolist():
            if label < 0 or label >= len(self._slots):
                continue
            memory_id = self._slots[label]
            if memory_id is None or memory_id in seen:
                continue
            seen.add(memory_id)
            # Exact rerank on the stored unit vectors
            score = float(np.dot(self._vectors[memory_id], q))
            results.append((self._memories[memory_id], score))

        results.sort(key=lambda pair: (-pair[1], -pair[0].created_at))
        return results[:k]

    def persist(self, path: str | os.PathLike) -> None:
        """
        Write the graph to `path` and its metadata to `path` + ".meta.json".

        Raises:
            VectorIndexError: if either file could not be written
        """
        path = Path(path)
        meta_path = Path(str(path) + META_SUFFIX)
        meta = {
            "version": META_VERSION,
            "dimension": self.dimension,
            "capacity": self.capacity,
            "m": self.m,
            "slots": self._slots,
        }

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            faiss.write_index(self._index, str(path))
            tmp_meta = meta_path.with_name(meta_path.name + ".tmp")
            with open(tmp_meta, "w", encoding="utf-8") as f:
                json.dump(meta, f)
            os.replace(tmp_meta, meta_path)
        except Exception as e:
            raise VectorIndexError(f"Failed to persist vector index to {path}: {e}") from e

        logger.info(f"Persisted vector index ({self.size} live entries) to {path}")

    @classmethod
    def load(
        cls,
        path: str | os.PathLike,
        memories: Mapping[str, Memory],
        dimension: int,
        capacity: int,
        m: int = 16,
        ef_construction: int = 200,
        ef_search: int = 50,
        compact_ratio: float = 0.25,
    ) -> "HnswVectorIndex":
        """
        Load a persisted index and re-attach it to `memories`.

        Any mismatch with the current configuration or with the records
        (missing memory, changed embedding) invalidates the file.

        Raises:
            VectorIndexError: if the index is missing, corrupt or stale
        """
        path = Path(path)
        meta_path = Path(str(path) + META_SUFFIX)
        if not path.exists() or not meta_path.exists():
            raise VectorIndexError(f"No persisted vector index at {path}")

        try:
            with open(meta_path, encoding="utf-8") as f:
                meta = json.load(f)
            slots = meta["slots"]
            saved_dimension = int(meta["dimension"])
            saved_capacity = int(meta["capacity"])
        except (OSError, ValueError, KeyError, TypeError) as e:
            raise VectorIndexError(f"Corrupt vector index metadata {meta_path}: {e}") from e

        if saved_dimension != dimension or saved_capacity != capacity:
            raise VectorIndexError(
                f"Vector index built for dimension={saved_dimension}, capacity={saved_capacity}; "
                f"configured dimension={dimension}, capacity={capacity}"
            )

        try:
            raw = faiss.read_index(str(path))
        except Exception as e:
            raise VectorIndexError(f"Corrupt vector index file {path}: {e}") from e

        if not hasattr(raw, "hnsw"):
            raise VectorIndexError(f"Vector index file {path} is not an HNSW index")
        if raw.d != dimension or raw.ntotal != len(slots):
            raise VectorIndexError(
                f"Vector index file {path} disagrees with its metadata "
                f"(d={raw.d}, ntotal={raw.ntotal}, slots={len(slots)})"
            )

        index = cls(
            dimension=dimension,
            capacity=capacity,
            m=m,
            ef_construction=ef_construction,
            ef_search=ef_search,
            compact_ratio=compact_ratio,
        )
        raw.hnsw.efSearch = ef_search

        for slot, memory_id in enumerate(slots):
            if memory_id is None:
                continue
            if memory_id in index._slot_of:
                raise VectorIndexError(f"Persisted index lists memory {memory_id} twice")
            memory = memories.get(memory_id)
            if memory is None or memory.embedding is None:
                raise VectorIndexError(f"Persisted index references unknown memory {memory_id}")
            expected = normalize(memory.embedding, dimension)
            stored = np.asarray(raw.reconstruct(slot), dtype=np.float32)
            if not np.allclose(stored, expected, atol=1e-5):
                raise VectorIndexError(f"Persisted vector for {memory_id} is stale")

            index._slot_of[memory_id] = slot
            index._vectors[memory_id] = expected
            index._memories[memory_id] = memory

        index._slots = list(slots)
        index._index = raw
        logger.info(f"Loaded vector index from {path}: {index.size} live, {index.tombstones} tombstones")
        return index
