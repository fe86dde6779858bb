"""
Cosine-similarity vector indexes.

Two implementations share one interface:

- ``BruteForceIndex``: exact scan over a dense matrix. Reference implementation
  for small corpora and the recall baseline for the graph index.
- ``HNSWIndex``: approximate search on a FAISS ``IndexHNSWFlat`` graph with
  ``m`` links per node and ``ef_construction``/``ef_search`` beam widths.

Vectors are L2-normalized on write, so similarity is a dot product.
Query results are ordered by similarity descending; equal similarities are
ordered by most recent upsert first.

Usage:
    index = create_index(dimension=384)
    index.upsert(17, vector)
    index.query(query_vector, k=10, min_similarity=0.2)
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Optional

import faiss
import numpy as np

from contribux.exceptions import DimensionMismatch, InvalidLimit, InvalidVector
from contribux.logging import get_logger

logger = get_logger(__name__)


def normalize_vector(vector, dimension: int) -> np.ndarray:
    """
    Validate a vector against ``dimension`` and return it L2-normalized.

    Raises:
        DimensionMismatch: Wrong length
        InvalidVector: Not one-dimensional, non-finite, or zero-norm
    """
    arr = np.asarray(vector, dtype=np.float64)
    if arr.ndim != 1:
        raise InvalidVector(f"vector must be one-dimensional (got shape {arr.shape})")
    if arr.shape[0] != dimension:
        raise DimensionMismatch(expected=dimension, actual=arr.shape[0])
    if not np.all(np.isfinite(arr)):
        raise InvalidVector("vector contains non-finite values")
    norm = float(np.linalg.norm(arr))
    if norm == 0.0:
        raise InvalidVector("vector has zero norm")
    return arr / norm


def _check_k(k: int) -> None:
    if not isinstance(k, int) or isinstance(k, bool) or k <= 0:
        raise InvalidLimit(k)


def _order(hits: list[tuple[int, float, int]], k: int, min_similarity: float) -> list[tuple[int, float]]:
    """Sort (id, similarity, seq) by similarity desc then seq desc, apply floor and k."""
    kept = [h for h in hits if h[1] >= min_similarity]
    kept.sort(key=lambda h: (-h[1], -h[2]))
    return [(item_id, similarity) for item_id, similarity, _ in kept[:k]]


class VectorIndex(ABC):
    """Common interface of the vector indexes."""

    def __init__(self, dimension: int):
        if dimension <= 0:
            raise ValueError(f"dimension must be positive (got {dimension})")
        self.dimension = dimension
        self._lock = threading.RLock()
        self._seq = 0

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    @abstractmethod
    def upsert(self, item_id: int, vector) -> None:
        """Insert ``vector`` for ``item_id``, replacing any previous vector."""

    @abstractmethod
    def remove(self, item_id: int) -> bool:
        """Remove ``item_id``. Returns False when it was not present."""

    @abstractmethod
    def query(self, vector, k: int, min_similarity: float = -1.0) -> list[tuple[int, float]]:
        """Return up to ``k`` (id, similarity) pairs with similarity >= ``min_similarity``."""

    @abstractmethod
    def items(self) -> Iterator[tuple[int, np.ndarray]]:
        """Live (id, normalized vector) pairs in upsert order."""

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def __contains__(self, item_id: object) -> bool:
        ...


class BruteForceIndex(VectorIndex):
    """Exact cosine search over every stored vector."""

    def __init__(self, dimension: int):
        super().__init__(dimension)
        self._vectors: dict[int, tuple[np.ndarray, int]] = {}
        self._matrix: Optional[np.ndarray] = None
        self._matrix_ids: list[int] = []

    def upsert(self, item_id: int, vector) -> None:
        unit = normalize_vector(vector, self.dimension)
        with self._lock:
            self._vectors.pop(item_id, None)
            self._vectors[item_id] = (unit, self._next_seq())
            self._matrix = None

    def remove(self, item_id: int) -> bool:
        with self._lock:
            if self._vectors.pop(item_id, None) is None:
                return False
            self._matrix = None
            return True

    def query(self, vector, k: int, min_similarity: float = -1.0) -> list[tuple[int, float]]:
        _check_k(k)
        unit = normalize_vector(vector, self.dimension)
        with self._lock:
            if not self._vectors:
                return []
            if self._matrix is None:
                self._matrix_ids = list(self._vectors)
                self._matrix = np.vstack([self._vectors[i][0] for i in self._matrix_ids])
            similarities = self._matrix @ unit
            hits = [
                (item_id, float(similarities[row]), self._vectors[item_id][1])
                for row, item_id in enumerate(self._matrix_ids)
            ]
        return _order(hits, k, min_similarity)

    def items(self) -> Iterator[tuple[int, np.ndarray]]:
        with self._lock:
            pairs = [(item_id, vec) for item_id, (vec, _) in self._vectors.items()]
        yield from pairs

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._vectors


@dataclass
class HNSWConfig:
    """Graph construction and search parameters for ``faiss.IndexHNSWFlat``."""

    m: int = 16
    ef_construction: int = 200
    ef_search: int = 64
    compaction_ratio: float = 0.5

    def __post_init__(self):
        if self.m < 2:
            raise ValueError("m must be at least 2")
        if self.ef_construction < 1 or self.ef_search < 1:
            raise ValueError("ef_construction and ef_search must be positive")
        if not 0.0 < self.compaction_ratio <= 1.0:
            raise ValueError("compaction_ratio must be in (0, 1]")


class HNSWIndex(VectorIndex):
    """
    Approximate cosine search backed by ``faiss.IndexHNSWFlat``.

    Vectors are L2-normalized and searched by inner product. FAISS assigns
    sequential positions to added vectors and HNSW graphs cannot delete, so
    this wrapper keeps the position -> id mapping and tombstones removed or
    replaced positions. Once tombstones exceed ``compaction_ratio`` of all
    positions the graph is rebuilt from the live vectors in upsert order.
    Level assignment uses FAISS's fixed seed, so identical insert sequences
    build identical graphs.
    """

    def __init__(self, dimension: int, config: Optional[HNSWConfig] = None):
        super().__init__(dimension)
        self.config = config or HNSWConfig()
        self._reset_graph()

    def _create_faiss_index(self) -> faiss.Index:
        index = faiss.IndexHNSWFlat(self.dimension, self.config.m, faiss.METRIC_INNER_PRODUCT)
        index.hnsw.efConstruction = self.config.ef_construction
        index.hnsw.efSearch = self.config.ef_search
        return index

    def _reset_graph(self) -> None:
        self._index = self._create_faiss_index()
        self._node_ids: list[int] = []
        self._node_seq: list[int] = []
        self._deleted: list[bool] = []
        self._id_to_node: dict[int, int] = {}
        self._tombstones = 0

    def upsert(self, item_id: int, vector) -> None:
        unit = normalize_vector(vector, self.dimension)
        with self._lock:
            if item_id in self._id_to_node:
                self._tombstone(self._id_to_node.pop(item_id))
            self._add([item_id], unit.reshape(1, -1), [self._next_seq()])
            self._maybe_compact()

    def remove(self, item_id: int) -> bool:
        with self._lock:
            node = self._id_to_node.pop(item_id, None)
            if node is None:
                return False
            self._tombstone(node)
            self._maybe_compact()
            return True

    def query(self, vector, k: int, min_similarity: float = -1.0) -> list[tuple[int, float]]:
        _check_k(k)
        query = _as_faiss_matrix(normalize_vector(vector, self.dimension).reshape(1, -1))
        with self._lock:
            if not self._id_to_node:
                return []
            # Over-fetch so tombstoned positions cannot crowd out live ones.
            fetch = min(self._index.ntotal, k + self._tombstones)
            self._index.hnsw.efSearch = max(self.config.ef_search, fetch)
            similarities, positions = self._index.search(query, fetch)
            hits = [
                (self._node_ids[pos], float(similarity), self._node_seq[pos])
                for similarity, pos in zip(similarities[0], positions[0])
                if pos >= 0 and not self._deleted[pos]
            ]
        return _order(hits, k, min_similarity)

    def items(self) -> Iterator[tuple[int, np.ndarray]]:
        with self._lock:
            nodes = sorted(self._id_to_node.values(), key=lambda n: self._node_seq[n])
            pairs = [(self._node_ids[n], self._index.reconstruct(n)) for n in nodes]
        yield from pairs

    def compact(self) -> None:
        """Rebuild the FAISS graph from live vectors, dropping every tombstone."""
        with self._lock:
            live = sorted(self._id_to_node.values(), key=lambda n: self._node_seq[n])
            ids = [self._node_ids[n] for n in live]
            seqs = [self._node_seq[n] for n in live]
            vectors = np.vstack([self._index.reconstruct(n) for n in live]) if live else None
            dropped = self._tombstones
            self._reset_graph()
            if vectors is not None:
                self._add(ids, vectors, seqs)
        logger.debug("hnsw_compacted", live=len(ids), dropped=dropped)

    @property
    def tombstones(self) -> int:
        return self._tombstones

    def __len__(self) -> int:
        return len(self._id_to_node)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._id_to_node

    def _add(self, ids: list[int], vectors: np.ndarray, seqs: list[int]) -> None:
        start = self._index.ntotal
        self._index.add(_as_faiss_matrix(vectors))
        for offset, (item_id, seq) in enumerate(zip(ids, seqs)):
            self._node_ids.append(item_id)
            self._node_seq.append(seq)
            self._deleted.append(False)
            self._id_to_node[item_id] = start + offset

    def _tombstone(self, node: int) -> None:
        self._deleted[node] = True
        self._tombstones += 1

    def _maybe_compact(self) -> None:
        total = len(self._node_ids)
        if total and self._tombstones > total * self.config.compaction_ratio:
            self.compact()


def _as_faiss_matrix(vectors: np.ndarray) -> np.ndarray:
    """Contiguous float32 rows, renormalized after the cast."""
    matrix = np.ascontiguousarray(vectors, dtype=np.float32)
    faiss.normalize_L2(matrix)
    return matrix


def create_index(
    dimension: int,
    index_type: str = "hnsw",
    hnsw_config: Optional[HNSWConfig] = None,
) -> VectorIndex:
    """
    Build an empty index of the requested type.

    Args:
        dimension: Vector dimension
        index_type: 'hnsw' or 'brute_force'
        hnsw_config: Graph parameters for 'hnsw'
    """
    if index_type == "brute_force":
        return BruteForceIndex(dimension)
    if index_type == "hnsw":
        return HNSWIndex(dimension, hnsw_config)
    raise ValueError(f"Unknown index type: {index_type}")


def index_factory_from_settings(settings):
    """Return a ``dimension -> VectorIndex`` factory configured from settings."""
    config = HNSWConfig(
        m=settings.hnsw_m,
        ef_construction=settings.hnsw_ef_construction,
        ef_search=settings.hnsw_ef_search,
    )

    def factory(dimension: int) -> VectorIndex:
        return create_index(dimension, settings.vector_index_type, config)

    return factory


__all__ = [
    "VectorIndex",
    "BruteForceIndex",
    "HNSWIndex",
    "HNSWConfig",
    "normalize_vector",
    "create_index",
    "index_factory_from_settings",
]
