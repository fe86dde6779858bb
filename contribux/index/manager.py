"""
Double-buffered vector index holder.

Readers grab the active ``IndexVersion`` once and query it; a rebuild (for
example after an embedding model change) builds a new index off to the side,
replays the writes that arrived while it was building, and swaps the active
version in one assignment. In-flight queries finish on the version they
started with.
"""

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import numpy as np

from contribux.exceptions import (
    DimensionMismatch,
    IndexUnavailable,
    InvalidVector,
    InvariantViolation,
)
from contribux.logging import get_logger, log_timing
from contribux.utils import utcnow

from .vector_index import VectorIndex, create_index

logger = get_logger(__name__)

IndexFactory = Callable[[int], VectorIndex]


@dataclass(frozen=True)
class IndexVersion:
    """An immutable handle on one built index."""

    version: int
    model_name: str
    dimension: int
    index: VectorIndex = field(compare=False, repr=False)
    built_at: datetime = field(default_factory=utcnow)

    def query(self, vector, k: int, min_similarity: float = -1.0) -> list[tuple[int, float]]:
        return self.index.query(vector, k, min_similarity)


class IndexManager:
    """
    Owns the active index version for one kind of entity.

    Args:
        name: Label used in logs ('opportunities', 'repositories', 'users')
        dimension: Dimension of the initial (empty) version
        model_name: Embedding model the vectors come from
        factory: ``dimension -> VectorIndex``; defaults to an HNSW index
        start_empty: When False no version is active until the first rebuild
    """

    def __init__(
        self,
        name: str,
        dimension: int,
        model_name: str,
        factory: Optional[IndexFactory] = None,
        start_empty: bool = True,
    ):
        self.name = name
        self._factory: IndexFactory = factory or (lambda d: create_index(d))
        self._lock = threading.Lock()
        self._journal: list[tuple[str, int, Optional[np.ndarray]]] = []
        self._rebuilding = False
        self._pending_dimension: Optional[int] = None
        self._active: Optional[IndexVersion] = None
        if start_empty:
            self._active = IndexVersion(1, model_name, dimension, self._factory(dimension))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> IndexVersion:
        """The active version. Raises IndexUnavailable before the first build."""
        active = self._active
        if active is None:
            raise IndexUnavailable(f"{self.name} index has not been built yet")
        return active

    @property
    def is_ready(self) -> bool:
        return self._active is not None

    @property
    def is_rebuilding(self) -> bool:
        return self._rebuilding

    def query(self, vector, k: int, min_similarity: float = -1.0) -> list[tuple[int, float]]:
        return self.snapshot().query(vector, k, min_similarity)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, item_id: int, vector) -> None:
        """
        Write to the active version and, during a rebuild, to the journal.

        A vector whose dimension matches only the pending (rebuilding) version
        is journaled but not applied to the active one.
        """
        arr = np.asarray(vector, dtype=np.float64)
        with self._lock:
            active = self._active
            applied = False
            if active is not None and arr.shape == (active.dimension,):
                active.index.upsert(item_id, arr)
                applied = True
            if self._rebuilding:
                if not applied:
                    self._validate_pending(arr)
                self._journal.append(("upsert", item_id, arr))
            elif not applied:
                if active is None:
                    raise IndexUnavailable(f"{self.name} index has not been built yet")
                raise DimensionMismatch(expected=active.dimension, actual=arr.shape[0] if arr.ndim else 0)

    def remove(self, item_id: int) -> bool:
        with self._lock:
            removed = False
            if self._active is not None:
                removed = self._active.index.remove(item_id)
            if self._rebuilding:
                self._journal.append(("remove", item_id, None))
            return removed

    def _validate_pending(self, arr: np.ndarray) -> None:
        if arr.ndim != 1:
            raise InvalidVector(f"vector must be one-dimensional (got shape {arr.shape})")
        if arr.shape[0] != self._pending_dimension:
            raise DimensionMismatch(expected=self._pending_dimension, actual=arr.shape[0])

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    @log_timing("vector_index_rebuild")
    def rebuild(
        self,
        vectors: Iterable[tuple[int, object]],
        model_name: Optional[str] = None,
        dimension: Optional[int] = None,
    ) -> IndexVersion:
        """
        Build a fresh index from stored vectors and swap it in.

        Args:
            vectors: (id, vector) pairs read from the catalog
            model_name: Model of the new vectors; defaults to the active one
            dimension: Dimension of the new vectors; defaults to the active one

        Raises:
            InvariantViolation: A stored vector has the wrong dimension or is
                not a valid vector. The active version is left untouched.
        """
        with self._lock:
            if self._rebuilding:
                raise IndexUnavailable(f"{self.name} index rebuild already in progress")
            previous = self._active
            if dimension is None:
                if previous is None:
                    raise ValueError("dimension is required for the first build")
                dimension = previous.dimension
            model_name = model_name or (previous.model_name if previous else "unknown")
            self._rebuilding = True
            self._pending_dimension = dimension
            self._journal = []

        try:
            index = self._factory(dimension)
            built = 0
            for item_id, vector in vectors:
                arr = np.asarray(vector, dtype=np.float64)
                if arr.shape != (dimension,):
                    raise InvariantViolation(
                        f"stored vector for {self.name} id {item_id} has shape {arr.shape}, "
                        f"index dimension is {dimension}"
                    )
                try:
                    index.upsert(item_id, arr)
                except InvalidVector as e:
                    raise InvariantViolation(f"stored vector for {self.name} id {item_id} is invalid: {e}") from e
                built += 1

            with self._lock:
                replayed = self._replay(index, dimension)
                version = IndexVersion(
                    version=(previous.version + 1) if previous else 1,
                    model_name=model_name,
                    dimension=dimension,
                    index=index,
                )
                self._active = version
        finally:
            with self._lock:
                self._rebuilding = False
                self._pending_dimension = None
                self._journal = []

        logger.info(
            "vector_index_swapped",
            index=self.name,
            version=version.version,
            model=model_name,
            dimension=dimension,
            vectors=built,
            replayed=replayed,
        )
        return version

    def _replay(self, index: VectorIndex, dimension: int) -> int:
        replayed = 0
        for op, item_id, arr in self._journal:
            if op == "remove":
                index.remove(item_id)
            elif arr.shape != (dimension,):
                logger.warning(
                    "journal_entry_dropped",
                    index=self.name,
                    item_id=item_id,
                    dimension=arr.shape[0],
                    expected=dimension,
                )
                continue
            else:
                index.upsert(item_id, arr)
            replayed += 1
        return replayed


__all__ = ["IndexManager", "IndexVersion", "IndexFactory"]
