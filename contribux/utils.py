"""
Shared Utilities.

Time handling, set normalization, technology matching and embedding
serialization used across the engine.
"""

import hashlib
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Optional, TypeVar

import numpy as np

from .constants import TECHNOLOGY_SYNONYMS

T = TypeVar("T")

EMBEDDING_DTYPE = np.float32


# =============================================================================
# Time
# =============================================================================


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def hours_between(earlier: datetime, later: datetime) -> float:
    """Hours elapsed from ``earlier`` to ``later``."""
    return (to_naive_utc(later) - to_naive_utc(earlier)).total_seconds() / 3600.0


# =============================================================================
# Sets
# =============================================================================


def ordered_set(values: Optional[Iterable[T]]) -> tuple[T, ...]:
    """De-duplicate while keeping first-seen order."""
    if not values:
        return ()
    return tuple(dict.fromkeys(v for v in values if v is not None))


def normalize_tech_name(tech: str) -> str:
    """
    Normalize a technology name for consistent matching.

    Args:
        tech: Raw technology string.

    Returns:
        Normalized technology token.
    """
    return tech.lower().strip().replace(" ", "-").replace("_", "-")


def get_tech_variants(tech: str) -> set[str]:
    """Collect the normalized name of a technology plus its synonyms."""
    normalized = normalize_tech_name(tech)
    variants = {normalized}
    for synonym in TECHNOLOGY_SYNONYMS.get(normalized, ()):
        variants.add(normalize_tech_name(synonym))
    return variants


def technologies_match(left: str, right: str) -> bool:
    """True when two technology names are equal or synonyms."""
    return bool(get_tech_variants(left) & get_tech_variants(right))


# =============================================================================
# Content hashing / embeddings
# =============================================================================


def content_hash(*parts: Optional[str]) -> str:
    """Stable hash of the text an embedding summarizes."""
    h = hashlib.sha256()
    for part in parts:
        h.update((part or "").encode("utf-8"))
        h.update(b"\x1f")
    return h.hexdigest()


def vector_to_bytes(vector: Sequence[float] | np.ndarray) -> bytes:
    """Serialize an embedding for a LargeBinary column."""
    return np.asarray(vector, dtype=EMBEDDING_DTYPE).tobytes()


def bytes_to_vector(blob: Optional[bytes]) -> Optional[np.ndarray]:
    """Deserialize an embedding stored by :func:`vector_to_bytes`."""
    if not blob:
        return None
    return np.frombuffer(blob, dtype=EMBEDDING_DTYPE).copy()


def cosine_similarity(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> float:
    """
    Cosine similarity in [-1, 1]; 0.0 when either side is missing, zero-norm,
    or the dimensions differ.
    """
    if a is None or b is None or a.shape != b.shape:
        return 0.0
    norm = float(np.linalg.norm(a) * np.linalg.norm(b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(a, b) / norm)


def chunked(items: Sequence[T], chunk_size: int) -> Iterable[Sequence[T]]:
    """Yield consecutive slices of at most ``chunk_size`` items."""
    for start in range(0, len(items), chunk_size):
        yield items[start:start + chunk_size]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


__all__ = [
    "utcnow",
    "to_naive_utc",
    "hours_between",
    "ordered_set",
    "normalize_tech_name",
    "get_tech_variants",
    "technologies_match",
    "content_hash",
    "vector_to_bytes",
    "bytes_to_vector",
    "cosine_similarity",
    "chunked",
    "clamp",
]
