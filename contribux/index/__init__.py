"""
Search indexes: cosine vector indexes, the double-buffered manager and the
lexical index.
"""

from .lexical import LexicalIndex, lexical_score
from .manager import IndexManager, IndexVersion
from .vector_index import (
    BruteForceIndex,
    HNSWConfig,
    HNSWIndex,
    VectorIndex,
    create_index,
    index_factory_from_settings,
    normalize_vector,
)

__all__ = [
    "VectorIndex",
    "BruteForceIndex",
    "HNSWIndex",
    "HNSWConfig",
    "IndexManager",
    "IndexVersion",
    "LexicalIndex",
    "create_index",
    "index_factory_from_settings",
    "lexical_score",
    "normalize_vector",
]
