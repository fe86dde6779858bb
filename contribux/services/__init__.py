"""
Service layer: ingestion (writes), discovery (reads) and the embedding client.

Usage:
    from contribux.services import DiscoveryService, IngestionService
"""

from .discovery_service import DiscoveryService, SearchResponse
from .embedding_service import EmbeddingProvider, EmbeddingService, RateLimiter, SentenceTransformerProvider
from .ingestion_service import IngestionService

__all__ = [
    "DiscoveryService",
    "SearchResponse",
    "IngestionService",
    "EmbeddingService",
    "EmbeddingProvider",
    "SentenceTransformerProvider",
    "RateLimiter",
]
