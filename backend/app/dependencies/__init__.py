"""
FastAPI dependency injection module.

Provides centralized dependencies for:
- Database sessions
- Catalog reads
- Search indexes and the embedding client
- Services
"""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from contribux.cache import cache
from contribux.catalog import CatalogStore
from contribux.config import get_settings
from contribux.db import get_db
from contribux.index.registry import SearchIndexes, get_search_indexes
from contribux.services import DiscoveryService, EmbeddingService, IngestionService

# =============================================================================
# Store Dependencies
# =============================================================================


def get_catalog(db: Session = Depends(get_db)) -> CatalogStore:
    """Get a CatalogStore bound to the request session."""
    return CatalogStore(db)


def get_indexes() -> SearchIndexes:
    """Process-wide search indexes."""
    return get_search_indexes()


@lru_cache(maxsize=1)
def get_embedding_service() -> Optional[EmbeddingService]:
    """Shared embedding client, or None when embeddings are disabled."""
    settings = get_settings()
    if not settings.embeddings_enabled:
        return None
    return EmbeddingService.from_settings(settings)


def get_cache():
    """Get Redis cache instance."""
    if not cache.is_available:
        cache.initialize()
    return cache


# =============================================================================
# Service Dependencies
# =============================================================================


def get_discovery_service(
    catalog: CatalogStore = Depends(get_catalog),
    indexes: SearchIndexes = Depends(get_indexes),
    embedding_service: Optional[EmbeddingService] = Depends(get_embedding_service),
    redis_cache=Depends(get_cache),
) -> DiscoveryService:
    """Get DiscoveryService with injected stores."""
    return DiscoveryService(catalog, indexes, embedding_service=embedding_service, cache=redis_cache)


def get_ingestion_service(
    db: Session = Depends(get_db),
    indexes: SearchIndexes = Depends(get_indexes),
    embedding_service: Optional[EmbeddingService] = Depends(get_embedding_service),
    redis_cache=Depends(get_cache),
) -> IngestionService:
    """Get IngestionService with injected stores."""
    return IngestionService(db, indexes, embedding_service=embedding_service, cache=redis_cache)


__all__ = [
    "get_db",
    "get_catalog",
    "get_indexes",
    "get_embedding_service",
    "get_cache",
    "get_discovery_service",
    "get_ingestion_service",
]
