"""
Search index administration.

Rebuilds run in the API process; the Celery ``rebuild_vector_index`` task
does the same for worker processes.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from contribux.cache import CacheKeys
from contribux.db import get_db
from contribux.exceptions import IndexUnavailable
from contribux.index.registry import SearchIndexes

from ..dependencies import get_cache, get_indexes
from ..schemas import IndexRebuildRequest, IndexRebuildResponse, IndexStatus, IndexStatusResponse

router = APIRouter(prefix="/index", tags=["index"])


@router.get("/status", response_model=IndexStatusResponse)
def get_index_status(indexes: SearchIndexes = Depends(get_indexes)):
    statuses = []
    for name in ("opportunities", "repositories", "users"):
        manager = getattr(indexes, name)
        status = IndexStatus(name=name, ready=manager.is_ready, rebuilding=manager.is_rebuilding)
        try:
            version = manager.snapshot()
        except IndexUnavailable:
            statuses.append(status)
            continue
        status.version = version.version
        status.model_name = version.model_name
        status.dimension = version.dimension
        status.size = len(version.index)
        statuses.append(status)
    return IndexStatusResponse(indexes=statuses)


@router.post("/rebuild", response_model=IndexRebuildResponse)
def rebuild_indexes(
    request: IndexRebuildRequest | None = None,
    db: Session = Depends(get_db),
    indexes: SearchIndexes = Depends(get_indexes),
    redis_cache=Depends(get_cache),
):
    """Rebuild every search index from stored embeddings and swap it in."""
    request = request or IndexRebuildRequest()
    versions = indexes.rebuild_from_catalog(db, request.model_name, request.dimension)
    if redis_cache is not None:
        redis_cache.delete_pattern(CacheKeys.feed_pattern())
        redis_cache.delete_pattern(CacheKeys.trending_pattern())
    return IndexRebuildResponse(versions=versions)
