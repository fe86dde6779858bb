"""
Vector index maintenance.

The indexes live in the worker process (``get_search_indexes``). After a
rebuild the task bumps the shared index generation in Redis; API processes
notice the bump and rebuild their own copy.

Queue: index
"""

from typing import Optional

from celery import shared_task

from contribux.exceptions import IndexUnavailable
from contribux.logging import get_logger

logger = get_logger("worker.index")


@shared_task(
    bind=True,
    name="workers.tasks.index_tasks.rebuild_vector_index",
    max_retries=3,
    default_retry_delay=120,
    soft_time_limit=1800,
    time_limit=3600,
)
def rebuild_vector_index_task(
    self,
    model_name: Optional[str] = None,
    dimension: Optional[int] = None,
) -> dict:
    """
    Rebuild all search indexes from the stored embeddings.

    A rebuild already in progress makes the task retry later.

    Args:
        model_name: Embedding model of the stored vectors (defaults to the active one)
        dimension: Vector dimension (defaults to the active one)

    Returns:
        Mapping of index name to its new version
    """
    from contribux.cache import cache
    from contribux.db import db
    from contribux.index.registry import get_search_indexes, publish_index_change

    db.initialize()
    try:
        with db.session() as session:
            versions = get_search_indexes().rebuild_from_catalog(session, model_name, dimension)
    except IndexUnavailable as exc:
        logger.warning("index_rebuild_busy", error=str(exc))
        raise self.retry(exc=exc)

    generation = publish_index_change(cache)
    logger.info("index_rebuild_task_complete", generation=generation, **versions)
    return versions
