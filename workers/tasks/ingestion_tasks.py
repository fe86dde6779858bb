"""
Ingestion tasks.

Fills in embeddings that could not be computed at write time because the
embedding model was unavailable.

Queue: ingestion
"""

from celery import shared_task
from celery.exceptions import MaxRetriesExceededError

from contribux.exceptions import EmbeddingUnavailable, OpportunityNotFound
from contribux.logging import get_logger

logger = get_logger("worker.ingestion")

RETRY_BASE_SECONDS = 30
RETRY_MAX_SECONDS = 900


def retry_countdown(retries: int) -> int:
    """Exponential countdown: 30s, 60s, 120s ... capped at 15 minutes."""
    return min(RETRY_BASE_SECONDS * (2 ** retries), RETRY_MAX_SECONDS)


def build_ingestion_service(session):
    from contribux.cache import cache
    from contribux.index.registry import get_search_indexes
    from contribux.services import EmbeddingService, IngestionService

    return IngestionService(
        session,
        get_search_indexes(),
        embedding_service=EmbeddingService.from_settings(),
        cache=cache,
    )


@shared_task(
    bind=True,
    name="workers.tasks.ingestion_tasks.embed_opportunity",
    max_retries=5,
    soft_time_limit=120,
    time_limit=180,
)
def embed_opportunity_task(self, opportunity_id: int) -> dict:
    """
    Embed one opportunity's title and description.

    Retries with an exponential countdown while the model is unavailable.

    Args:
        opportunity_id: Opportunity to embed

    Returns:
        Dictionary with the embedding result
    """
    from contribux.db import db

    logger.info("embed_opportunity_started", opportunity_id=opportunity_id)
    db.initialize()

    try:
        with db.session() as session:
            embedded = build_ingestion_service(session).embed_opportunity(opportunity_id)
    except OpportunityNotFound as e:
        logger.warning("embed_opportunity_missing", opportunity_id=opportunity_id)
        return {"opportunity_id": opportunity_id, "embedded": False, "error": str(e)}
    except EmbeddingUnavailable as exc:
        countdown = retry_countdown(self.request.retries)
        logger.warning(
            "embed_opportunity_retry",
            opportunity_id=opportunity_id,
            retries=self.request.retries,
            countdown=countdown,
            error=str(exc),
        )
        try:
            raise self.retry(exc=exc, countdown=countdown)
        except MaxRetriesExceededError:
            logger.error("embed_opportunity_failed", opportunity_id=opportunity_id, error=str(exc))
            return {"opportunity_id": opportunity_id, "embedded": False, "error": str(exc)}

    if embedded:
        from contribux.cache import cache
        from contribux.index.registry import publish_index_change

        publish_index_change(cache)
    logger.info("embed_opportunity_complete", opportunity_id=opportunity_id, embedded=embedded)
    return {"opportunity_id": opportunity_id, "embedded": embedded}
