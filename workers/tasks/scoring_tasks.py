"""
Scoring maintenance tasks.

These tasks handle:
- Refreshing the persisted repository health score
- Moving idle opportunities to stale and closing long-stale ones

Queue: scoring
"""

from datetime import datetime
from typing import Optional

from celery import shared_task

from contribux.logging import get_logger

logger = get_logger("worker.scoring")

DEFAULT_BATCH_SIZE = 200


@shared_task(
    bind=True,
    name="workers.tasks.scoring_tasks.refresh_repository_health",
    max_retries=2,
    default_retry_delay=30,
)
def refresh_repository_health_task(self, repository_id: int) -> dict:
    """
    Recompute and store one repository's health score.

    Returns:
        Dictionary with the new score
    """
    from contribux.db import db
    from contribux.exceptions import RepositoryNotFound

    from .ingestion_tasks import build_ingestion_service

    db.initialize()
    try:
        with db.session() as session:
            score = build_ingestion_service(session).refresh_repository_health(repository_id)
    except RepositoryNotFound as e:
        return {"repository_id": repository_id, "health_score": None, "error": str(e)}

    logger.info("repository_health_refreshed", repository_id=repository_id, health_score=score)
    return {"repository_id": repository_id, "health_score": score}


@shared_task(
    bind=True,
    name="workers.tasks.scoring_tasks.refresh_all_repository_health",
    max_retries=1,
    soft_time_limit=1800,
    time_limit=3600,
)
def refresh_all_repository_health_task(self, batch_size: int = DEFAULT_BATCH_SIZE) -> dict:
    """
    Refresh every repository's health score, one transaction per batch.

    Args:
        batch_size: Repositories per transaction

    Returns:
        Dictionary with the number of repositories refreshed
    """
    from contribux.db import db
    from contribux.repositories import RepoRepository
    from contribux.utils import chunked, utcnow

    from .ingestion_tasks import build_ingestion_service

    db.initialize()
    now = utcnow()
    with db.session() as session:
        repository_ids = RepoRepository(session).list_ids()

    refreshed = 0
    for batch in chunked(repository_ids, batch_size):
        with db.session() as session:
            service = build_ingestion_service(session)
            for repository_id in batch:
                service.refresh_repository_health(repository_id, now=now)
                refreshed += 1

    logger.info("repository_health_refresh_complete", refreshed=refreshed)
    return {"refreshed": refreshed}


@shared_task(
    bind=True,
    name="workers.tasks.scoring_tasks.advance_stale_opportunities",
    max_retries=1,
    default_retry_delay=60,
)
def advance_stale_opportunities_task(self, now: Optional[str] = None) -> dict:
    """
    Apply the staleness rules to open and stale opportunities.

    Args:
        now: ISO timestamp to evaluate against (defaults to the current time)

    Returns:
        Counts of opportunities made stale and closed
    """
    from contribux.db import db

    from .ingestion_tasks import build_ingestion_service

    db.initialize()
    reference = datetime.fromisoformat(now) if now else None
    with db.session() as session:
        counts = build_ingestion_service(session).advance_stale_opportunities(now=reference)
    return counts
