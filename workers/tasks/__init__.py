"""Celery task definitions."""

from workers.tasks.index_tasks import rebuild_vector_index_task
from workers.tasks.ingestion_tasks import embed_opportunity_task
from workers.tasks.scoring_tasks import (
    advance_stale_opportunities_task,
    refresh_all_repository_health_task,
    refresh_repository_health_task,
)

__all__ = [
    # Ingestion
    "embed_opportunity_task",
    # Scoring
    "refresh_repository_health_task",
    "refresh_all_repository_health_task",
    "advance_stale_opportunities_task",
    # Index
    "rebuild_vector_index_task",
]
