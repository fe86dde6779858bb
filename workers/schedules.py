"""
Celery Beat schedule configuration.

Defines periodic tasks for:
- Nightly vector index rebuild
- Daily repository health refresh
- Daily staleness sweep over open opportunities
"""

from celery.schedules import crontab

from contribux.config import get_settings

settings = get_settings()


def get_beat_schedule():
    """
    Get the Celery Beat schedule configuration.

    Hours are configurable via environment variables.

    Returns:
        Dictionary of scheduled tasks
    """
    return {
        "rebuild-vector-index-daily": {
            "task": "workers.tasks.index_tasks.rebuild_vector_index",
            "schedule": crontab(hour=settings.scheduler_index_rebuild_cron_hour, minute=0),
            "args": [],
            "options": {"queue": "index"},
        },
        "refresh-repository-health-daily": {
            "task": "workers.tasks.scoring_tasks.refresh_all_repository_health",
            "schedule": crontab(hour=settings.scheduler_health_cron_hour, minute=0),
            "args": [],
            "kwargs": {"batch_size": 200},
            "options": {"queue": "scoring"},
        },
        "advance-stale-opportunities-daily": {
            "task": "workers.tasks.scoring_tasks.advance_stale_opportunities",
            "schedule": crontab(hour=settings.scheduler_staleness_cron_hour, minute=30),
            "args": [],
            "options": {"queue": "scoring"},
        },
    }


def apply_beat_schedule(celery_app):
    """
    Apply the beat schedule to a Celery app.

    Args:
        celery_app: Celery application instance
    """
    if settings.enable_scheduler:
        celery_app.conf.beat_schedule = get_beat_schedule()
        celery_app.conf.beat_schedule_filename = "celerybeat-schedule"
