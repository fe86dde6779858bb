"""
Celery application configuration.

Configures Celery with:
- Redis as broker and result backend
- Task routing to the ingestion, scoring and index queues
- Late acknowledgement so interrupted tasks are redelivered
"""

from celery import Celery
from celery.signals import worker_process_init
from kombu import Exchange, Queue

from contribux.config import get_settings
from workers.schedules import apply_beat_schedule

settings = get_settings()

celery_app = Celery(
    "contribux",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "workers.tasks.ingestion_tasks",
        "workers.tasks.scoring_tasks",
        "workers.tasks.index_tasks",
    ],
)

# =============================================================================
# Queue Configuration with Priority Support
# =============================================================================

default_exchange = Exchange("default", type="direct")
ingestion_exchange = Exchange("ingestion", type="direct")
scoring_exchange = Exchange("scoring", type="direct")
index_exchange = Exchange("index", type="direct")

# Priority: 0 (highest) to 9 (lowest)
celery_app.conf.task_queues = (
    Queue("default", default_exchange, routing_key="default", queue_arguments={"x-max-priority": 10}),
    Queue("ingestion", ingestion_exchange, routing_key="ingestion", queue_arguments={"x-max-priority": 10}),
    Queue("scoring", scoring_exchange, routing_key="scoring", queue_arguments={"x-max-priority": 10}),
    Queue("index", index_exchange, routing_key="index", queue_arguments={"x-max-priority": 10}),
)

celery_app.conf.task_default_queue = "default"
celery_app.conf.task_default_exchange = "default"
celery_app.conf.task_default_routing_key = "default"
celery_app.conf.task_default_priority = 5

celery_app.conf.task_routes = {
    # Embedding new text keeps search fresh
    "workers.tasks.ingestion_tasks.*": {"queue": "ingestion", "routing_key": "ingestion", "priority": 3},
    "workers.tasks.scoring_tasks.*": {"queue": "scoring", "routing_key": "scoring", "priority": 5},
    # Rebuilds are long and rare
    "workers.tasks.index_tasks.*": {"queue": "index", "routing_key": "index", "priority": 7},
}

# celery -A workers worker -Q ingestion -c 4 --prefetch-multiplier=1
# celery -A workers worker -Q scoring -c 2
# celery -A workers worker -Q index -c 1 --prefetch-multiplier=1

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    worker_prefetch_multiplier=1,
    broker_connection_retry_on_startup=True,
    result_expires=86400,
    task_soft_time_limit=300,
    task_time_limit=600,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_hijack_root_logger=False,
    task_send_sent_event=True,
)


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structured logging when a worker process starts."""
    from contribux.logging import configure_celery_logging, configure_logging

    configure_logging(level="INFO")
    configure_celery_logging()


apply_beat_schedule(celery_app)
