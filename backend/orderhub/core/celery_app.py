"""Celery application configuration"""
from celery import Celery
from celery.schedules import crontab
from kombu import Queue
from orderhub.core.config import settings

# Create Celery instance
celery_app = Celery(
    "orderhub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["orderhub.tasks"]
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,
    task_soft_time_limit=8 * 60,
    worker_prefetch_multiplier=1,
)

celery_app.conf.task_queues = (
    Queue("maintenance_low", routing_key="maintenance.#"),
    Queue("celery", routing_key="celery"),
)

celery_app.conf.task_default_queue = "celery"
celery_app.conf.task_default_exchange = "tasks"
celery_app.conf.task_default_routing_key = "celery"

celery_app.conf.task_routes = {
    "cleanup_event_store": {"queue": "maintenance_low"},
    "report_unprocessed_events": {"queue": "maintenance_low"},
}

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "daily-event-store-cleanup": {
        "task": "cleanup_event_store",
        "schedule": crontab(hour=3, minute=0),
    },
    "hourly-unprocessed-report": {
        "task": "report_unprocessed_events",
        "schedule": crontab(minute=15),
    },
}


# Maintenance worker:
#   celery -A orderhub.core.celery_app worker -Q maintenance_low,celery --concurrency=1 -n maint@%h
# Scheduler:
#   celery -A orderhub.core.celery_app beat
