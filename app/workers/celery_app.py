"""
Celery application configuration.
"""

from celery import Celery
from celery.schedules import crontab

from app.config import settings

# Create Celery app
celery_app = Celery(
    "resiliencehub",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.workers.engagement_tick",
        "app.workers.results_outbox",
    ],
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.default_timezone,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    # Reminders, weekly digests and escalations for every active client
    "hourly-engagement-tick": {
        "task": "app.workers.engagement_tick.run_engagement_tick",
        "schedule": crontab(minute=5, hour="*"),
    },
    # Practice results that could not be submitted earlier
    "replay-results-outbox": {
        "task": "app.workers.results_outbox.replay_results_outbox",
        "schedule": crontab(minute="*/15"),
    },
}
