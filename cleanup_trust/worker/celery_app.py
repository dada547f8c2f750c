"""
Celery Application Configuration
"""
from celery import Celery
from cleanup_trust.config import settings

# Create Celery app
celery_app = Celery(
    "cleanup_trust_worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "cleanup_trust.worker.tasks"
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    result_expires=3600,  # Results expire after 1 hour
)

# Task routing
celery_app.conf.task_routes = {
    "cleanup_trust.worker.tasks.send_push_notifications": {"queue": "notifications"},
    "cleanup_trust.worker.tasks.*": {"queue": "default"},
}

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "purge-expired-sessions": {
        "task": "cleanup_trust.worker.tasks.purge_expired_sessions",
        "schedule": 3600.0,  # Hourly
    },
    "archive-monthly-leaderboard": {
        "task": "cleanup_trust.worker.tasks.archive_monthly_leaderboard",
        "schedule": 86400.0,  # Daily; archiving is idempotent per month
    },
}
