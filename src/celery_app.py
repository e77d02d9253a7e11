"""Celery application configuration."""

from celery import Celery

from src.config import get_settings

settings = get_settings()

app = Celery(
    "tribe_lists",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["src.tasks.share_cleanup"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max per task
    task_soft_time_limit=240,  # 4 minutes soft limit
    beat_schedule={
        "cleanup-expired-shares": {
            "task": "src.tasks.share_cleanup.cleanup_expired_shares",
            "schedule": float(settings.share_cleanup_interval_seconds),
        },
    },
)
