"""Celery tasks for expiring tribe shares."""

import logging
from datetime import timedelta

from celery.signals import worker_ready
from sqlalchemy.orm import Session

from src.celery_app import app as celery_app
from src.config import get_settings
from src.database import SessionLocal
from src.models.mixins import utcnow
from src.services.errors import ListEngineError
from src.services.expiration import ExpirationSweeper

logger = logging.getLogger(__name__)


@celery_app.task
def cleanup_expired_shares() -> dict:
    """Deactivate expired shares and the ownership granted through them.

    Runs on the beat schedule and once when a worker starts. A failed pass is
    logged and left for the next run.

    Returns:
        dict with the number of shares processed
    """
    db: Session = SessionLocal()
    try:
        deadline = utcnow() + timedelta(seconds=get_settings().share_cleanup_timeout_seconds)
        processed = ExpirationSweeper(db).cleanup_expired_shares(deadline=deadline)
        return {"success": True, "processed": processed}
    except ListEngineError as e:
        logger.error(f"Share cleanup failed: {e}")
        return {"success": False, "error": e.detail}
    finally:
        db.close()


@worker_ready.connect
def run_initial_cleanup(sender=None, **kwargs) -> None:
    """Sweep once at startup instead of waiting a full interval."""
    logger.info("Worker ready, scheduling initial share cleanup")
    cleanup_expired_shares.delay()
