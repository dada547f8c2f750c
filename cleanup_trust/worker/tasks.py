"""
Celery Tasks for async processing
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from cleanup_trust.config import settings
from cleanup_trust.db.database import SessionLocal
from cleanup_trust.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


def get_db_session():
    """Get database session for tasks"""
    return SessionLocal()


@celery_app.task(bind=True, max_retries=5, default_retry_delay=30,
                 name="cleanup_trust.worker.tasks.send_push_notifications")
def send_push_notifications(self, messages: List[Dict[str, Any]]):
    """
    Deliver guardian push messages through the Expo push service.

    At-least-once: transport failures are retried; individual ticket errors
    are only logged.
    """
    if not messages:
        return {"sent": 0}

    try:
        with httpx.Client(timeout=settings.PUSH_TIMEOUT_SEC) as client:
            response = client.post(
                settings.EXPO_PUSH_URL,
                json=messages,
                headers={"Accept": "application/json"}
            )
            response.raise_for_status()
            tickets = response.json().get("data", [])

        errors = [t for t in tickets if isinstance(t, dict) and t.get("status") == "error"]
        if errors:
            logger.warning(f"Push delivery returned {len(errors)} error tickets")

        logger.info(f"Sent {len(messages)} push notifications")
        return {"sent": len(messages), "errors": len(errors)}

    except httpx.HTTPError as e:
        logger.error(f"Push delivery failed: {e}")
        raise self.retry(exc=e)


@celery_app.task(name="cleanup_trust.worker.tasks.archive_monthly_leaderboard")
def archive_monthly_leaderboard(month: Optional[str] = None):
    """
    Snapshot the previous month's leaderboard.

    Runs daily via beat schedule; only the first run of a month writes rows.
    """
    from cleanup_trust.services.clock import previous_month_key
    from cleanup_trust.services.points_ledger import points_ledger

    target = month or previous_month_key()
    db = get_db_session()
    try:
        archived = points_ledger.archive_month(db, target)
        return {"month": target, "archived": archived}
    except Exception as e:
        logger.error(f"Leaderboard archive for {target} failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@celery_app.task(name="cleanup_trust.worker.tasks.purge_expired_sessions")
def purge_expired_sessions():
    """
    Remove pending sessions older than the cleanup window.

    Runs hourly via beat schedule.
    """
    from cleanup_trust.services.session_tracker import session_tracker

    db = get_db_session()
    try:
        purged = session_tracker.purge_expired(db)
        return {"purged": purged}
    except Exception as e:
        logger.error(f"Expired session purge failed: {e}")
        db.rollback()
        raise
    finally:
        db.close()
