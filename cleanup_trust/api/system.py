"""
System Router - Health checks and monitoring
"""
import redis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from cleanup_trust.config import settings
from cleanup_trust.dependencies import get_db
from cleanup_trust.services.clock import utcnow
from cleanup_trust.services.similarity_service import similarity_service

router = APIRouter()


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Health check endpoint returning status of backing services.
    """
    # Check database
    database_status = "unhealthy"
    try:
        db.execute(text("SELECT 1"))
        database_status = "healthy"
    except Exception:
        pass

    # Check Redis
    redis_status = "unhealthy"
    worker_queue_depth = 0
    try:
        r = redis.from_url(settings.REDIS_URL, socket_connect_timeout=2)
        r.ping()
        redis_status = "healthy"
        worker_queue_depth = r.llen("notifications") or 0
    except Exception:
        pass

    return {
        "database": database_status,
        "redis": redis_status,
        "similarity_collaborator": "configured" if similarity_service.configured else "not_configured",
        "worker_queue_depth": worker_queue_depth,
        "timestamp": utcnow().isoformat() + "Z"
    }
