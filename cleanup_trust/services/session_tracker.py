"""
Session Tracker - lifecycle of "before" captures

A PendingSession is stamped with the server clock when it is opened; that
stamp is the only notion of "when the before photo was taken" the trust
checks ever use. Consumption is a single DELETE ... RETURNING, so two
concurrent after-submissions for one session cannot both obtain it.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete
from sqlalchemy.orm import Session

from cleanup_trust.config import settings
from cleanup_trust.db.models import PendingSession
from cleanup_trust.services.clock import utcnow
from cleanup_trust.services.errors import NotFound
from cleanup_trust.services.evidence_dedup import EvidenceDeduplicator, evidence_deduplicator
from cleanup_trust.services.location_service import LocationService, location_service

logger = logging.getLogger(__name__)


class SessionTracker:
    """Opens and consumes before-capture sessions"""

    def __init__(
        self,
        deduplicator: Optional[EvidenceDeduplicator] = None,
        locations: Optional[LocationService] = None
    ):
        self.deduplicator = deduplicator or evidence_deduplicator
        self.locations = locations or location_service

    def open(
        self,
        db: Session,
        user_id: str,
        evidence_ref: str,
        fingerprint: str,
        lat: float,
        lng: float,
        accuracy_m: Optional[float] = None,
        location_id: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> PendingSession:
        """
        Register a before-capture.

        Raises DuplicateEvidence if the fingerprint was already used in any
        cleanup report or by another open session, and GeoMismatch if an
        explicitly named location is out of reach of the fix.
        """
        self.deduplicator.ensure_unused(db, fingerprint, "before", include_pending=True)

        location = self.locations.resolve(db, location_id=location_id, lat=lat, lng=lng)
        if location_id is not None:
            self.locations.ensure_within_reach(location, lat, lng)

        session = PendingSession(
            user_id=user_id,
            location_id=location.id,
            before_evidence_ref=evidence_ref,
            before_fingerprint=self.deduplicator.normalize(fingerprint),
            latitude=lat,
            longitude=lng,
            accuracy_m=accuracy_m,
            created_at=now or utcnow()
        )
        db.add(session)
        db.commit()
        db.refresh(session)

        logger.info(f"Opened session {session.id} for user {user_id} at location {location.id}")
        return session

    def consume(self, db: Session, session_id: str, user_id: str) -> PendingSession:
        """
        Atomically delete and return the caller's session.

        The deletion is not committed here; it becomes durable with the
        caller's transaction. The returned object is detached from ``db``.
        """
        table = PendingSession.__table__
        stmt = (
            delete(table)
            .where(table.c.id == session_id, table.c.user_id == user_id)
            .returning(*table.c)
        )
        row = db.execute(stmt).mappings().first()

        if row is None:
            raise NotFound(
                "Session not found or not yours.",
                detail={"session_id": session_id},
            )

        logger.info(f"Consumed session {session_id} for user {user_id}")
        return PendingSession(**dict(row))

    def list_open(self, db: Session, user_id: str) -> List[PendingSession]:
        return db.query(PendingSession).filter(
            PendingSession.user_id == user_id
        ).order_by(PendingSession.created_at.desc()).all()

    def purge_expired(self, db: Session, now: Optional[datetime] = None) -> int:
        """Delete sessions older than the maximum window; they can never be accepted."""
        cutoff = (now or utcnow()) - timedelta(minutes=settings.SESSION_MAX_MINUTES)
        purged = db.query(PendingSession).filter(
            PendingSession.created_at < cutoff
        ).delete(synchronize_session=False)
        db.commit()

        if purged:
            logger.info(f"Purged {purged} expired pending sessions")
        return purged


# Singleton instance
session_tracker = SessionTracker()
