"""
Consensus Service - crowd confirmation that a location is dirty again

Each user may report a location once per server calendar day. After every
accepted report the number of distinct reporters in the trailing window is
recounted from history; once it reaches the threshold the location flips to
dirty, every reporter in the window earns confirmation points, and the
location's guardians are notified. A location that is already dirty is
never re-flipped, so repeated reports neither re-award nor re-notify.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from cleanup_trust.config import settings
from cleanup_trust.db.database import insert_ignore
from cleanup_trust.db.models import ConsensusEvent, DirtyReport
from cleanup_trust.services.clock import utcnow, today, month_key
from cleanup_trust.services.errors import AlreadyReportedToday, TrustError
from cleanup_trust.services.location_service import (
    LocationService, location_service, STATUS_DIRTY
)
from cleanup_trust.services.notification_service import (
    FanoutRequest, NotificationService, notification_service
)
from cleanup_trust.services.points_ledger import (
    PointsLedger, points_ledger, REASON_DIRTY_CONFIRMATION
)

logger = logging.getLogger(__name__)


@dataclass
class ConsensusResult:
    location_id: int
    distinct_reporters: int
    required: int
    threshold_met: bool
    transitioned: bool
    notified: int
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConsensusService:
    """Counts independent dirty reports and drives the dirty transition"""

    def __init__(
        self,
        locations: Optional[LocationService] = None,
        ledger: Optional[PointsLedger] = None,
        notifications: Optional[NotificationService] = None,
        threshold: Optional[int] = None,
        window_hours: Optional[int] = None
    ):
        self.locations = locations or location_service
        self.ledger = ledger or points_ledger
        self.notifications = notifications or notification_service
        self.threshold = settings.CONSENSUS_THRESHOLD if threshold is None else threshold
        self.window_hours = settings.CONSENSUS_WINDOW_HOURS if window_hours is None else window_hours

    def distinct_reporters(
        self,
        db: Session,
        location_id: int,
        now: Optional[datetime] = None,
        cleaned_at: Optional[datetime] = None
    ) -> List[str]:
        """
        Distinct users who reported the location in the trailing window.

        Reports made before the last accepted cleanup do not count.
        """
        since = (now or utcnow()) - timedelta(hours=self.window_hours)
        if cleaned_at is not None and cleaned_at > since:
            since = cleaned_at
        rows = db.query(DirtyReport.user_id).filter(
            DirtyReport.location_id == location_id,
            DirtyReport.created_at >= since
        ).distinct().order_by(DirtyReport.user_id).all()
        return [row.user_id for row in rows]

    def report(
        self,
        db: Session,
        user_id: str,
        evidence_ref: str,
        location_id: Optional[int] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> ConsensusResult:
        """
        Record a dirty report and evaluate consensus.

        Raises AlreadyReportedToday for a second report by the same user for
        the same location on the same server day.
        """
        now = now or utcnow()
        fanout: Optional[FanoutRequest] = None

        try:
            location = self.locations.resolve(db, location_id=location_id, lat=lat, lng=lng)
            # Serializes concurrent reports for this location until commit
            location = self.locations.lock(db, location.id)
            report_date = today(now)

            stmt = insert_ignore(db, DirtyReport).values(
                user_id=user_id,
                location_id=location.id,
                evidence_ref=evidence_ref,
                report_date=report_date,
                created_at=now
            ).returning(DirtyReport.id)
            inserted = db.execute(stmt).first()
            if inserted is None:
                raise AlreadyReportedToday(
                    "You already reported this location today.",
                    detail={"location_id": location.id, "report_date": report_date.isoformat()},
                )

            reporters = self.distinct_reporters(
                db, location.id, now, cleaned_at=location.last_cleaned_at
            )
            threshold_met = len(reporters) >= self.threshold
            transitioned = False

            if threshold_met:
                transitioned = self.locations.transition(db, location.id, STATUS_DIRTY)

            if transitioned:
                fanout = self._confirm(db, location.id, reporters, now)

            db.commit()
        except TrustError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error recording dirty report for user {user_id}: {e}")
            raise

        if fanout is not None:
            self.notifications.dispatch(fanout)
        elif not threshold_met:
            logger.info(f"Location {location.id}: {len(reporters)}/{self.threshold} confirmations so far")

        db.refresh(location)
        return ConsensusResult(
            location_id=location.id,
            distinct_reporters=len(reporters),
            required=self.threshold,
            threshold_met=threshold_met,
            transitioned=transitioned,
            notified=len(fanout.notified_users) if fanout else 0,
            status=location.status
        )

    def _confirm(
        self,
        db: Session,
        location_id: int,
        reporters: List[str],
        now: datetime
    ) -> FanoutRequest:
        """Side effects of the one request that won the dirty transition."""
        event = ConsensusEvent(
            location_id=location_id,
            reporter_count=len(reporters),
            created_at=now
        )
        db.add(event)
        db.flush()

        month = month_key(now)
        for reporter in reporters:
            self.ledger.append(
                db,
                user_id=reporter,
                points=settings.POINTS_DIRTY_CONFIRMATION,
                reason=REASON_DIRTY_CONFIRMATION,
                month=month,
                location_id=location_id,
                consensus_event_id=event.id
            )

        fanout = self.notifications.build_guardian_alerts(db, location_id, len(reporters))
        event.notified_count = len(fanout.notified_users)

        logger.info(
            f"Location {location_id} marked dirty by {len(reporters)} users; "
            f"{len(fanout.notified_users)} guardians notified"
        )
        return fanout


# Singleton instance
consensus_service = ConsensusService()
