"""
Points Ledger - append-only record of point-earning events

Totals and leaderboards are sums over the ledger. A monthly reset is only
a read-time filter on ``month``; nothing is ever updated or deleted, so
earlier seasons stay queryable.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, desc
from sqlalchemy.orm import Session

from cleanup_trust.config import settings
from cleanup_trust.db.models import PointsLedgerEntry, LeaderboardSnapshot

logger = logging.getLogger(__name__)

REASON_VERIFIED_CLEANUP = "verified_cleanup"
REASON_VERIFIED_CLEANUP_RECLEAN = "verified_cleanup_reclean"
REASON_DIRTY_CONFIRMATION = "dirty_confirmation"


class PointsLedger:
    """Service for the points ledger and leaderboards"""

    def append(
        self,
        db: Session,
        user_id: str,
        points: int,
        reason: str,
        month: str,
        location_id: Optional[int] = None,
        *,
        cleanup_report_id: Optional[int] = None,
        consensus_event_id: Optional[int] = None
    ) -> PointsLedgerEntry:
        """
        Append one entry. Exactly one cause must be given.

        Flushes but does not commit; the entry lands with the caller's
        transaction together with the event that caused it.
        """
        if (cleanup_report_id is None) == (consensus_event_id is None):
            raise ValueError("Ledger entry needs exactly one cause")

        entry = PointsLedgerEntry(
            user_id=user_id,
            points=points,
            reason=reason,
            location_id=location_id,
            month=month,
            cleanup_report_id=cleanup_report_id,
            consensus_event_id=consensus_event_id
        )
        db.add(entry)
        db.flush()

        logger.info(f"Ledger +{points} to user {user_id} ({reason}, {month})")
        return entry

    def total_for(self, db: Session, user_id: str) -> int:
        total = db.query(func.coalesce(func.sum(PointsLedgerEntry.points), 0)).filter(
            PointsLedgerEntry.user_id == user_id
        ).scalar()
        return int(total or 0)

    def monthly_total_for(self, db: Session, user_id: str, month: str) -> int:
        total = db.query(func.coalesce(func.sum(PointsLedgerEntry.points), 0)).filter(
            PointsLedgerEntry.user_id == user_id,
            PointsLedgerEntry.month == month
        ).scalar()
        return int(total or 0)

    def entries_for(
        self,
        db: Session,
        user_id: str,
        month: Optional[str] = None
    ) -> List[PointsLedgerEntry]:
        query = db.query(PointsLedgerEntry).filter(PointsLedgerEntry.user_id == user_id)
        if month:
            query = query.filter(PointsLedgerEntry.month == month)
        return query.order_by(PointsLedgerEntry.id).all()

    def leaderboard(
        self,
        db: Session,
        month: str,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Ranked users by points earned in ``month``; ties broken by user id."""
        total = func.sum(PointsLedgerEntry.points).label("points")
        rows = db.query(PointsLedgerEntry.user_id, total).filter(
            PointsLedgerEntry.month == month
        ).group_by(
            PointsLedgerEntry.user_id
        ).order_by(
            desc(total), PointsLedgerEntry.user_id
        ).limit(limit or settings.LEADERBOARD_SIZE).all()

        return [
            {"rank": i + 1, "user_id": row.user_id, "points": int(row.points)}
            for i, row in enumerate(rows)
        ]

    def archive_month(self, db: Session, month: str) -> int:
        """
        Snapshot the top of ``month`` into leaderboard_snapshots.

        Idempotent: a month that already has a snapshot is left alone.
        Returns the number of rows written.
        """
        existing = db.query(func.count(LeaderboardSnapshot.id)).filter(
            LeaderboardSnapshot.month == month
        ).scalar() or 0
        if existing:
            logger.info(f"Leaderboard for {month} already archived ({existing} rows)")
            return 0

        ranking = self.leaderboard(db, month, limit=settings.LEADERBOARD_ARCHIVE_SIZE)
        for row in ranking:
            db.add(LeaderboardSnapshot(
                month=month,
                rank=row["rank"],
                user_id=row["user_id"],
                points=row["points"]
            ))
        db.commit()

        logger.info(f"Archived {len(ranking)} leaderboard entries for {month}")
        return len(ranking)

    def snapshot(self, db: Session, month: str) -> List[LeaderboardSnapshot]:
        return db.query(LeaderboardSnapshot).filter(
            LeaderboardSnapshot.month == month
        ).order_by(LeaderboardSnapshot.rank).all()


# Singleton instance
points_ledger = PointsLedger()
