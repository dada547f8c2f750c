"""
Trust Evaluator - accept or flag a before/after cleanup claim

Checks, in order:
1. After-photo fingerprint unused        (hard: DuplicateEvidence)
2. Session age within the window         (hard: TimeWindowExceeded)
3. After-fix within the distance ceiling (hard: GeoMismatch)
4. GPS accuracy of both fixes            (soft: flags low confidence)
5. Before/after similarity collaborator  (soft, advisory)

A claim that clears the hard checks is always recorded. It is verified only
when GPS is confident and the image-difference signal passed; otherwise it is
flagged for review, which is a successful outcome, not an error.
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from cleanup_trust.config import settings
from cleanup_trust.db.models import CleanupReport, PendingSession
from cleanup_trust.services.clock import utcnow, month_key
from cleanup_trust.services.errors import (
    DuplicateEvidence, GeoMismatch, TimeWindowExceeded, TrustError
)
from cleanup_trust.services.evidence_dedup import EvidenceDeduplicator, evidence_deduplicator
from cleanup_trust.services.geo_matcher import GeoMatcher, geo_matcher
from cleanup_trust.services.location_service import (
    LocationService, location_service, STATUS_CLEAN
)
from cleanup_trust.services.points_ledger import (
    PointsLedger, points_ledger,
    REASON_VERIFIED_CLEANUP, REASON_VERIFIED_CLEANUP_RECLEAN
)
from cleanup_trust.services.session_tracker import SessionTracker, session_tracker
from cleanup_trust.services.similarity_service import (
    SimilarityService, SignalResult, similarity_service,
    SIGNAL_PASS, SIGNAL_FAIL
)
from cleanup_trust.services.time_window import TimeWindowGuard, time_window_guard

logger = logging.getLogger(__name__)


@dataclass
class CleanupResult:
    report_id: int
    location_id: int
    verified: bool
    low_confidence: bool
    points_awarded: int
    distance_m: float
    elapsed_minutes: float
    similarity: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TrustEvaluator:
    """Composes the trust signals into one accept/flag decision"""

    def __init__(
        self,
        geo: Optional[GeoMatcher] = None,
        time_guard: Optional[TimeWindowGuard] = None,
        deduplicator: Optional[EvidenceDeduplicator] = None,
        similarity: Optional[SimilarityService] = None,
        sessions: Optional[SessionTracker] = None,
        locations: Optional[LocationService] = None,
        ledger: Optional[PointsLedger] = None,
        unavailable_policy: Optional[str] = None
    ):
        self.geo = geo or geo_matcher
        self.time_guard = time_guard or time_window_guard
        self.deduplicator = deduplicator or evidence_deduplicator
        self.similarity = similarity or similarity_service
        self.sessions = sessions or session_tracker
        self.locations = locations or location_service
        self.ledger = ledger or points_ledger
        self.unavailable_policy = (
            unavailable_policy or settings.SIMILARITY_UNAVAILABLE_POLICY
        ).lower()

    def image_diff_passed(self, signal: SignalResult) -> bool:
        """
        Map the three-valued similarity signal onto a pass/fail.

        An unconfigured collaborator follows SIMILARITY_UNAVAILABLE_POLICY
        ("pass" keeps the system usable without the third party). A
        configured collaborator that errored always downgrades to flagged.
        """
        if signal.outcome == SIGNAL_PASS:
            return True
        if signal.outcome == SIGNAL_FAIL:
            return False
        if signal.configured:
            return False
        return self.unavailable_policy == "pass"

    def evaluate(
        self,
        db: Session,
        session: PendingSession,
        after_evidence_ref: str,
        after_fingerprint: str,
        after_lat: float,
        after_lng: float,
        after_accuracy_m: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> CleanupResult:
        """
        Evaluate an after-claim against its consumed session.

        Writes (report, ledger entry, status) are flushed, not committed.
        """
        now = now or utcnow()
        after_fp = self.deduplicator.normalize(after_fingerprint)

        # 1. Duplicate after-image
        if after_fp == session.before_fingerprint:
            raise DuplicateEvidence(
                "After photo is identical to the before photo.",
                detail={"role": "after"},
            )
        self.deduplicator.ensure_unused(db, after_fp, "after", include_pending=True)

        # 2. Time window, server clock only
        window = self.time_guard.check(session.created_at, now)
        if not window.passed:
            raise TimeWindowExceeded(
                f"Session expired. A cleanup must complete within "
                f"{self.time_guard.max_minutes:g} minutes.",
                detail={
                    "elapsed_minutes": round(window.elapsed_minutes, 2),
                    "min_minutes": self.time_guard.min_minutes,
                    "max_minutes": self.time_guard.max_minutes,
                    "reason": window.reason,
                },
            )

        # 3. GPS match
        geo = self.geo.match(
            session.latitude, session.longitude, session.accuracy_m,
            after_lat, after_lng, after_accuracy_m
        )
        if not geo.within_ceiling:
            raise GeoMismatch(
                f"GPS mismatch: {geo.distance_m:.0f}m apart. Must be within "
                f"{self.geo.max_distance_m:g}m of the original location.",
                detail={
                    "distance_m": round(geo.distance_m, 1),
                    "max_distance_m": self.geo.max_distance_m,
                },
            )

        # 4. Image diff (advisory)
        signal = self.similarity.compare(session.before_evidence_ref, after_evidence_ref)

        # 5. Decide trust level
        verified = not geo.low_confidence and self.image_diff_passed(signal)

        # Re-clean bonus looks at history before this report is written
        is_reclean = verified and self._has_verified_cleanup(db, session.user_id, session.location_id)

        # 6. Audit trail for every evaluated claim
        report = CleanupReport(
            user_id=session.user_id,
            location_id=session.location_id,
            before_evidence_ref=session.before_evidence_ref,
            before_fingerprint=session.before_fingerprint,
            after_evidence_ref=after_evidence_ref,
            after_fingerprint=after_fp,
            before_time=session.created_at,
            after_time=now,
            verified=verified,
            gps_low_confidence=geo.low_confidence,
            distance_m=geo.distance_m,
            elapsed_minutes=window.elapsed_minutes,
            similarity_outcome=signal.outcome
        )
        db.add(report)
        db.flush()

        points = 0
        if verified:
            # 7. Points, then status as the last write
            if is_reclean:
                points, reason = settings.POINTS_CLEANUP_RECLEAN, REASON_VERIFIED_CLEANUP_RECLEAN
            else:
                points, reason = settings.POINTS_CLEANUP_BASE, REASON_VERIFIED_CLEANUP

            self.ledger.append(
                db,
                user_id=session.user_id,
                points=points,
                reason=reason,
                month=month_key(now),
                location_id=session.location_id,
                cleanup_report_id=report.id
            )
            self.locations.transition(db, session.location_id, STATUS_CLEAN, now=now)

            logger.info(
                f"Cleanup {report.id} verified for user {session.user_id}: "
                f"+{points} points, distance {geo.distance_m:.0f}m"
            )
        else:
            # 8. Flagged: status untouched, no points
            logger.info(
                f"Cleanup {report.id} flagged for review "
                f"(low_confidence={geo.low_confidence}, similarity={signal.outcome})"
            )

        return CleanupResult(
            report_id=report.id,
            location_id=session.location_id,
            verified=verified,
            low_confidence=geo.low_confidence,
            points_awarded=points,
            distance_m=round(geo.distance_m, 1),
            elapsed_minutes=round(window.elapsed_minutes, 2),
            similarity=signal.outcome
        )

    def submit(
        self,
        db: Session,
        user_id: str,
        session_id: str,
        after_evidence_ref: str,
        after_fingerprint: str,
        after_lat: float,
        after_lng: float,
        after_accuracy_m: Optional[float] = None,
        now: Optional[datetime] = None
    ) -> CleanupResult:
        """
        Consume the caller's session and evaluate the after-claim in one
        transaction.

        - verified or flagged: committed, the session is spent
        - TimeWindowExceeded: the session deletion is committed (it can never pass)
        - any other error: rolled back, the session remains open
        """
        try:
            session = self.sessions.consume(db, session_id, user_id)
            result = self.evaluate(
                db, session,
                after_evidence_ref=after_evidence_ref,
                after_fingerprint=after_fingerprint,
                after_lat=after_lat,
                after_lng=after_lng,
                after_accuracy_m=after_accuracy_m,
                now=now
            )
            db.commit()
            return result
        except TimeWindowExceeded as e:
            db.commit()
            logger.info(f"Session {session_id} rejected and discarded: {e.message}")
            raise
        except TrustError as e:
            db.rollback()
            logger.info(f"Session {session_id} rejected: {e.code} {e.detail}")
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error evaluating session {session_id}: {e}")
            raise

    def _has_verified_cleanup(self, db: Session, user_id: str, location_id: int) -> bool:
        prior = db.query(CleanupReport.id).filter(
            CleanupReport.user_id == user_id,
            CleanupReport.location_id == location_id,
            CleanupReport.verified.is_(True)
        ).limit(1).scalar()
        return prior is not None

    def history(self, db: Session, user_id: str, limit: int = 50):
        return db.query(CleanupReport).filter(
            CleanupReport.user_id == user_id
        ).order_by(CleanupReport.id.desc()).limit(limit).all()


# Singleton instance
trust_evaluator = TrustEvaluator()
