"""
Evidence Deduplicator - exact fingerprint reuse detection
"""
import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from cleanup_trust.db.models import CleanupReport, PendingSession
from cleanup_trust.services.errors import DuplicateEvidence

logger = logging.getLogger(__name__)


class EvidenceDeduplicator:
    """
    Rejects evidence whose fingerprint already appears anywhere in cleanup
    history, in either the before or the after role, verified or flagged.

    Similarity-based matching belongs to the similarity collaborator.
    """

    @staticmethod
    def normalize(fingerprint: str) -> str:
        return (fingerprint or "").strip().lower()

    def find(
        self,
        db: Session,
        fingerprint: str,
        include_pending: bool = False
    ) -> Optional[str]:
        """Return a description of the prior use, or None."""
        fp = self.normalize(fingerprint)

        report_id = db.query(CleanupReport.id).filter(
            or_(
                CleanupReport.before_fingerprint == fp,
                CleanupReport.after_fingerprint == fp
            )
        ).limit(1).scalar()
        if report_id is not None:
            return f"cleanup_report:{report_id}"

        if include_pending:
            session_id = db.query(PendingSession.id).filter(
                PendingSession.before_fingerprint == fp
            ).limit(1).scalar()
            if session_id is not None:
                return f"pending_session:{session_id}"

        return None

    def ensure_unused(
        self,
        db: Session,
        fingerprint: str,
        role: str,
        include_pending: bool = False
    ) -> None:
        prior_use = self.find(db, fingerprint, include_pending=include_pending)
        if prior_use:
            logger.warning(f"Duplicate {role} evidence {self.normalize(fingerprint)[:16]} ({prior_use})")
            raise DuplicateEvidence(
                f"Duplicate image detected for {role} photo. This photo has already been used.",
                detail={"role": role},
            )


# Singleton instance
evidence_deduplicator = EvidenceDeduplicator()
