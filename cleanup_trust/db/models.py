"""
SQLAlchemy ORM Models for the Cleanup Trust Engine
"""
import uuid

from sqlalchemy import (
    Column, Integer, String, Text, Float, Boolean, DateTime, Date,
    ForeignKey, UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from cleanup_trust.db.database import Base


LOCATION_STATUSES = ("clean", "pending", "dirty")


def _new_session_id() -> str:
    return str(uuid.uuid4())


class Location(Base):
    """A physical spot, deduplicated by its rounded grid cell"""
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    lat_grid = Column(Float, nullable=False)
    lng_grid = Column(Float, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # clean, pending, dirty
    last_cleaned_at = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('lat_grid', 'lng_grid', name='unique_location_grid'),
        CheckConstraint(
            "status IN ('clean', 'pending', 'dirty')", name='ck_location_status'
        ),
        Index('idx_location_status', 'status'),
    )

    guardians = relationship("GuardianSubscription", back_populates="location")


class UserProfile(Base):
    """Push destination for an identity-provider user"""
    __tablename__ = "user_profiles"

    user_id = Column(String(64), primary_key=True)
    display_name = Column(String(100), default="Anonymous")
    push_token = Column(String(255))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, onupdate=func.now())


# ============================================================
# CLEANUP VERIFICATION
# ============================================================

class PendingSession(Base):
    """Before-capture awaiting its after-capture; deleted on consumption"""
    __tablename__ = "pending_sessions"

    id = Column(String(36), primary_key=True, default=_new_session_id)
    user_id = Column(String(64), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    before_evidence_ref = Column(Text, nullable=False)
    before_fingerprint = Column(String(128), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy_m = Column(Float)
    created_at = Column(DateTime, nullable=False)  # server stamp

    __table_args__ = (
        Index('idx_pending_session_user', 'user_id'),
        Index('idx_pending_session_fingerprint', 'before_fingerprint'),
        Index('idx_pending_session_created', 'created_at'),
    )


class CleanupReport(Base):
    """Audit record of every evaluated cleanup claim, verified or flagged"""
    __tablename__ = "cleanup_reports"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    before_evidence_ref = Column(Text, nullable=False)
    before_fingerprint = Column(String(128), nullable=False)
    after_evidence_ref = Column(Text, nullable=False)
    after_fingerprint = Column(String(128), nullable=False)
    before_time = Column(DateTime, nullable=False)
    after_time = Column(DateTime, nullable=False)
    verified = Column(Boolean, nullable=False, default=False)
    gps_low_confidence = Column(Boolean, nullable=False, default=False)
    distance_m = Column(Float)
    elapsed_minutes = Column(Float)
    similarity_outcome = Column(String(20))  # pass, fail, unavailable
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_cleanup_report_user_location', 'user_id', 'location_id'),
        Index('idx_cleanup_report_before_fp', 'before_fingerprint'),
        Index('idx_cleanup_report_after_fp', 'after_fingerprint'),
    )


# ============================================================
# DIRTY CONSENSUS
# ============================================================

class DirtyReport(Base):
    """One user's claim that a location is dirty, at most one per day"""
    __tablename__ = "dirty_reports"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    evidence_ref = Column(Text, nullable=False)
    report_date = Column(Date, nullable=False)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'location_id', 'report_date', name='unique_dirty_report_day'),
        Index('idx_dirty_report_location_created', 'location_id', 'created_at'),
    )


class ConsensusEvent(Base):
    """A consensus threshold crossing that marked a location dirty"""
    __tablename__ = "consensus_events"

    id = Column(Integer, primary_key=True, index=True)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    reporter_count = Column(Integer, nullable=False)
    notified_count = Column(Integer, default=0)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index('idx_consensus_event_location', 'location_id'),
    )


# ============================================================
# POINTS LEDGER
# ============================================================

class PointsLedgerEntry(Base):
    """Immutable point-earning event, caused by one report or consensus event"""
    __tablename__ = "points_ledger"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    points = Column(Integer, nullable=False)
    reason = Column(String(50), nullable=False)  # verified_cleanup, verified_cleanup_reclean, dirty_confirmation
    location_id = Column(Integer, ForeignKey("locations.id"))
    month = Column(String(7), nullable=False)  # YYYY-MM
    cleanup_report_id = Column(Integer, ForeignKey("cleanup_reports.id"))
    consensus_event_id = Column(Integer, ForeignKey("consensus_events.id"))
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "(cleanup_report_id IS NULL) <> (consensus_event_id IS NULL)",
            name='ck_ledger_single_cause'
        ),
        Index('idx_points_ledger_month', 'month'),
        Index('idx_points_ledger_user_month', 'user_id', 'month'),
    )


class LeaderboardSnapshot(Base):
    """Archived ranking for a closed month"""
    __tablename__ = "leaderboard_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    month = Column(String(7), nullable=False)
    rank = Column(Integer, nullable=False)
    user_id = Column(String(64), nullable=False)
    points = Column(Integer, nullable=False)
    archived_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('month', 'rank', name='unique_snapshot_month_rank'),
    )


# ============================================================
# GUARDIANS & NOTIFICATIONS
# ============================================================

class GuardianSubscription(Base):
    """User watching a location for dirty alerts"""
    __tablename__ = "guardians"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"), nullable=False)
    subscribed_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint('user_id', 'location_id', name='unique_guardian_user_location'),
    )

    location = relationship("Location", back_populates="guardians")


class Notification(Base):
    """In-app notification record"""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False)
    location_id = Column(Integer, ForeignKey("locations.id"))
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())

    __table_args__ = (
        Index('idx_notifications_user_read', 'user_id', 'read'),
    )
