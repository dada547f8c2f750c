"""
Reports Router - cleanup claims and dirty reports

Provides:
- POST /reports/cleanup: evaluate an after-capture against its session
- GET /reports/cleanup/mine: caller's cleanup history
- POST /reports/dirty: report a location as dirty again
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from cleanup_trust.dependencies import get_db, get_current_user_id
from cleanup_trust.services.clock import today
from cleanup_trust.services.consensus_service import consensus_service
from cleanup_trust.services.trust_evaluator import trust_evaluator

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================
# REQUEST/RESPONSE MODELS
# ============================================================

class CleanupRequest(BaseModel):
    """After-capture claim"""
    session_id: str = Field(..., description="Session returned by POST /sessions")
    evidence_ref: str = Field(..., min_length=1, description="Storage reference of the after photo")
    fingerprint: str = Field(..., min_length=1, max_length=128, description="Content digest of the after photo")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0, description="Reported GPS accuracy radius in metres")


class CleanupResponse(BaseModel):
    report_id: int
    location_id: int
    verified: bool
    low_confidence: bool
    points_awarded: int
    distance_m: float
    elapsed_minutes: float
    similarity: str
    message: str


class CleanupHistoryItem(BaseModel):
    report_id: int
    location_id: int
    verified: bool
    low_confidence: bool
    before_time: datetime
    after_time: datetime


class DirtyReportRequest(BaseModel):
    """Dirty claim for a known location or a coordinate fix"""
    location_id: Optional[int] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    evidence_ref: str = Field(..., min_length=1, description="Storage reference of the photo")
    report_date: Optional[date] = Field(None, description="Ignored; the server calendar day is used")

    @model_validator(mode="after")
    def _location_or_coordinates(self):
        if self.location_id is None and (self.lat is None or self.lng is None):
            raise ValueError("location_id or lat/lng is required")
        return self


class DirtyReportResponse(BaseModel):
    location_id: int
    distinct_reporters: int
    required: int
    threshold_met: bool
    transitioned: bool
    notified: int
    status: str
    message: str


# ============================================================
# ENDPOINTS
# ============================================================

@router.post("/cleanup", response_model=CleanupResponse)
def submit_cleanup(
    request: CleanupRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Submit the after-capture for an open session.

    Hard rejections (duplicate photo, expired session, GPS mismatch) return
    an error with the measured values. Otherwise the claim is recorded and
    either verified (points awarded, location marked clean) or flagged for
    manual review.
    """
    result = trust_evaluator.submit(
        db,
        user_id=user_id,
        session_id=request.session_id,
        after_evidence_ref=request.evidence_ref,
        after_fingerprint=request.fingerprint,
        after_lat=request.lat,
        after_lng=request.lng,
        after_accuracy_m=request.accuracy
    )

    if result.verified:
        message = f"Cleanup verified! +{result.points_awarded} points earned."
    else:
        message = "Submission received but flagged for manual review (low GPS confidence or image similarity)."

    return CleanupResponse(**result.to_dict(), message=message)


@router.get("/cleanup/mine", response_model=List[CleanupHistoryItem])
def my_cleanup_history(
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Caller's cleanup reports, newest first.

    Use this after a retry answers "session not found" to learn whether the
    earlier attempt was recorded.
    """
    return [
        CleanupHistoryItem(
            report_id=r.id,
            location_id=r.location_id,
            verified=r.verified,
            low_confidence=r.gps_low_confidence,
            before_time=r.before_time,
            after_time=r.after_time
        )
        for r in trust_evaluator.history(db, user_id, limit=limit)
    ]


@router.post("/dirty", response_model=DirtyReportResponse)
def report_dirty(
    request: DirtyReportRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Report a location as dirty.

    One report per user per location per server day. When enough distinct
    users report within 24 hours the location is marked dirty and its
    guardians are notified.
    """
    if request.report_date and request.report_date != today():
        logger.info(f"Ignoring client report_date {request.report_date} from user {user_id}")

    result = consensus_service.report(
        db,
        user_id=user_id,
        evidence_ref=request.evidence_ref,
        location_id=request.location_id,
        lat=request.lat,
        lng=request.lng
    )

    if result.transitioned:
        message = "Location marked dirty. Guardians notified."
    elif result.threshold_met:
        message = "Already dirty."
    else:
        message = f"{result.distinct_reporters}/{result.required} confirmations so far."

    return DirtyReportResponse(**result.to_dict(), message=message)
