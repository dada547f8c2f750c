"""
Sessions Router - register "before" captures
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from cleanup_trust.dependencies import get_db, get_current_user_id
from cleanup_trust.services.session_tracker import session_tracker

router = APIRouter()


class OpenSessionRequest(BaseModel):
    """Before-capture claim"""
    location_id: Optional[int] = Field(None, description="Known location; omitted = resolve from coordinates")
    evidence_ref: str = Field(..., min_length=1, description="Storage reference of the before photo")
    fingerprint: str = Field(..., min_length=1, max_length=128, description="Content digest of the before photo")
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(None, ge=0, description="Reported GPS accuracy radius in metres")

    model_config = {
        "json_schema_extra": {
            "example": {
                "evidence_ref": "cleanup-images/u1/before-1718000000.jpg",
                "fingerprint": "9f2c4a7e1b3d5f60",
                "lat": 13.0827,
                "lng": 80.2707,
                "accuracy": 5
            }
        }
    }


class SessionResponse(BaseModel):
    session_id: str
    location_id: int
    created_at: datetime


@router.post("", response_model=SessionResponse)
def open_session(
    request: OpenSessionRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Register a before-capture.

    The server records the capture time; the client cannot influence it.
    Rejects with 409 if the photo fingerprint was used before.
    """
    session = session_tracker.open(
        db,
        user_id=user_id,
        evidence_ref=request.evidence_ref,
        fingerprint=request.fingerprint,
        lat=request.lat,
        lng=request.lng,
        accuracy_m=request.accuracy,
        location_id=request.location_id
    )
    return SessionResponse(
        session_id=session.id,
        location_id=session.location_id,
        created_at=session.created_at
    )


@router.get("/mine", response_model=List[SessionResponse])
def list_my_sessions(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Open sessions awaiting an after-capture."""
    return [
        SessionResponse(session_id=s.id, location_id=s.location_id, created_at=s.created_at)
        for s in session_tracker.list_open(db, user_id)
    ]
