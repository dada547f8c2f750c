"""
Locations Router - public location status
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cleanup_trust.dependencies import get_db
from cleanup_trust.services.consensus_service import consensus_service
from cleanup_trust.services.location_service import location_service

router = APIRouter()


class LocationResponse(BaseModel):
    id: int
    latitude: float
    longitude: float
    status: str
    last_cleaned_at: Optional[datetime] = None
    recent_reporters: int
    required_reporters: int


@router.get("/{location_id}", response_model=LocationResponse)
def get_location(location_id: int, db: Session = Depends(get_db)):
    """Status of a location and its current dirty-report progress."""
    location = location_service.get(db, location_id)
    reporters = consensus_service.distinct_reporters(
        db, location.id, cleaned_at=location.last_cleaned_at
    )
    return LocationResponse(
        id=location.id,
        latitude=location.latitude,
        longitude=location.longitude,
        status=location.status,
        last_cleaned_at=location.last_cleaned_at,
        recent_reporters=len(reporters),
        required_reporters=consensus_service.threshold
    )
