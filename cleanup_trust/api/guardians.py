"""
Guardians Router - watch locations for dirty alerts
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cleanup_trust.dependencies import get_db, get_current_user_id
from cleanup_trust.services.guardian_service import guardian_service

router = APIRouter()


class GuardianResponse(BaseModel):
    location_id: int
    subscribed_at: Optional[datetime] = None


@router.get("", response_model=List[GuardianResponse])
def list_guarded_locations(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    return [
        GuardianResponse(location_id=g.location_id, subscribed_at=g.subscribed_at)
        for g in guardian_service.list_for_user(db, user_id)
    ]


@router.post("/{location_id}")
def guard_location(
    location_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    created = guardian_service.subscribe(db, user_id, location_id)
    return {"location_id": location_id, "subscribed": True, "created": created}


@router.delete("/{location_id}")
def unguard_location(
    location_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    if not guardian_service.unsubscribe(db, user_id, location_id):
        raise HTTPException(status_code=404, detail="Not guarding this location")
    return {"location_id": location_id, "subscribed": False}
