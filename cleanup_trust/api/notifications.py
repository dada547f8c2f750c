"""
Notifications Router - in-app inbox and push token registration
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from cleanup_trust.dependencies import get_db, get_current_user_id
from cleanup_trust.services.notification_service import notification_service

router = APIRouter()


class NotificationResponse(BaseModel):
    id: int
    message: str
    location_id: Optional[int] = None
    read: bool
    created_at: Optional[datetime] = None


class PushTokenRequest(BaseModel):
    push_token: Optional[str] = Field(None, max_length=255, description="Expo push token; null to stop pushes")
    display_name: Optional[str] = Field(None, max_length=100)


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    return [
        NotificationResponse(
            id=n.id,
            message=n.message,
            location_id=n.location_id,
            read=n.read,
            created_at=n.created_at
        )
        for n in notification_service.list_for_user(db, user_id, unread_only=unread_only, limit=limit)
    ]


@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: int,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    if not notification_service.mark_read(db, user_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"id": notification_id, "read": True}


@router.put("/push-token")
def register_push_token(
    request: PushTokenRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    profile = notification_service.register_push_token(
        db, user_id, request.push_token, display_name=request.display_name
    )
    return {"user_id": profile.user_id, "push_enabled": bool(profile.push_token)}
