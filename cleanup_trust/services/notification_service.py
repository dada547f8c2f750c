"""
Notification Service - guardian alerts and push fan-out

Builds one persisted Notification per guardian and one push message per
guardian with a registered push token. Push delivery is fire-and-forget:
messages are handed to a Celery task after the triggering transaction
commits, and no delivery confirmation flows back into trust decisions.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from cleanup_trust.db.models import GuardianSubscription, Notification, UserProfile

logger = logging.getLogger(__name__)

GUARDIAN_ALERT_TITLE = "Guardian Alert"
GUARDIAN_ALERT_BODY = "A location you are guarding has been reported dirty again!"
GUARDIAN_CHANNEL = "guardian-alerts"


@dataclass
class FanoutRequest:
    """Push messages for one consensus event"""
    location_id: int
    messages: List[Dict[str, Any]] = field(default_factory=list)
    notified_users: List[str] = field(default_factory=list)


def _enqueue_push(messages: List[Dict[str, Any]]) -> None:
    from cleanup_trust.worker.tasks import send_push_notifications
    send_push_notifications.delay(messages)


class NotificationService:
    """Service for guardian notifications"""

    def __init__(self, dispatcher: Optional[Callable[[List[Dict[str, Any]]], None]] = None):
        self.dispatcher = dispatcher or _enqueue_push

    def build_guardian_alerts(
        self,
        db: Session,
        location_id: int,
        reporter_count: int
    ) -> FanoutRequest:
        """
        Persist a Notification per guardian and prepare push messages.

        Flushes but does not commit.
        """
        rows = db.query(GuardianSubscription.user_id, UserProfile.push_token).outerjoin(
            UserProfile, UserProfile.user_id == GuardianSubscription.user_id
        ).filter(
            GuardianSubscription.location_id == location_id
        ).order_by(GuardianSubscription.id).all()

        fanout = FanoutRequest(location_id=location_id)
        for user_id, push_token in rows:
            db.add(Notification(
                user_id=user_id,
                location_id=location_id,
                message=(
                    f"A location you are guarding has been reported dirty "
                    f"by {reporter_count} users."
                ),
                read=False
            ))
            fanout.notified_users.append(user_id)

            if push_token:
                fanout.messages.append({
                    "to": push_token,
                    "title": GUARDIAN_ALERT_TITLE,
                    "body": GUARDIAN_ALERT_BODY,
                    "data": {"location_id": location_id},
                    "channelId": GUARDIAN_CHANNEL,
                })

        db.flush()
        return fanout

    def dispatch(self, fanout: FanoutRequest) -> bool:
        """Hand push messages to the transport. Failures are logged, not raised."""
        if not fanout.messages:
            return False
        try:
            self.dispatcher(fanout.messages)
            logger.info(
                f"Dispatched {len(fanout.messages)} guardian alerts for location {fanout.location_id}"
            )
            return True
        except Exception as e:
            logger.error(f"Push dispatch failed for location {fanout.location_id}: {e}")
            return False

    def list_for_user(
        self,
        db: Session,
        user_id: str,
        unread_only: bool = False,
        limit: int = 50
    ) -> List[Notification]:
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return query.order_by(Notification.id.desc()).limit(limit).all()

    def mark_read(self, db: Session, user_id: str, notification_id: int) -> bool:
        updated = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).update({"read": True}, synchronize_session=False)
        db.commit()
        return updated == 1

    def register_push_token(
        self,
        db: Session,
        user_id: str,
        push_token: Optional[str],
        display_name: Optional[str] = None
    ) -> UserProfile:
        profile = db.query(UserProfile).filter(UserProfile.user_id == user_id).first()
        if not profile:
            profile = UserProfile(user_id=user_id)
            db.add(profile)
        profile.push_token = push_token
        if display_name:
            profile.display_name = display_name
        db.commit()
        db.refresh(profile)
        return profile


# Singleton instance
notification_service = NotificationService()
