"""
Guardian Service - subscriptions to dirty alerts for a location
"""
import logging
from typing import List

from sqlalchemy.orm import Session

from cleanup_trust.db.database import insert_ignore
from cleanup_trust.db.models import GuardianSubscription
from cleanup_trust.services.location_service import location_service

logger = logging.getLogger(__name__)


class GuardianService:
    """Service for managing guardian subscriptions"""

    def subscribe(self, db: Session, user_id: str, location_id: int) -> bool:
        """Subscribe; returns False if the user was already a guardian."""
        location_service.get(db, location_id)

        stmt = insert_ignore(db, GuardianSubscription).values(
            user_id=user_id,
            location_id=location_id
        )
        created = db.execute(stmt).rowcount == 1
        db.commit()

        if created:
            logger.info(f"User {user_id} now guards location {location_id}")
        return created

    def unsubscribe(self, db: Session, user_id: str, location_id: int) -> bool:
        deleted = db.query(GuardianSubscription).filter(
            GuardianSubscription.user_id == user_id,
            GuardianSubscription.location_id == location_id
        ).delete(synchronize_session=False)
        db.commit()
        return deleted == 1

    def list_for_user(self, db: Session, user_id: str) -> List[GuardianSubscription]:
        return db.query(GuardianSubscription).filter(
            GuardianSubscription.user_id == user_id
        ).order_by(GuardianSubscription.subscribed_at.desc()).all()


# Singleton instance
guardian_service = GuardianService()
