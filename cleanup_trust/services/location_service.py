"""
Location Service - lazy grid-cell locations and the status state machine

Status transitions:
- (new grid cell)        -> pending
- clean | pending        -> dirty   (consensus threshold only)
- dirty | pending | clean -> clean  (accepted cleanup only; clean refreshes last_cleaned_at)

Every write is a conditional UPDATE guarded by the current status, so
concurrent writers cannot apply the same transition twice.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from cleanup_trust.db.database import insert_ignore
from cleanup_trust.db.models import Location
from cleanup_trust.services.errors import GeoMismatch, NotFound, TrustError
from cleanup_trust.services.geo_matcher import GeoMatcher, geo_matcher

logger = logging.getLogger(__name__)

STATUS_CLEAN = "clean"
STATUS_PENDING = "pending"
STATUS_DIRTY = "dirty"

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS = {
    STATUS_DIRTY: (STATUS_CLEAN, STATUS_PENDING),
    STATUS_CLEAN: (STATUS_DIRTY, STATUS_PENDING, STATUS_CLEAN),
}


class LocationService:
    """Resolves claims to locations and owns status writes"""

    def __init__(self, matcher: Optional[GeoMatcher] = None):
        self.matcher = matcher or geo_matcher

    def get(self, db: Session, location_id: int) -> Location:
        location = db.query(Location).filter(Location.id == location_id).first()
        if not location:
            raise NotFound("Location not found.", detail={"location_id": location_id})
        return location

    def get_or_create(self, db: Session, lat: float, lng: float) -> Location:
        """
        Upsert-or-fetch the location for a fix's grid cell.

        Losing the creation race to a concurrent request is harmless: the
        unique grid constraint turns the second insert into a no-op and both
        callers read the same row.
        """
        lat_grid, lng_grid = self.matcher.grid_cell(lat, lng)

        stmt = insert_ignore(db, Location).values(
            latitude=lat,
            longitude=lng,
            lat_grid=lat_grid,
            lng_grid=lng_grid,
            status=STATUS_PENDING
        )
        result = db.execute(stmt)
        if result.rowcount:
            logger.info(f"Created location for grid cell ({lat_grid}, {lng_grid})")

        return db.query(Location).filter(
            Location.lat_grid == lat_grid,
            Location.lng_grid == lng_grid
        ).one()

    def resolve(
        self,
        db: Session,
        location_id: Optional[int] = None,
        lat: Optional[float] = None,
        lng: Optional[float] = None
    ) -> Location:
        """Use an explicit location id, else the grid cell of the fix."""
        if location_id is not None:
            return self.get(db, location_id)
        if lat is None or lng is None:
            raise TrustError("A location id or coordinates are required.")
        return self.get_or_create(db, lat, lng)

    def ensure_within_reach(self, location: Location, lat: float, lng: float) -> float:
        """
        Reject a fix that is too far from a named location.

        Claims that name a location explicitly must still be made on site.
        """
        distance = self.matcher.distance_m(location.latitude, location.longitude, lat, lng)
        if distance > self.matcher.max_distance_m:
            raise GeoMismatch(
                f"You are {distance:.0f}m from this location. Must be within "
                f"{self.matcher.max_distance_m:g}m.",
                detail={
                    "location_id": location.id,
                    "distance_m": round(distance, 1),
                    "max_distance_m": self.matcher.max_distance_m,
                },
            )
        return distance

    def lock(self, db: Session, location_id: int) -> Location:
        """Row-lock a location for the rest of the transaction (no-op on SQLite)."""
        return db.query(Location).filter(
            Location.id == location_id
        ).with_for_update().populate_existing().one()

    def transition(
        self,
        db: Session,
        location_id: int,
        target: str,
        now: Optional[datetime] = None
    ) -> bool:
        """
        Apply a status transition if the current status allows it.

        Returns True when this call changed the row.
        """
        allowed_from = ALLOWED_TRANSITIONS[target]
        values = {"status": target}
        if target == STATUS_CLEAN:
            values["last_cleaned_at"] = now

        updated = db.query(Location).filter(
            Location.id == location_id,
            Location.status.in_(allowed_from)
        ).update(values, synchronize_session="fetch")

        if updated:
            logger.info(f"Location {location_id} -> {target}")
        return updated == 1


# Singleton instance
location_service = LocationService()
