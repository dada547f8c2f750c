"""
Geo Matcher - great-circle distance with accuracy-aware confidence
"""
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from cleanup_trust.config import settings

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class GeoMatch:
    distance_m: float
    low_confidence: bool
    within_ceiling: bool


class GeoMatcher:
    """
    Compares two GPS fixes on a spherical-earth model.

    Distance above the ceiling is a hard rejection. A fix whose reported
    accuracy is worse than the confidence threshold only flags the claim.
    """

    def __init__(
        self,
        max_distance_m: Optional[float] = None,
        low_confidence_accuracy_m: Optional[float] = None,
        grid_precision: Optional[int] = None
    ):
        self.max_distance_m = (
            settings.GEO_MAX_DISTANCE_M if max_distance_m is None else max_distance_m
        )
        self.low_confidence_accuracy_m = (
            settings.GEO_LOW_CONFIDENCE_ACCURACY_M
            if low_confidence_accuracy_m is None else low_confidence_accuracy_m
        )
        self.grid_precision = (
            settings.LOCATION_GRID_PRECISION if grid_precision is None else grid_precision
        )

    @staticmethod
    def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Haversine distance between two coordinates in metres."""
        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)

        a = (math.sin(delta_lat / 2) ** 2 +
             math.cos(lat1_rad) * math.cos(lat2_rad) *
             math.sin(delta_lon / 2) ** 2)
        c = 2 * math.asin(min(1.0, math.sqrt(a)))

        return EARTH_RADIUS_M * c

    def is_low_confidence(self, accuracy_m: Optional[float]) -> bool:
        """Unknown accuracy counts as low confidence."""
        if accuracy_m is None:
            return True
        return accuracy_m > self.low_confidence_accuracy_m

    def match(
        self,
        lat1: float,
        lon1: float,
        accuracy1_m: Optional[float],
        lat2: float,
        lon2: float,
        accuracy2_m: Optional[float]
    ) -> GeoMatch:
        distance = self.distance_m(lat1, lon1, lat2, lon2)
        return GeoMatch(
            distance_m=distance,
            low_confidence=(
                self.is_low_confidence(accuracy1_m) or self.is_low_confidence(accuracy2_m)
            ),
            within_ceiling=distance <= self.max_distance_m,
        )

    def grid_cell(self, lat: float, lon: float) -> Tuple[float, float]:
        """Round a fix to its deduplication cell."""
        return round(lat, self.grid_precision), round(lon, self.grid_precision)


# Singleton instance
geo_matcher = GeoMatcher()
