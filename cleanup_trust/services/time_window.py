"""
Time Window Guard - elapsed time between two server-recorded instants
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from cleanup_trust.config import settings


@dataclass(frozen=True)
class TimeWindowResult:
    elapsed_minutes: float
    passed: bool
    reason: Optional[str] = None  # too_early, too_late, clock_skew


class TimeWindowGuard:
    """Validates a session's age against [min, max] minutes."""

    def __init__(
        self,
        min_minutes: Optional[float] = None,
        max_minutes: Optional[float] = None
    ):
        self.min_minutes = settings.SESSION_MIN_MINUTES if min_minutes is None else min_minutes
        self.max_minutes = settings.SESSION_MAX_MINUTES if max_minutes is None else max_minutes

    def check(self, started_at: datetime, now: datetime) -> TimeWindowResult:
        elapsed = (now - started_at).total_seconds() / 60

        if elapsed < 0:
            return TimeWindowResult(elapsed, False, "clock_skew")
        if elapsed < self.min_minutes:
            return TimeWindowResult(elapsed, False, "too_early")
        if elapsed > self.max_minutes:
            return TimeWindowResult(elapsed, False, "too_late")

        return TimeWindowResult(elapsed, True)


# Singleton instance
time_window_guard = TimeWindowGuard()
