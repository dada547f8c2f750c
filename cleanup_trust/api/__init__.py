"""
API routers package
"""
from cleanup_trust.api import (
    system,
    sessions,
    reports,
    locations,
    leaderboard,
    guardians,
    notifications
)

__all__ = [
    "system",
    "sessions",
    "reports",
    "locations",
    "leaderboard",
    "guardians",
    "notifications"
]
