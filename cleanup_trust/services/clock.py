"""
Server clock helpers.

All trust decisions use these instants; client-supplied timestamps are never read.
Datetimes are naive UTC to match the database columns.
"""
from datetime import datetime, date, timezone


def utcnow() -> datetime:
    """Current server time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def today(now: datetime = None) -> date:
    """Server calendar day (UTC)"""
    return (now or utcnow()).date()


def month_key(now: datetime = None) -> str:
    """Ledger partition key, e.g. '2026-10'"""
    return (now or utcnow()).strftime("%Y-%m")


def previous_month_key(now: datetime = None) -> str:
    """Month key of the month before ``now``"""
    current = now or utcnow()
    if current.month == 1:
        return f"{current.year - 1}-12"
    return f"{current.year}-{current.month - 1:02d}"
