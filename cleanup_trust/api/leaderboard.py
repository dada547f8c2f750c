"""
Leaderboard Router - monthly rankings derived from the points ledger
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from cleanup_trust.dependencies import get_db, get_current_user_id, verify_api_key
from cleanup_trust.services.clock import month_key, previous_month_key
from cleanup_trust.services.points_ledger import points_ledger

router = APIRouter()

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    points: int


class LeaderboardResponse(BaseModel):
    month: str
    entries: List[LeaderboardEntry]


class MyPointsResponse(BaseModel):
    user_id: str
    month: str
    monthly_points: int
    total_points: int


class ArchiveRequest(BaseModel):
    month: Optional[str] = None


@router.get("", response_model=LeaderboardResponse)
def get_leaderboard(
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN, description="YYYY-MM, default current month"),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """
    Monthly leaderboard.

    Monthly reset is only a filter on the ledger's month; past months stay queryable.
    """
    target = month or month_key()
    return LeaderboardResponse(
        month=target,
        entries=points_ledger.leaderboard(db, target, limit=limit)
    )


@router.get("/me", response_model=MyPointsResponse)
def get_my_points(
    month: Optional[str] = Query(None, pattern=MONTH_PATTERN),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    target = month or month_key()
    return MyPointsResponse(
        user_id=user_id,
        month=target,
        monthly_points=points_ledger.monthly_total_for(db, user_id, target),
        total_points=points_ledger.total_for(db, user_id)
    )


@router.get("/snapshots/{month}", response_model=LeaderboardResponse)
def get_snapshot(month: str, db: Session = Depends(get_db)):
    """Archived ranking of a closed month."""
    rows = points_ledger.snapshot(db, month)
    return LeaderboardResponse(
        month=month,
        entries=[LeaderboardEntry(rank=r.rank, user_id=r.user_id, points=r.points) for r in rows]
    )


@router.post("/archive")
def archive_leaderboard(
    request: ArchiveRequest,
    _: str = Depends(verify_api_key),
    db: Session = Depends(get_db)
):
    """
    Snapshot a month's top entries (default: previous month).

    Internal endpoint for the scheduler. Never deletes ledger data.
    """
    target = request.month or previous_month_key()
    archived = points_ledger.archive_month(db, target)
    return {"month": target, "archived": archived}
