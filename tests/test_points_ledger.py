"""
Tests for points_ledger.py - append-only ledger and monthly leaderboards.
"""
import pytest
from sqlalchemy.exc import IntegrityError

from cleanup_trust.db.models import ConsensusEvent, LeaderboardSnapshot, PointsLedgerEntry
from cleanup_trust.services.clock import month_key, previous_month_key
from cleanup_trust.services.location_service import location_service
from cleanup_trust.services.points_ledger import PointsLedger
from tests.support import T0, SPOT


@pytest.fixture
def ledger():
    return PointsLedger()


@pytest.fixture
def event_id(db):
    location = location_service.get_or_create(db, *SPOT)
    event = ConsensusEvent(location_id=location.id, reporter_count=3, created_at=T0)
    db.add(event)
    db.commit()
    return event.id


def _award(ledger, db, user_id, points, month, event_id):
    return ledger.append(
        db, user_id=user_id, points=points, reason="dirty_confirmation",
        month=month, consensus_event_id=event_id
    )


class TestAppend:

    def test_requires_a_cause(self, ledger, db):
        with pytest.raises(ValueError):
            ledger.append(db, user_id="u1", points=3, reason="dirty_confirmation", month="2026-10")

    def test_rejects_two_causes(self, ledger, db, event_id):
        with pytest.raises(ValueError):
            ledger.append(
                db, user_id="u1", points=3, reason="dirty_confirmation", month="2026-10",
                cleanup_report_id=1, consensus_event_id=event_id
            )

    def test_database_enforces_single_cause(self, db):
        db.add(PointsLedgerEntry(user_id="u1", points=5, reason="manual", month="2026-10"))
        with pytest.raises(IntegrityError):
            db.flush()
        db.rollback()


class TestTotals:

    def test_totals_and_monthly_isolation(self, ledger, db, event_id):
        _award(ledger, db, "u1", 3, "2026-09", event_id)
        _award(ledger, db, "u1", 10, "2026-10", event_id)
        _award(ledger, db, "u1", 15, "2026-10", event_id)
        db.commit()

        assert ledger.total_for(db, "u1") == 28
        assert ledger.monthly_total_for(db, "u1", "2026-10") == 25
        assert ledger.monthly_total_for(db, "u1", "2026-09") == 3
        assert ledger.monthly_total_for(db, "u1", "2026-08") == 0
        assert ledger.total_for(db, "nobody") == 0
        assert len(ledger.entries_for(db, "u1", month="2026-10")) == 2

    def test_leaderboard_ranking(self, ledger, db, event_id):
        _award(ledger, db, "carol", 10, "2026-10", event_id)
        _award(ledger, db, "alice", 15, "2026-10", event_id)
        _award(ledger, db, "bob", 10, "2026-10", event_id)
        _award(ledger, db, "dave", 99, "2026-09", event_id)
        db.commit()

        board = ledger.leaderboard(db, "2026-10")
        assert board == [
            {"rank": 1, "user_id": "alice", "points": 15},
            {"rank": 2, "user_id": "bob", "points": 10},
            {"rank": 3, "user_id": "carol", "points": 10},
        ]
        assert ledger.leaderboard(db, "2026-10", limit=1)[0]["user_id"] == "alice"


class TestArchive:

    def test_archive_is_idempotent_and_keeps_ledger(self, ledger, db, event_id):
        _award(ledger, db, "alice", 15, "2026-09", event_id)
        _award(ledger, db, "bob", 10, "2026-09", event_id)
        db.commit()

        assert ledger.archive_month(db, "2026-09") == 2
        assert ledger.archive_month(db, "2026-09") == 0

        snapshot = ledger.snapshot(db, "2026-09")
        assert [(s.rank, s.user_id, s.points) for s in snapshot] == [(1, "alice", 15), (2, "bob", 10)]
        assert db.query(LeaderboardSnapshot).count() == 2
        assert db.query(PointsLedgerEntry).count() == 2


class TestMonthKeys:

    def test_month_key(self):
        assert month_key(T0) == "2026-10"

    def test_previous_month_wraps_year(self):
        from datetime import datetime
        assert previous_month_key(datetime(2027, 1, 3)) == "2026-12"
        assert previous_month_key(T0) == "2026-09"
