"""
Tests for trust_evaluator.py - the before/after acceptance decision.

Covers:
- Verified claims: report, points, location marked clean
- Hard rejections: duplicate evidence, expired session, GPS mismatch
- Flagged claims: low GPS confidence, similarity fail or error
- Re-clean bonus and the unavailable-collaborator policy
"""
from datetime import timedelta

import pytest

from cleanup_trust.db.models import CleanupReport, Location, PendingSession, PointsLedgerEntry
from cleanup_trust.services.errors import (
    DuplicateEvidence, GeoMismatch, NotFound, TimeWindowExceeded
)
from cleanup_trust.services.location_service import location_service
from cleanup_trust.services.points_ledger import points_ledger
from cleanup_trust.services.session_tracker import session_tracker
from cleanup_trust.services.similarity_service import SignalResult
from cleanup_trust.services.trust_evaluator import TrustEvaluator
from tests.support import T0, SPOT, SPOT_NEARBY, SPOT_ONE_KM, FakeSimilarity

AFTER = T0 + timedelta(minutes=30)


def _open(db, user_id="u1", fingerprint="fp-before", accuracy=5.0, now=T0):
    session = session_tracker.open(
        db,
        user_id=user_id,
        evidence_ref=f"cleanup-images/{user_id}/{fingerprint}.jpg",
        fingerprint=fingerprint,
        lat=SPOT[0],
        lng=SPOT[1],
        accuracy_m=accuracy,
        now=now
    )
    # detached with loaded attributes, so later commits do not expire it
    db.expunge(session)
    return session


def _submit(evaluator, db, session, fingerprint="fp-after", spot=SPOT_NEARBY,
            accuracy=5.0, now=AFTER, user_id=None):
    return evaluator.submit(
        db,
        user_id=user_id or session.user_id,
        session_id=session.id,
        after_evidence_ref=f"cleanup-images/{session.user_id}/{fingerprint}.jpg",
        after_fingerprint=fingerprint,
        after_lat=spot[0],
        after_lng=spot[1],
        after_accuracy_m=accuracy,
        now=now
    )


def _evaluator(outcome="pass", reason=None, policy="pass"):
    return TrustEvaluator(
        similarity=FakeSimilarity(SignalResult(outcome, reason=reason)),
        unavailable_policy=policy
    )


class TestVerified:

    def test_verified_cleanup_awards_base_points_and_cleans(self, db):
        session = _open(db)
        result = _submit(_evaluator(), db, session)

        assert result.verified is True
        assert result.low_confidence is False
        assert result.points_awarded == 10
        assert result.similarity == "pass"
        assert result.elapsed_minutes == 30
        assert result.distance_m < 20

        location = db.query(Location).filter(Location.id == session.location_id).one()
        assert location.status == "clean"
        assert location.last_cleaned_at == AFTER

        entries = points_ledger.entries_for(db, "u1")
        assert len(entries) == 1
        assert entries[0].reason == "verified_cleanup"
        assert entries[0].cleanup_report_id == result.report_id
        assert entries[0].consensus_event_id is None
        assert entries[0].month == "2026-10"

    def test_session_is_spent(self, db):
        session = _open(db)
        evaluator = _evaluator()
        _submit(evaluator, db, session)

        assert db.query(PendingSession).count() == 0
        with pytest.raises(NotFound):
            _submit(evaluator, db, session, fingerprint="fp-after-2")

    def test_dirty_location_becomes_clean(self, db):
        session = _open(db)
        location_service.transition(db, session.location_id, "dirty")
        db.commit()

        _submit(_evaluator(), db, session)
        location = db.query(Location).filter(Location.id == session.location_id).one()
        assert location.status == "clean"

    def test_reclean_bonus(self, db):
        evaluator = _evaluator()
        first = _open(db, fingerprint="fp-before-1")
        assert _submit(evaluator, db, first, fingerprint="fp-after-1").points_awarded == 10

        later = AFTER + timedelta(days=3)
        second = _open(db, fingerprint="fp-before-2", now=later)
        result = _submit(evaluator, db, second, fingerprint="fp-after-2", now=later + timedelta(minutes=20))

        assert result.points_awarded == 15
        assert points_ledger.total_for(db, "u1") == 25
        reasons = [e.reason for e in points_ledger.entries_for(db, "u1")]
        assert reasons == ["verified_cleanup", "verified_cleanup_reclean"]

    def test_flagged_history_does_not_count_as_reclean(self, db):
        first = _open(db, fingerprint="fp-before-1", accuracy=200)
        assert _submit(_evaluator(), db, first, fingerprint="fp-after-1").verified is False

        second = _open(db, fingerprint="fp-before-2")
        assert _submit(_evaluator(), db, second, fingerprint="fp-after-2").points_awarded == 10


class TestHardRejections:

    def test_gps_mismatch_rejected_and_session_survives(self, db):
        session = _open(db)
        with pytest.raises(GeoMismatch) as exc:
            _submit(_evaluator(), db, session, spot=SPOT_ONE_KM)

        assert exc.value.detail["distance_m"] > 900
        assert exc.value.detail["max_distance_m"] == 500
        assert exc.value.status_code == 422
        assert db.query(CleanupReport).count() == 0
        assert db.query(PendingSession).count() == 1
        assert points_ledger.total_for(db, "u1") == 0

        # Same session can still be completed at the right place
        assert _submit(_evaluator(), db, session).verified is True

    def test_expired_session_rejected_and_discarded(self, db):
        session = _open(db)
        with pytest.raises(TimeWindowExceeded) as exc:
            _submit(_evaluator(), db, session, now=T0 + timedelta(minutes=121))

        assert exc.value.detail["elapsed_minutes"] == 121
        assert exc.value.detail["max_minutes"] == 120
        assert db.query(CleanupReport).count() == 0
        assert db.query(PendingSession).count() == 0
        location = db.query(Location).filter(Location.id == session.location_id).one()
        assert location.status == "pending"

    def test_after_identical_to_before_rejected(self, db):
        session = _open(db, fingerprint="fp-same")
        with pytest.raises(DuplicateEvidence):
            _submit(_evaluator(), db, session, fingerprint="fp-same")
        assert db.query(PendingSession).count() == 1

    def test_after_reused_from_history_rejected(self, db):
        first = _open(db, user_id="u1", fingerprint="fp-b1")
        _submit(_evaluator(), db, first, fingerprint="fp-a1")

        second = _open(db, user_id="u2", fingerprint="fp-b2")
        with pytest.raises(DuplicateEvidence):
            _submit(_evaluator(), db, second, fingerprint="fp-a1")
        assert points_ledger.total_for(db, "u2") == 0

    def test_after_reusing_earlier_before_photo_rejected(self, db):
        first = _open(db, user_id="u1", fingerprint="fp-b1")
        _submit(_evaluator(), db, first, fingerprint="fp-a1")

        second = _open(db, user_id="u2", fingerprint="fp-b2")
        with pytest.raises(DuplicateEvidence) as exc:
            _submit(_evaluator(), db, second, fingerprint="fp-b1")

        assert exc.value.detail["role"] == "after"
        assert db.query(CleanupReport).count() == 1
        assert db.query(PendingSession).filter(PendingSession.user_id == "u2").count() == 1
        assert points_ledger.total_for(db, "u2") == 0

    def test_duplicate_checked_before_time_window(self, db):
        session = _open(db, fingerprint="fp-same")
        with pytest.raises(DuplicateEvidence):
            _submit(_evaluator(), db, session, fingerprint="fp-same", now=T0 + timedelta(hours=5))


class TestFlagged:

    def test_low_gps_accuracy_flags(self, db):
        session = _open(db)
        result = _submit(_evaluator(), db, session, accuracy=120)

        assert result.verified is False
        assert result.low_confidence is True
        assert result.points_awarded == 0

        report = db.query(CleanupReport).one()
        assert report.verified is False
        assert report.gps_low_confidence is True
        location = db.query(Location).filter(Location.id == session.location_id).one()
        assert location.status == "pending"
        assert location.last_cleaned_at is None

    def test_unknown_accuracy_flags(self, db):
        session = _open(db, accuracy=None)
        assert _submit(_evaluator(), db, session).verified is False

    def test_similarity_fail_flags(self, db):
        session = _open(db)
        result = _submit(_evaluator(outcome="fail"), db, session)
        assert result.verified is False
        assert result.similarity == "fail"
        assert points_ledger.total_for(db, "u1") == 0

    def test_configured_collaborator_error_flags(self, db):
        session = _open(db)
        result = _submit(_evaluator(outcome="unavailable", reason="error", policy="pass"), db, session)
        assert result.verified is False
        assert result.similarity == "unavailable"

    def test_unconfigured_collaborator_follows_pass_policy(self, db):
        session = _open(db)
        result = _submit(_evaluator(outcome="unavailable", reason="not_configured", policy="pass"), db, session)
        assert result.verified is True

    def test_unconfigured_collaborator_follows_flag_policy(self, db):
        session = _open(db)
        result = _submit(_evaluator(outcome="unavailable", reason="not_configured", policy="flag"), db, session)
        assert result.verified is False


class TestImageDiffPolicy:

    @pytest.mark.parametrize("outcome,reason,policy,expected", [
        ("pass", None, "flag", True),
        ("fail", None, "pass", False),
        ("unavailable", "not_configured", "pass", True),
        ("unavailable", "not_configured", "flag", False),
        ("unavailable", "error", "pass", False),
    ])
    def test_image_diff_passed(self, outcome, reason, policy, expected):
        evaluator = TrustEvaluator(unavailable_policy=policy)
        assert evaluator.image_diff_passed(SignalResult(outcome, reason=reason)) is expected


def test_history_lists_both_outcomes(db):
    evaluator = _evaluator()
    _submit(evaluator, db, _open(db, fingerprint="fp-b1"), fingerprint="fp-a1")
    _submit(evaluator, db, _open(db, fingerprint="fp-b2"), fingerprint="fp-a2", accuracy=300)

    history = evaluator.history(db, "u1")
    assert [r.verified for r in history] == [False, True]
    assert db.query(PointsLedgerEntry).count() == 1


def test_ten_minute_cleanup_at_same_spot(db):
    session = session_tracker.open(
        db, user_id="user-a", evidence_ref="before.jpg", fingerprint="fp-a-before",
        lat=13.0827, lng=80.2707, accuracy_m=5, now=T0
    )
    db.expunge(session)

    result = _evaluator().submit(
        db,
        user_id="user-a",
        session_id=session.id,
        after_evidence_ref="after.jpg",
        after_fingerprint="fp-a-after",
        after_lat=13.0828,
        after_lng=80.2708,
        after_accuracy_m=5,
        now=T0 + timedelta(minutes=10)
    )

    assert result.verified is True
    assert result.points_awarded == 10
    location = db.query(Location).filter(Location.id == session.location_id).one()
    assert location.status == "clean"
