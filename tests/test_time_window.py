"""
Tests for time_window.py
"""
from datetime import timedelta

from cleanup_trust.services.time_window import TimeWindowGuard
from tests.support import T0


class TestTimeWindowGuard:

    def test_within_window(self):
        result = TimeWindowGuard(0, 120).check(T0, T0 + timedelta(minutes=45))
        assert result.passed
        assert result.elapsed_minutes == 45
        assert result.reason is None

    def test_immediate_submission_passes_without_minimum(self):
        assert TimeWindowGuard(0, 120).check(T0, T0).passed

    def test_boundary_is_inclusive(self):
        assert TimeWindowGuard(0, 120).check(T0, T0 + timedelta(minutes=120)).passed

    def test_too_late(self):
        result = TimeWindowGuard(0, 120).check(T0, T0 + timedelta(minutes=121))
        assert not result.passed
        assert result.reason == "too_late"
        assert result.elapsed_minutes == 121

    def test_too_early_with_minimum(self):
        result = TimeWindowGuard(5, 120).check(T0, T0 + timedelta(minutes=2))
        assert not result.passed
        assert result.reason == "too_early"

    def test_negative_elapsed_is_clock_skew(self):
        result = TimeWindowGuard(0, 120).check(T0, T0 - timedelta(seconds=30))
        assert not result.passed
        assert result.reason == "clock_skew"
