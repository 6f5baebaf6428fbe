"""Tests for the athlete baseline aggregator."""
from __future__ import annotations

from datetime import date, timedelta

from plan_sync.services.athlete_baseline import compute_athlete_baseline

from builders import build_session


TODAY = date(2025, 3, 1)


def test_no_history_returns_none():
    assert compute_athlete_baseline([], today=TODAY) is None


def test_other_kinds_are_ignored():
    rides = [build_session(1, TODAY, activity_type="Ride")]
    assert compute_athlete_baseline(rides, today=TODAY) is None


def test_aggregates_tracked_sessions():
    sessions = [
        build_session(1, TODAY - timedelta(days=2), minutes=50, pace_min_km=5.0),   # 10 km
        build_session(2, TODAY - timedelta(days=10), minutes=60, pace_min_km=6.0),  # 10 km
        build_session(3, TODAY - timedelta(days=40), minutes=30, pace_min_km=6.0),  # 5 km
        build_session(4, TODAY - timedelta(days=1), minutes=90, activity_type="Ride"),
    ]

    baseline = compute_athlete_baseline(sessions, today=TODAY)

    assert baseline.avg_pace == 5.67
    assert baseline.longest_distance == 10.0
    assert baseline.avg_distance == 8.33
    # Two runs in the last 30 days
    assert baseline.avg_runs_per_week == 0.47
