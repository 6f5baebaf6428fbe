"""Baseline calculations over the athlete's session history."""
from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Iterable

from plan_sync.models.schemas import AthleteBaseline, RecordedSession
from plan_sync.services.workout_classifier import normalize_activity_kind, session_pace


logger = logging.getLogger(__name__)

FREQUENCY_WINDOW_DAYS = 30


def compute_athlete_baseline(
    sessions: Iterable[RecordedSession],
    today: date | None = None,
    tracked_kind: str = "run",
) -> AthleteBaseline | None:
    """
    Aggregate pace and distance references from past sessions.

    Args:
        sessions: Session history (any order, any kind)
        today: Reference date for the weekly frequency window
        tracked_kind: Only sessions of this kind contribute

    Returns:
        AthleteBaseline, or None if there is no history of the tracked kind
    """
    runs = [s for s in sessions if normalize_activity_kind(s.activity_type) == tracked_kind]
    if not runs:
        return None

    today = today or date.today()

    distances_km = [(s.distance or 0) / 1000 for s in runs]
    paces = [p for p in (session_pace(s) for s in runs) if p]

    window_start = today - timedelta(days=FREQUENCY_WINDOW_DAYS)
    recent = [s for s in runs if window_start <= s.session_date <= today]

    baseline = AthleteBaseline(
        avg_pace=round(sum(paces) / len(paces), 2) if paces else None,
        longest_distance=round(max(distances_km), 2),
        avg_distance=round(sum(distances_km) / len(distances_km), 2),
        avg_runs_per_week=round(len(recent) * 7 / FREQUENCY_WINDOW_DAYS, 2),
    )
    logger.debug(
        "Baseline from %d sessions: pace=%s longest=%s avg=%s per_week=%s",
        len(runs),
        baseline.avg_pace,
        baseline.longest_distance,
        baseline.avg_distance,
        baseline.avg_runs_per_week,
    )
    return baseline
