"""Match recorded sessions to training plan slots using weighted scoring.

Weights:
    - Date proximity: 40%
    - Workout type: 30%
    - Duration similarity: 20%
    - Intensity zone: 10%

Confidence bands:
    - high (>= 0.75): applied automatically
    - medium (0.50 - 0.74): suggested to the athlete
    - low (< 0.50): discarded
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Collection

from plan_sync.models.schemas import (
    AthleteBaseline,
    CandidateSlot,
    Classification,
    ConfidenceBand,
    MatchScore,
    PlanData,
    PlanDay,
    RecordedSession,
    ScoreComponents,
    SlotMatch,
    WorkoutType,
)
from plan_sync.services.plan_calendar import iter_plan_days
from plan_sync.services.workout_classifier import classify_session


logger = logging.getLogger(__name__)

CANDIDATE_WINDOW_DAYS = 7

HIGH_CONFIDENCE = 0.75
MEDIUM_CONFIDENCE = 0.50

WEIGHTS = {
    "date": 0.40,
    "type": 0.30,
    "duration": 0.20,
    "intensity": 0.10,
}

DEFAULT_TYPE_COMPATIBILITY = 0.2

TYPE_COMPATIBILITY: dict[WorkoutType, dict[WorkoutType, float]] = {
    WorkoutType.INTERVAL: {
        WorkoutType.TEMPO: 0.6,
        WorkoutType.RACE: 0.7,
    },
    WorkoutType.TEMPO: {
        WorkoutType.INTERVAL: 0.6,
        WorkoutType.RACE: 0.7,
        WorkoutType.EASY_RUN: 0.5,
    },
    WorkoutType.LONG_RUN: {
        WorkoutType.EASY_RUN: 0.5,
        WorkoutType.RACE: 0.4,
    },
    WorkoutType.EASY_RUN: {
        WorkoutType.RECOVERY: 0.8,
        WorkoutType.LONG_RUN: 0.5,
        WorkoutType.TEMPO: 0.4,
    },
    WorkoutType.RECOVERY: {
        WorkoutType.EASY_RUN: 0.8,
    },
    WorkoutType.RACE: {
        WorkoutType.TEMPO: 0.7,
        WorkoutType.INTERVAL: 0.7,
    },
}

# Upper bounds (exclusive) of average heart rate for zones 1-4; anything above is zone 5.
HR_ZONE_CEILINGS = (140, 155, 165, 175)


def find_candidate_slots(
    plan_data: PlanData,
    session_date: date,
    claimed: Collection[tuple[int, int]] = (),
) -> list[CandidateSlot]:
    """
    Find plan slots a session on ``session_date`` could correspond to.

    Rest days, slots that already hold a matched session and ``claimed``
    (week_index, day_index) pairs are skipped.
    Remaining slots qualify when their date lies within seven calendar days
    (inclusive) of the session date.
    """
    candidates: list[CandidateSlot] = []
    for week_index, day_index, day, day_date in iter_plan_days(plan_data):
        if day.is_rest_day or day.matched_session_id is not None:
            continue
        if (week_index, day_index) in claimed:
            continue
        if abs((day_date - session_date).days) <= CANDIDATE_WINDOW_DAYS:
            candidates.append(
                CandidateSlot(week_index=week_index, day_index=day_index, day=day, day_date=day_date)
            )
    return candidates


def calculate_date_score(session_date: date, planned_date: date) -> float:
    """Score date proximity; 1.0 same day, falling to 0.15 at a week, 0.0 beyond."""
    days = abs((session_date - planned_date).days)

    if days == 0:
        return 1.0
    if days == 1:
        return 0.8
    if days == 2:
        return 0.6
    if days <= CANDIDATE_WINDOW_DAYS:
        return round(0.4 - (days - 2) * 0.05, 2)
    return 0.0


def infer_planned_workout_type(day: PlanDay) -> WorkoutType:
    """Infer the expected workout type from a slot's segment structure."""
    segments = day.workout_structure
    if not segments:
        return WorkoutType.EASY_RUN

    if any(segment.segment_type.upper() == "INTERVAL" for segment in segments):
        return WorkoutType.INTERVAL

    main_zones = [
        segment.intensity_zone
        for segment in segments
        if segment.segment_type.upper() == "MAIN" and segment.intensity_zone is not None
    ]
    if main_zones:
        avg_zone = sum(main_zones) / len(main_zones)
        if avg_zone >= 4:
            return WorkoutType.TEMPO
        if avg_zone <= 1.5:
            return WorkoutType.RECOVERY

    if planned_duration_minutes(day) > 90:
        return WorkoutType.LONG_RUN

    return WorkoutType.EASY_RUN


def planned_duration_minutes(day: PlanDay) -> float:
    """Planned duration of a slot, falling back to the sum of its timed segments."""
    if day.total_estimated_duration_min:
        return day.total_estimated_duration_min
    return sum(
        segment.duration_value
        for segment in day.workout_structure
        if segment.duration_unit == "min"
    )


def calculate_type_score(session_type: WorkoutType, planned_type: WorkoutType) -> float:
    if session_type == planned_type:
        return 1.0
    return TYPE_COMPATIBILITY.get(session_type, {}).get(planned_type, DEFAULT_TYPE_COMPATIBILITY)


def calculate_duration_score(session: RecordedSession, day: PlanDay) -> float:
    """Compare moving time with the planned duration by relative variance."""
    planned = day.total_estimated_duration_min
    if not planned:
        return 0.5

    actual = (session.moving_time or 0) / 60
    variance = abs(actual - planned) / planned

    if variance < 0.10:
        return 1.0
    if variance < 0.25:
        return 0.8
    if variance < 0.50:
        return 0.5
    return 0.2


def estimate_hr_zone(average_heartrate: float) -> int:
    for zone, ceiling in enumerate(HR_ZONE_CEILINGS, start=1):
        if average_heartrate < ceiling:
            return zone
    return 5


def calculate_intensity_score(session: RecordedSession, day: PlanDay) -> float:
    """Compare the session's estimated HR zone with the slot's mean planned zone."""
    if not session.average_heartrate:
        return 0.5

    planned_zones = [
        segment.intensity_zone
        for segment in day.workout_structure
        if segment.intensity_zone is not None
    ]
    if not planned_zones:
        return 0.5

    avg_planned_zone = sum(planned_zones) / len(planned_zones)
    zone_diff = abs(estimate_hr_zone(session.average_heartrate) - avg_planned_zone)

    if zone_diff < 0.5:
        return 1.0
    if zone_diff < 1.5:
        return 0.7
    if zone_diff < 2.5:
        return 0.4
    return 0.2


def get_confidence_band(score: float) -> ConfidenceBand:
    if score >= HIGH_CONFIDENCE:
        return "high"
    if score >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def calculate_match_score(
    session: RecordedSession,
    candidate: CandidateSlot,
    classification: Classification,
    baseline: AthleteBaseline | None = None,
) -> MatchScore:
    """
    Score how well a session fits a candidate slot.

    Args:
        session: Recorded session
        candidate: Candidate slot with its derived date
        classification: Classifier output for the session
        baseline: Athlete baseline (optional, not weighted directly)

    Returns:
        MatchScore with total in [0, 1], confidence band and human-readable reasons
    """
    reasons: list[str] = []
    day = candidate.day
    session_date = session.session_date

    date_score = calculate_date_score(session_date, candidate.day_date)
    days_apart = abs((session_date - candidate.day_date).days)
    if date_score == 1.0:
        reasons.append("Date match: same day")
    elif date_score >= 0.6:
        reasons.append(f"Date match: {days_apart} day(s) apart")
    elif date_score > 0:
        reasons.append(f"Date match: same week, {days_apart} days apart")

    planned_type = infer_planned_workout_type(day)
    type_score = calculate_type_score(classification.type, planned_type)
    if type_score == 1.0:
        reasons.append(f"Type match: both {classification.type.value.lower()} workouts")
    elif type_score >= 0.5:
        reasons.append(f"Type compatible: {classification.type.value} matches {planned_type.value}")

    duration_score = calculate_duration_score(session, day)
    if duration_score == 1.0:
        reasons.append("Duration within 10%")
    elif duration_score == 0.8:
        reasons.append("Duration within 25%")
    elif duration_score == 0.5 and day.total_estimated_duration_min:
        reasons.append("Duration within 50%")

    intensity_score = calculate_intensity_score(session, day)
    if intensity_score >= 1.0:
        reasons.append("Intensity zones match")
    elif intensity_score == 0.7:
        reasons.append("Intensity within one zone")

    total = (
        date_score * WEIGHTS["date"]
        + type_score * WEIGHTS["type"]
        + duration_score * WEIGHTS["duration"]
        + intensity_score * WEIGHTS["intensity"]
    )
    total = round(min(1.0, max(0.0, total)), 4)

    return MatchScore(
        score=total,
        band=get_confidence_band(total),
        reasons=tuple(reasons),
        components=ScoreComponents(
            date_score=date_score,
            type_score=type_score,
            duration_score=duration_score,
            intensity_score=intensity_score,
        ),
        planned_type=planned_type,
    )


def select_best_match(matches: list[SlotMatch]) -> SlotMatch | None:
    """Highest score wins; ties go to the earliest plan date."""
    surfaced = [m for m in matches if m.band != "low"]
    if not surfaced:
        return None
    return min(
        surfaced,
        key=lambda m: (-m.score.score, m.day_date, m.week_index, m.day_index),
    )


def match_session_to_plan(
    session: RecordedSession,
    plan_data: PlanData,
    baseline: AthleteBaseline | None,
    tracked_kind: str = "run",
    classification: Classification | None = None,
    claimed: Collection[tuple[int, int]] = (),
) -> SlotMatch | None:
    """
    Classify a session and return its best surfaced slot match, if any.

    Slots listed in ``claimed`` are not considered.

    Returns None when the session is not of the tracked kind, when no slot
    lies within the candidate window, or when every candidate scores low.
    """
    if classification is None:
        classification = classify_session(session, baseline, tracked_kind=tracked_kind)
    if classification is None:
        return None

    candidates = find_candidate_slots(plan_data, session.session_date, claimed)
    if not candidates:
        logger.debug("No candidate slots for session %s on %s", session.id, session.session_date)
        return None

    scored = [
        SlotMatch(
            session=session,
            classification=classification,
            week_index=candidate.week_index,
            day_index=candidate.day_index,
            day_date=candidate.day_date,
            planned_title=candidate.day.activity_title,
            score=calculate_match_score(session, candidate, classification, baseline),
        )
        for candidate in candidates
    ]
    best = select_best_match(scored)

    if best is not None:
        logger.debug(
            "Session %s best match: week %d day %d score=%.3f band=%s",
            session.id,
            best.week_index,
            best.day_index,
            best.score.score,
            best.band,
        )
    return best
