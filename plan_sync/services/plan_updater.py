"""Immutable slot state transitions for training plans.

Every function takes a plan and returns a new one; the input plan is never
modified. Untouched weeks and slots are shared with the input, changed ones
are rebuilt and re-validated, so the slot invariants are checked on every
transition.
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from plan_sync.exceptions import IndexOutOfRangeError, InvalidInputError, InvalidPlanStructureError
from plan_sync.models.schemas import CompletionType, MatchType, PlanData, PlanDay


logger = logging.getLogger(__name__)

MANUAL_MATCH_CONFIDENCE = 1.0

UNRESOLVED_STATE: dict[str, Any] = {
    "is_completed": False,
    "is_missed": False,
    "matched_session_id": None,
    "matched_at": None,
    "match_type": None,
    "match_confidence": None,
    "match_score": None,
    "completion_date": None,
    "completion_type": None,
    "missed_reason": None,
}


class MatchData(BaseModel):
    """Fields written by a complete-with-match transition."""

    matched_session_id: int | None = None
    match_type: MatchType | None = None
    match_confidence: float | None = None
    match_score: float | None = None
    completion_date: date | None = None
    matched_at: datetime | None = None
    user_notes: str | None = None


class SlotUpdate(BaseModel):
    week_index: int
    day_index: int
    match_data: MatchData


def get_day(plan: PlanData, week_index: int, day_index: int) -> PlanDay:
    """Return the slot at (week_index, day_index) or raise IndexOutOfRangeError."""
    if plan is None or plan.schedule is None:
        raise InvalidPlanStructureError("Invalid plan structure - missing schedule")
    if not 0 <= week_index < len(plan.schedule):
        raise IndexOutOfRangeError(week_index)
    days = plan.schedule[week_index].days
    if not 0 <= day_index < len(days):
        raise IndexOutOfRangeError(week_index, day_index)
    return days[day_index]


def _rewrite_day(plan: PlanData, week_index: int, day_index: int, changes: dict[str, Any]) -> PlanData:
    day = get_day(plan, week_index, day_index)
    try:
        new_day = PlanDay.model_validate({**day.model_dump(), **changes})
    except ValidationError as exc:
        raise InvalidInputError(
            f"Transition on week {week_index} day {day_index} violates slot state: {exc}"
        ) from exc

    week = plan.schedule[week_index]
    days = week.days[:day_index] + (new_day,) + week.days[day_index + 1:]
    new_week = week.model_copy(update={"days": days})
    schedule = plan.schedule[:week_index] + (new_week,) + plan.schedule[week_index + 1:]
    return plan.model_copy(update={"schedule": schedule})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def complete_with_match(
    plan: PlanData,
    week_index: int,
    day_index: int,
    match_data: MatchData,
) -> PlanData:
    """
    Mark a slot completed, optionally linking the session that completed it.

    Clears any missed state. Without a session id the completion is recorded
    as a manual checkbox and no match type is stored.

    Raises:
        InvalidInputError: if a session is linked to a rest day
    """
    day = get_day(plan, week_index, day_index)
    matched = match_data.matched_session_id is not None

    if matched and day.is_rest_day:
        raise InvalidInputError(f"Week {week_index} day {day_index} is a rest day and cannot hold a session")
    if match_data.match_confidence is not None and not 0 <= match_data.match_confidence <= 1:
        raise InvalidInputError("match_confidence must be within [0, 1]")

    notes = match_data.user_notes if match_data.user_notes is not None else day.user_notes

    changes = {
        "is_completed": True,
        "is_missed": False,
        "missed_reason": None,
        "matched_session_id": match_data.matched_session_id,
        "match_type": (match_data.match_type or MatchType.MANUAL) if matched else None,
        "match_confidence": match_data.match_confidence,
        "match_score": match_data.match_score,
        "matched_at": (match_data.matched_at or _utcnow()) if matched else None,
        "completion_date": match_data.completion_date or date.today(),
        "completion_type": CompletionType.MATCHED if matched else CompletionType.MANUAL_CHECKBOX,
        "user_notes": notes,
    }
    return _rewrite_day(plan, week_index, day_index, changes)


def mark_missed(plan: PlanData, week_index: int, day_index: int, reason: str | None = None) -> PlanData:
    """
    Flag a slot as missed.

    A missed slot cannot also be completed, so completion and match fields are
    reset alongside.
    """
    changes = {**UNRESOLVED_STATE, "is_missed": True, "missed_reason": reason}
    return _rewrite_day(plan, week_index, day_index, changes)


def unmatch(plan: PlanData, week_index: int, day_index: int) -> PlanData:
    """Return a slot to the unresolved state (a previous missed flag is not restored)."""
    return _rewrite_day(plan, week_index, day_index, dict(UNRESOLVED_STATE))


def manual_match(
    plan: PlanData,
    week_index: int,
    day_index: int,
    session_id: int,
    completion_date: date | None = None,
) -> PlanData:
    return complete_with_match(
        plan,
        week_index,
        day_index,
        MatchData(
            matched_session_id=session_id,
            match_type=MatchType.MANUAL,
            match_confidence=MANUAL_MATCH_CONFIDENCE,
            match_score=MANUAL_MATCH_CONFIDENCE,
            completion_date=completion_date,
        ),
    )


def complete_without_match(
    plan: PlanData,
    week_index: int,
    day_index: int,
    note: str | None = None,
    completion_date: date | None = None,
) -> PlanData:
    """Tick a slot off by hand; ``note`` replaces the slot's user note when given."""
    return complete_with_match(
        plan,
        week_index,
        day_index,
        MatchData(completion_date=completion_date, user_notes=note),
    )


def add_note(plan: PlanData, week_index: int, day_index: int, note: str | None) -> PlanData:
    return _rewrite_day(plan, week_index, day_index, {"user_notes": note})


def clear_missed(plan: PlanData, week_index: int, day_index: int) -> PlanData:
    return _rewrite_day(plan, week_index, day_index, {"is_missed": False, "missed_reason": None})


def batch_complete(plan: PlanData, updates: Iterable[SlotUpdate]) -> PlanData:
    """Apply several complete-with-match transitions, returning a single new plan."""
    updated = plan
    count = 0
    for update in updates:
        updated = complete_with_match(updated, update.week_index, update.day_index, update.match_data)
        count += 1
    logger.debug("Applied %d slot updates", count)
    return updated
