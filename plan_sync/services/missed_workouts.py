"""Detect plan slots that are past due without being completed."""
from __future__ import annotations

import logging
from datetime import date

from plan_sync.models.schemas import MissedWorkout, PlanData
from plan_sync.services.plan_calendar import iter_plan_days


logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_DAYS = 3


def detect_missed_workouts(
    plan_data: PlanData,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
    today: date | None = None,
) -> list[MissedWorkout]:
    """
    List unresolved workout slots whose date is more than the grace period ago.

    Rest days, completed slots and matched slots are ignored. Detection is
    read-only: flagging a slot as missed is a separate, explicit transition.

    Args:
        plan_data: Structured plan schedule
        grace_period_days: Days after the slot date before it counts as overdue
        today: Reference date (defaults to today)

    Returns:
        Overdue slots in schedule order, with their computed days past due
    """
    if grace_period_days < 0:
        raise ValueError("grace_period_days must be non-negative")

    today = today or date.today()
    missed: list[MissedWorkout] = []

    for week_index, day_index, day, day_date in iter_plan_days(plan_data):
        if day.is_rest_day or day.is_completed or day.matched_session_id is not None:
            continue

        days_past_due = (today - day_date).days
        if days_past_due > grace_period_days:
            missed.append(
                MissedWorkout(
                    week_index=week_index,
                    day_index=day_index,
                    day=day,
                    day_date=day_date,
                    days_past_due=days_past_due,
                    already_marked=day.is_missed,
                )
            )

    logger.debug("Detected %d overdue slots (grace=%d days)", len(missed), grace_period_days)
    return missed
