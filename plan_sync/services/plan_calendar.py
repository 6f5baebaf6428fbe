"""Calendar arithmetic for plan slots.

Slot dates are never stored; they are derived from the plan start date here.
Week 0 may be partial: it starts on the start date and runs to the first
Sunday on or after it. Every later week is a full Monday-Sunday week.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator

from plan_sync.models.schemas import PlanData, PlanDay


def days_until_first_sunday(start_date: date) -> int:
    """Days from the start date to the Sunday that closes week 0 (0 if it is a Sunday)."""
    # date.weekday(): Monday=0 ... Sunday=6
    return (6 - start_date.weekday()) % 7


def calculate_day_date(start_date: date, week_index: int, day_index: int) -> date:
    """
    Return the calendar date of slot (week_index, day_index).

    Args:
        start_date: Plan start date
        week_index: 0-based week index
        day_index: 0-based day index within the week

    Returns:
        Calendar date of the slot

    Example:
        >>> calculate_day_date(date(2025, 1, 1), 1, 0)  # Wednesday start
        datetime.date(2025, 1, 6)
    """
    if week_index < 0 or day_index < 0:
        raise ValueError("week_index and day_index must be non-negative")

    if week_index == 0:
        return start_date + timedelta(days=day_index)

    offset = days_until_first_sunday(start_date) + 1 + (week_index - 1) * 7 + day_index
    return start_date + timedelta(days=offset)


def week_date_range(start_date: date, week_index: int) -> tuple[date, date]:
    """First and last calendar date of a plan week."""
    if week_index == 0:
        return start_date, start_date + timedelta(days=days_until_first_sunday(start_date))

    week_start = calculate_day_date(start_date, week_index, 0)
    return week_start, week_start + timedelta(days=6)


def iter_plan_days(plan_data: PlanData) -> Iterator[tuple[int, int, PlanDay, date]]:
    """Yield (week_index, day_index, day, day_date) for every slot in schedule order."""
    for week_index, week in enumerate(plan_data.schedule):
        for day_index, day in enumerate(week.days):
            yield week_index, day_index, day, calculate_day_date(plan_data.start_date, week_index, day_index)


def plan_end_date(plan_data: PlanData) -> date:
    """Date of the last slot in the schedule (start date for an empty schedule)."""
    last = plan_data.start_date
    for _, _, _, day_date in iter_plan_days(plan_data):
        last = max(last, day_date)
    return last
