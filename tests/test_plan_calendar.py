"""Tests for slot date arithmetic."""
from __future__ import annotations

from datetime import date

import pytest

from plan_sync.services.plan_calendar import (
    calculate_day_date,
    days_until_first_sunday,
    iter_plan_days,
    plan_end_date,
    week_date_range,
)

WEDNESDAY = date(2025, 1, 1)
SUNDAY = date(2025, 1, 5)
MONDAY = date(2025, 1, 6)


class TestDayDate:
    """Week 0 starts on the start date; later weeks run Monday to Sunday."""

    def test_week_zero_starts_on_start_date(self):
        assert calculate_day_date(WEDNESDAY, 0, 0) == WEDNESDAY
        assert calculate_day_date(WEDNESDAY, 0, 3) == date(2025, 1, 4)

    def test_week_one_starts_monday_after_first_sunday(self):
        assert calculate_day_date(WEDNESDAY, 1, 0) == date(2025, 1, 6)
        assert calculate_day_date(WEDNESDAY, 1, 6) == date(2025, 1, 12)
        assert calculate_day_date(WEDNESDAY, 2, 0) == date(2025, 1, 13)

    def test_monday_start_has_full_first_week(self):
        assert days_until_first_sunday(MONDAY) == 6
        assert calculate_day_date(MONDAY, 1, 0) == date(2025, 1, 13)

    def test_sunday_start_has_one_day_first_week(self):
        assert days_until_first_sunday(SUNDAY) == 0
        assert calculate_day_date(SUNDAY, 1, 0) == MONDAY

    def test_negative_indices_rejected(self):
        with pytest.raises(ValueError):
            calculate_day_date(WEDNESDAY, -1, 0)


class TestWeekRanges:
    def test_partial_first_week(self):
        assert week_date_range(WEDNESDAY, 0) == (WEDNESDAY, SUNDAY)

    def test_full_later_week(self):
        assert week_date_range(WEDNESDAY, 1) == (MONDAY, date(2025, 1, 12))

    def test_plan_end_date(self, two_week_plan):
        assert plan_end_date(two_week_plan) == date(2025, 1, 12)

    def test_iter_plan_days_in_schedule_order(self, two_week_plan):
        slots = [(w, d) for w, d, _, _ in iter_plan_days(two_week_plan)]
        assert slots[0] == (0, 0)
        assert slots[-1] == (1, 6)
        assert len(slots) == 11
