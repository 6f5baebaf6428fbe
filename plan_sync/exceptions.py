"""Error types raised by the matching core and its store adapters."""
from __future__ import annotations


class PlanSyncError(Exception):
    """Base class for plan sync errors."""


class InvalidInputError(PlanSyncError, ValueError):
    """Caller supplied data the core cannot act on."""


class IndexOutOfRangeError(InvalidInputError, IndexError):
    """Week or day index does not exist in the plan being mutated."""

    def __init__(self, week_index: int, day_index: int | None = None):
        self.week_index = week_index
        self.day_index = day_index
        if day_index is None:
            message = f"Week {week_index} does not exist in plan"
        else:
            message = f"Day {day_index} does not exist in week {week_index}"
        super().__init__(message)


class InvalidPlanStructureError(InvalidInputError):
    """Plan document is missing its schedule or is otherwise malformed."""


class PlanStoreError(PlanSyncError):
    """Fetching from or writing to the external store failed."""
