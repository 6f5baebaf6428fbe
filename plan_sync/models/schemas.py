"""Pydantic models describing sessions, plans and matching payloads."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WorkoutType(str, Enum):
    """Semantic workout categories shared by classifier and scorer."""

    INTERVAL = "INTERVAL"
    TEMPO = "TEMPO"
    LONG_RUN = "LONG_RUN"
    EASY_RUN = "EASY_RUN"
    RECOVERY = "RECOVERY"
    RACE = "RACE"


class MatchType(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"
    SUGGESTED_ACCEPTED = "suggested_accepted"


class CompletionType(str, Enum):
    MATCHED = "matched"
    MANUAL_CHECKBOX = "manual_checkbox"


ConfidenceBand = Literal["high", "medium", "low"]


# Recorded sessions
class Split(BaseModel):
    """One per-kilometre split reported by the tracker."""

    model_config = ConfigDict(frozen=True)

    distance: float = Field(ge=0, description="Split distance in meters")
    moving_time: float = Field(ge=0, description="Split moving time in seconds")


class RecordedSession(BaseModel):
    """Immutable activity imported from the tracking service."""

    model_config = ConfigDict(frozen=True)

    id: int
    activity_type: str
    name: str | None = None
    start_date: datetime
    start_date_local: datetime | None = None
    distance: float | None = Field(None, ge=0, description="Meters")
    moving_time: float | None = Field(None, ge=0, description="Seconds")
    average_speed: float | None = Field(None, ge=0, description="Meters per second")
    has_heartrate: bool = False
    average_heartrate: float | None = None
    max_heartrate: float | None = None
    average_cadence: float | None = None
    splits: tuple[Split, ...] = ()

    @property
    def local_start(self) -> datetime:
        return self.start_date_local or self.start_date

    @property
    def session_date(self) -> date:
        """Calendar date the athlete ran on (local clock)."""
        return self.local_start.date()


class AthleteBaseline(BaseModel):
    """Reference scale derived from the athlete's session history."""

    model_config = ConfigDict(frozen=True)

    avg_pace: float | None = Field(None, gt=0, description="Average pace in min/km")
    longest_distance: float | None = Field(None, ge=0, description="Longest recent run in km")
    avg_distance: float | None = Field(None, ge=0, description="Average run distance in km")
    avg_runs_per_week: float | None = Field(None, ge=0)


# Training plans
class WorkoutSegment(BaseModel):
    """One block of a planned workout (warm-up, main set, interval, ...)."""

    model_config = ConfigDict(frozen=True)

    segment_type: str
    description: str = ""
    duration_value: float = Field(0, ge=0)
    duration_unit: Literal["min", "km", "m"] = "min"
    intensity_zone: int | None = Field(None, ge=1, le=5)


class PlanDay(BaseModel):
    """A single plan slot together with its match/completion state."""

    model_config = ConfigDict(frozen=True, extra="allow")

    day_name: str = ""
    day_index: int = 0
    is_rest_day: bool = False
    activity_category: str = "RUN"
    activity_title: str = ""
    total_estimated_duration_min: float | None = Field(None, ge=0)
    workout_structure: tuple[WorkoutSegment, ...] = ()

    is_completed: bool = False
    is_missed: bool = False
    matched_session_id: int | None = None
    matched_at: datetime | None = None
    match_type: MatchType | None = None
    match_confidence: float | None = Field(None, ge=0, le=1)
    match_score: float | None = Field(None, ge=0, le=1)
    completion_date: date | None = None
    completion_type: CompletionType | None = None
    missed_reason: str | None = None
    user_notes: str | None = None

    @model_validator(mode="after")
    def check_state(self) -> "PlanDay":
        if self.is_completed and self.is_missed:
            raise ValueError("A slot cannot be both completed and missed")
        if self.matched_session_id is not None:
            if not self.is_completed or self.match_type is None:
                raise ValueError("A matched slot must be completed and carry a match type")
        elif self.match_type is not None:
            raise ValueError("match_type requires matched_session_id")
        if self.missed_reason is not None and not self.is_missed:
            raise ValueError("missed_reason is only valid on a missed slot")
        return self


class PlanWeek(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    week_number: int | None = None
    phase_name: str | None = None
    days: tuple[PlanDay, ...] = ()


class PlanData(BaseModel):
    """Structured schedule owned by the plan generation subsystem."""

    model_config = ConfigDict(frozen=True, extra="allow")

    start_date: date
    schedule: tuple[PlanWeek, ...]


class TrainingPlan(BaseModel):
    """Stored plan record: identity, date range and structured schedule."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    start_date: date
    end_date: date
    is_archived: bool = False
    plan_data: PlanData

    def is_active_on(self, day: date) -> bool:
        return not self.is_archived and self.start_date <= day <= self.end_date


# Matching results
class DistanceRatios(BaseModel):
    model_config = ConfigDict(frozen=True)

    to_longest: float | None = None
    to_average: float | None = None


class KeywordSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    interval: bool = False
    tempo: bool = False
    long_run: bool = False
    easy: bool = False
    race: bool = False


class ClassificationSignals(BaseModel):
    model_config = ConfigDict(frozen=True)

    pace_variation: float | None = None
    relative_pace: float | None = None
    relative_distance: DistanceRatios | None = None
    duration_min: float = 0.0
    keywords: KeywordSignals = KeywordSignals()


class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: WorkoutType
    confidence: float = Field(ge=0, le=1)
    signals: ClassificationSignals


class ScoreComponents(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_score: float
    type_score: float
    duration_score: float
    intensity_score: float


class MatchScore(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: float = Field(ge=0, le=1)
    band: ConfidenceBand
    reasons: tuple[str, ...] = ()
    components: ScoreComponents
    planned_type: WorkoutType


class CandidateSlot(BaseModel):
    """Unmatched plan slot close enough to a session date to be considered."""

    model_config = ConfigDict(frozen=True)

    week_index: int
    day_index: int
    day: PlanDay
    day_date: date


class SlotMatch(BaseModel):
    """Best candidate for one session, with its score."""

    model_config = ConfigDict(frozen=True)

    session: RecordedSession
    classification: Classification
    week_index: int
    day_index: int
    day_date: date
    planned_title: str = ""
    score: MatchScore

    @property
    def band(self) -> ConfidenceBand:
        return self.score.band


class MissedWorkout(BaseModel):
    model_config = ConfigDict(frozen=True)

    week_index: int
    day_index: int
    day: PlanDay
    day_date: date
    days_past_due: int
    already_marked: bool = False


class PersistResult(BaseModel):
    success: bool
    error: str | None = None


class MatchingRunResult(BaseModel):
    """Outcome of a matching pass as reported to callers."""

    success: bool
    matched: int = 0
    suggested: int = 0
    plan_id: int | None = None
    message: str | None = None
    error: str | None = None
    auto_matches: list[SlotMatch] = []
    suggestions: list[SlotMatch] = []


class SuggestionResult(BaseModel):
    success: bool
    plan_id: int | None = None
    week_index: int | None = None
    day_index: int | None = None
    message: str | None = None
    error: str | None = None


# API payloads
class MatchingRunRequest(BaseModel):
    plan_id: int | None = None
    since_date: date | None = None


class AcceptSuggestionRequest(BaseModel):
    week_index: int = Field(ge=0)
    day_index: int = Field(ge=0)
    session: RecordedSession


class RejectSuggestionRequest(BaseModel):
    week_index: int = Field(ge=0)
    day_index: int = Field(ge=0)


class MarkMissedRequest(BaseModel):
    reason: str | None = None


class ManualMatchRequest(BaseModel):
    session_id: int
    completion_date: date | None = None


class CompleteRequest(BaseModel):
    note: str | None = None


class NoteRequest(BaseModel):
    note: str | None = None
