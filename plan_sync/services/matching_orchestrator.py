"""Matching pass: fetch sessions, score them against the active plan, apply or suggest.

High-confidence matches are written to the plan in a single persist at the
end of the pass. Medium-confidence matches are kept as suggestions until the
athlete accepts or rejects them. Only one pass per athlete may run at a time.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable, Iterable

from plan_sync.config import Settings, get_settings
from plan_sync.exceptions import PlanStoreError
from plan_sync.models.schemas import (
    MatchingRunResult,
    MatchType,
    MissedWorkout,
    PlanData,
    RecordedSession,
    SlotMatch,
    SuggestionResult,
    TrainingPlan,
)
from plan_sync.services.missed_workouts import detect_missed_workouts
from plan_sync.services.plan_calendar import iter_plan_days
from plan_sync.services.plan_store import PlanStore
from plan_sync.services.plan_updater import MatchData, SlotUpdate, batch_complete, complete_with_match, get_day
from plan_sync.services.single_flight import SingleFlightGuard
from plan_sync.services.workout_classifier import (
    classify_session,
    load_keyword_patterns,
    normalize_activity_kind,
)
from plan_sync.services.workout_matcher import match_session_to_plan


logger = logging.getLogger(__name__)

ACCEPTED_SUGGESTION_CONFIDENCE = 0.65


def matched_session_ids(plan_data: PlanData) -> set[int]:
    """Session ids already linked to a slot anywhere in the plan."""
    return {
        day.matched_session_id
        for _, _, day, _ in iter_plan_days(plan_data)
        if day.matched_session_id is not None
    }


class MatchingOrchestrator:
    """Runs matching passes against a PlanStore and tracks pending suggestions."""

    def __init__(
        self,
        store: PlanStore,
        guard: SingleFlightGuard | None = None,
        settings: Settings | None = None,
        keyword_patterns: dict[str, re.Pattern[str]] | None = None,
    ):
        settings = settings or get_settings()
        self.store = store
        self.guard = guard or SingleFlightGuard()
        self.athlete_id = settings.athlete_id
        self.tracked_kind = settings.tracked_activity_kind
        self.grace_period_days = settings.grace_period_days
        self.session_fetch_limit = settings.session_fetch_limit
        self.keyword_patterns = keyword_patterns or load_keyword_patterns(settings.keyword_config_path)
        self._suggestions: dict[int, dict[tuple[int, int], SlotMatch]] = {}

    # Matching pass
    async def match_new_sessions(
        self,
        plan_id: int | None = None,
        since_date: date | None = None,
        today: date | None = None,
        athlete_id: str | None = None,
    ) -> MatchingRunResult:
        """
        Run one matching pass.

        Args:
            plan_id: Plan to match against (defaults to the active plan)
            since_date: Only consider sessions starting on or after this date
            today: Reference date used to resolve the active plan
            athlete_id: Single-flight key (defaults to the configured athlete)

        Returns:
            MatchingRunResult; store failures are reported, not raised
        """
        key = athlete_id or self.athlete_id
        with self.guard.try_acquire(key) as acquired:
            if not acquired:
                return MatchingRunResult(
                    success=True,
                    plan_id=plan_id,
                    message="Matching pass already in progress",
                )
            try:
                return await self._run_pass(plan_id, since_date, today or date.today())
            except PlanStoreError as exc:
                logger.error("Matching pass failed: %s", exc)
                return MatchingRunResult(success=False, plan_id=plan_id, error=str(exc))

    async def _resolve_plan(self, plan_id: int | None, today: date) -> TrainingPlan | None:
        if plan_id is not None:
            return await self.store.get_plan(plan_id)
        return await self.store.get_active_plan(today)

    async def _run_pass(self, plan_id: int | None, since_date: date | None, today: date) -> MatchingRunResult:
        plan = await self._resolve_plan(plan_id, today)
        if plan is None:
            if plan_id is not None:
                return MatchingRunResult(success=False, plan_id=plan_id, error=f"Plan {plan_id} not found")
            logger.info("No active plan on %s - nothing to match", today)
            return MatchingRunResult(success=True, message="No active plan")

        sessions = await self.store.get_sessions(since_date=since_date, limit=self.session_fetch_limit)
        sessions = [
            s for s in sessions
            if plan.start_date <= s.session_date <= plan.end_date
            and (since_date is None or s.session_date >= since_date)
            and normalize_activity_kind(s.activity_type) == self.tracked_kind
        ]
        if not sessions:
            return MatchingRunResult(success=True, plan_id=plan.id, message="No new sessions in plan date range")

        try:
            baseline = await self.store.get_athlete_baseline()
        except PlanStoreError as exc:
            logger.warning("Athlete baseline unavailable, classifying without it: %s", exc)
            baseline = None

        held = matched_session_ids(plan.plan_data)
        claimed: set[tuple[int, int]] = set()
        updates: list[SlotUpdate] = []
        auto_matches: list[SlotMatch] = []
        suggestions: dict[tuple[int, int], SlotMatch] = {}

        for session in sorted(sessions, key=lambda s: (s.start_date, s.id)):
            if session.id in held:
                continue

            classification = classify_session(
                session,
                baseline,
                tracked_kind=self.tracked_kind,
                keyword_patterns=self.keyword_patterns,
            )
            match = match_session_to_plan(
                session,
                plan.plan_data,
                baseline,
                tracked_kind=self.tracked_kind,
                classification=classification,
                claimed=claimed,
            )
            if match is None:
                continue

            if match.band == "high":
                updates.append(
                    SlotUpdate(
                        week_index=match.week_index,
                        day_index=match.day_index,
                        match_data=MatchData(
                            matched_session_id=session.id,
                            match_type=MatchType.AUTO,
                            match_confidence=match.score.score,
                            match_score=match.score.score,
                            completion_date=session.session_date,
                        ),
                    )
                )
                claimed.add((match.week_index, match.day_index))
                held.add(session.id)
                auto_matches.append(match)
            else:
                slot = (match.week_index, match.day_index)
                current = suggestions.get(slot)
                if current is None or match.score.score > current.score.score:
                    suggestions[slot] = match

        working = batch_complete(plan.plan_data, updates)
        if updates:
            result = await self.store.persist_plan(plan.id, working)
            if not result.success:
                logger.error("Failed to persist %d auto matches for plan %s: %s", len(auto_matches), plan.id, result.error)
                return MatchingRunResult(
                    success=False,
                    plan_id=plan.id,
                    error=result.error or "Failed to persist plan",
                )

        pending = self._record_suggestions(plan.id, working, suggestions.values())

        logger.info(
            "Matching pass for plan %s: %d auto-matched, %d suggested",
            plan.id,
            len(auto_matches),
            len(pending),
        )
        return MatchingRunResult(
            success=True,
            matched=len(auto_matches),
            suggested=len(pending),
            plan_id=plan.id,
            message=f"Matched {len(auto_matches)} session(s), {len(pending)} suggestion(s)",
            auto_matches=auto_matches,
            suggestions=pending,
        )

    # Suggestions
    def _record_suggestions(self, plan_id: int, plan_data: PlanData, new: Iterable[SlotMatch]) -> list[SlotMatch]:
        """Merge this pass's suggestions into the pending set; one per slot, best score wins."""
        new = list(new)
        store = self._suggestions.setdefault(plan_id, {})
        for match in new:
            slot = (match.week_index, match.day_index)
            current = store.get(slot)
            if current is None or current.session.id == match.session.id or match.score.score > current.score.score:
                store[slot] = match

        self._prune(plan_id, plan_data)
        return [m for m in new if store.get((m.week_index, m.day_index)) is m]

    def _prune(self, plan_id: int, plan_data: PlanData) -> None:
        """Drop suggestions whose slot has been matched or whose session is already used."""
        held = matched_session_ids(plan_data)
        store = self._suggestions.get(plan_id, {})
        for slot, match in list(store.items()):
            week_index, day_index = slot
            try:
                day = get_day(plan_data, week_index, day_index)
            except IndexError:
                del store[slot]
                continue
            if day.matched_session_id is not None or match.session.id in held:
                del store[slot]

    def get_suggestions(self, plan_id: int) -> list[SlotMatch]:
        """Pending suggestions for a plan, ordered by slot date."""
        return sorted(self._suggestions.get(plan_id, {}).values(), key=lambda m: (m.day_date, m.week_index, m.day_index))

    async def accept_suggestion(
        self,
        plan_id: int,
        week_index: int,
        day_index: int,
        session: RecordedSession,
        athlete_id: str | None = None,
    ) -> SuggestionResult:
        """
        Confirm a suggested match and persist it.

        Accepted matches carry a fixed confidence regardless of their score.
        Accepting a slot that already holds the same session is a no-op.

        Raises:
            IndexOutOfRangeError: if the slot does not exist in the plan
        """
        base = {"plan_id": plan_id, "week_index": week_index, "day_index": day_index}
        key = athlete_id or self.athlete_id
        with self.guard.try_acquire(key) as acquired:
            if not acquired:
                return SuggestionResult(**base, success=False, error="Matching pass in progress, try again shortly")

            try:
                plan = await self.store.get_plan(plan_id)
            except PlanStoreError as exc:
                return SuggestionResult(**base, success=False, error=str(exc))
            if plan is None:
                return SuggestionResult(**base, success=False, error=f"Plan {plan_id} not found")

            day = get_day(plan.plan_data, week_index, day_index)
            if day.is_rest_day:
                self._discard(plan_id, week_index, day_index)
                return SuggestionResult(**base, success=False, error="Rest days cannot hold a session")
            if day.matched_session_id == session.id:
                self._discard(plan_id, week_index, day_index)
                return SuggestionResult(**base, success=True, message="Suggestion already applied")
            if day.matched_session_id is not None:
                return SuggestionResult(
                    **base,
                    success=False,
                    error=f"Slot already matched to session {day.matched_session_id}",
                )
            if session.id in matched_session_ids(plan.plan_data):
                return SuggestionResult(**base, success=False, error=f"Session {session.id} is already matched")

            suggested = self._suggestions.get(plan_id, {}).get((week_index, day_index))
            score = suggested.score.score if suggested and suggested.session.id == session.id else None

            updated = complete_with_match(
                plan.plan_data,
                week_index,
                day_index,
                MatchData(
                    matched_session_id=session.id,
                    match_type=MatchType.SUGGESTED_ACCEPTED,
                    match_confidence=ACCEPTED_SUGGESTION_CONFIDENCE,
                    match_score=score,
                    completion_date=session.session_date,
                ),
            )
            result = await self.store.persist_plan(plan_id, updated)
            if not result.success:
                return SuggestionResult(**base, success=False, error=result.error or "Failed to persist plan")

            self._discard(plan_id, week_index, day_index)
            self._prune(plan_id, updated)
            logger.info("Accepted suggestion: session %s -> plan %s week %d day %d", session.id, plan_id, week_index, day_index)
            return SuggestionResult(**base, success=True, message="Suggestion accepted")

    def reject_suggestion(self, plan_id: int, week_index: int, day_index: int) -> SuggestionResult:
        """Forget a suggestion; the slot itself is left untouched."""
        removed = self._discard(plan_id, week_index, day_index)
        return SuggestionResult(
            success=True,
            plan_id=plan_id,
            week_index=week_index,
            day_index=day_index,
            message="Suggestion rejected" if removed else "No pending suggestion for slot",
        )

    def _discard(self, plan_id: int, week_index: int, day_index: int) -> bool:
        return self._suggestions.get(plan_id, {}).pop((week_index, day_index), None) is not None

    # Plan reads and manual updates
    async def find_missed_workouts(
        self,
        plan_id: int | None = None,
        grace_days: int | None = None,
        today: date | None = None,
    ) -> list[MissedWorkout] | None:
        """Overdue slots of a plan, or None when the plan does not exist."""
        today = today or date.today()
        plan = await self._resolve_plan(plan_id, today)
        if plan is None:
            return None
        grace = self.grace_period_days if grace_days is None else grace_days
        return detect_missed_workouts(plan.plan_data, grace_period_days=grace, today=today)

    async def update_slot(
        self,
        plan_id: int,
        transition: Callable[[PlanData], PlanData],
    ) -> TrainingPlan | None:
        """
        Read a plan, apply one slot transition and persist the result.

        Returns:
            The updated plan, or None if the plan does not exist

        Raises:
            InvalidInputError: if the transition rejects its arguments
            PlanStoreError: if the plan could not be read or persisted
        """
        plan = await self.store.get_plan(plan_id)
        if plan is None:
            return None

        updated = transition(plan.plan_data)
        result = await self.store.persist_plan(plan_id, updated)
        if not result.success:
            raise PlanStoreError(result.error or f"Failed to persist plan {plan_id}")

        self._prune(plan_id, updated)
        return plan.model_copy(update={"plan_data": updated})
