"""API endpoints for reading plans and updating individual slots."""
from __future__ import annotations

import logging
from datetime import date
from typing import Annotated, Any, Callable

from fastapi import APIRouter, Depends, HTTPException, Query

from plan_sync.dependencies import get_orchestrator
from plan_sync.exceptions import InvalidInputError, PlanStoreError
from plan_sync.models.schemas import (
    CompleteRequest,
    ManualMatchRequest,
    MarkMissedRequest,
    MissedWorkout,
    NoteRequest,
    PlanData,
    TrainingPlan,
)
from plan_sync.services import plan_updater
from plan_sync.services.compliance import analyze_plan_compliance
from plan_sync.services.matching_orchestrator import MatchingOrchestrator


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plans", tags=["plans"])

Orchestrator = Annotated[MatchingOrchestrator, Depends(get_orchestrator)]


async def _load_plan(orchestrator: MatchingOrchestrator, plan_id: int) -> TrainingPlan:
    try:
        plan = await orchestrator.store.get_plan(plan_id)
    except PlanStoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if plan is None:
        raise HTTPException(status_code=404, detail=f"Training plan {plan_id} not found")
    return plan


@router.get("/active", response_model=TrainingPlan)
async def get_active_plan(orchestrator: Orchestrator):
    """Return the plan whose date range contains today."""
    try:
        plan = await orchestrator.store.get_active_plan(date.today())
    except PlanStoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if plan is None:
        raise HTTPException(status_code=404, detail="No active training plan found")
    return plan


@router.get("/{plan_id}", response_model=TrainingPlan)
async def get_plan(plan_id: int, orchestrator: Orchestrator):
    try:
        return await _load_plan(orchestrator, plan_id)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{plan_id}/missed", response_model=list[MissedWorkout])
async def get_missed_workouts(
    plan_id: int,
    orchestrator: Orchestrator,
    grace_days: Annotated[int | None, Query(ge=0)] = None,
):
    """
    List overdue, unresolved workouts.

    Args:
        grace_days: Days after a slot's date before it counts as missed
            (defaults to the configured grace period)
    """
    try:
        missed = await orchestrator.find_missed_workouts(plan_id=plan_id, grace_days=grace_days)
    except PlanStoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if missed is None:
        raise HTTPException(status_code=404, detail=f"Training plan {plan_id} not found")
    return missed


@router.get("/{plan_id}/compliance")
async def get_plan_compliance(plan_id: int, orchestrator: Orchestrator) -> dict[str, Any]:
    """Weekly compliance rates with trends and warnings."""
    try:
        plan = await _load_plan(orchestrator, plan_id)
        return analyze_plan_compliance(plan.plan_data, date.today())
    except HTTPException:
        raise
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Failed to analyze compliance for plan %s", plan_id)
        raise HTTPException(status_code=500, detail=f"Failed to analyze compliance: {str(e)}")


async def _apply(
    orchestrator: MatchingOrchestrator,
    plan_id: int,
    action: str,
    transition: Callable[[PlanData], PlanData],
) -> TrainingPlan:
    try:
        plan = await orchestrator.update_slot(plan_id, transition)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PlanStoreError as e:
        logger.error("Failed to persist %s on plan %s: %s", action, plan_id, e)
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.exception("Failed to apply %s on plan %s", action, plan_id)
        raise HTTPException(status_code=500, detail=f"Failed to apply {action}: {str(e)}")

    if plan is None:
        raise HTTPException(status_code=404, detail=f"Training plan {plan_id} not found")

    logger.info("Applied %s on plan %s", action, plan_id)
    return plan


@router.post("/{plan_id}/weeks/{week_index}/days/{day_index}/missed", response_model=TrainingPlan)
async def mark_missed(
    plan_id: int,
    week_index: int,
    day_index: int,
    orchestrator: Orchestrator,
    body: MarkMissedRequest | None = None,
):
    reason = body.reason if body else None
    return await _apply(
        orchestrator,
        plan_id,
        "mark-missed",
        lambda plan: plan_updater.mark_missed(plan, week_index, day_index, reason),
    )


@router.post("/{plan_id}/weeks/{week_index}/days/{day_index}/clear-missed", response_model=TrainingPlan)
async def clear_missed(plan_id: int, week_index: int, day_index: int, orchestrator: Orchestrator):
    return await _apply(
        orchestrator,
        plan_id,
        "clear-missed",
        lambda plan: plan_updater.clear_missed(plan, week_index, day_index),
    )


@router.post("/{plan_id}/weeks/{week_index}/days/{day_index}/unmatch", response_model=TrainingPlan)
async def unmatch(plan_id: int, week_index: int, day_index: int, orchestrator: Orchestrator):
    """Return a slot to the unresolved state."""
    return await _apply(
        orchestrator,
        plan_id,
        "unmatch",
        lambda plan: plan_updater.unmatch(plan, week_index, day_index),
    )


@router.post("/{plan_id}/weeks/{week_index}/days/{day_index}/manual-match", response_model=TrainingPlan)
async def manual_match(
    plan_id: int,
    week_index: int,
    day_index: int,
    body: ManualMatchRequest,
    orchestrator: Orchestrator,
):
    """Link a session to a slot by hand (confidence 1.0)."""
    return await _apply(
        orchestrator,
        plan_id,
        "manual-match",
        lambda plan: plan_updater.manual_match(
            plan, week_index, day_index, body.session_id, body.completion_date
        ),
    )


@router.post("/{plan_id}/weeks/{week_index}/days/{day_index}/complete", response_model=TrainingPlan)
async def complete_without_match(
    plan_id: int,
    week_index: int,
    day_index: int,
    orchestrator: Orchestrator,
    body: CompleteRequest | None = None,
):
    note = body.note if body else None
    return await _apply(
        orchestrator,
        plan_id,
        "complete",
        lambda plan: plan_updater.complete_without_match(plan, week_index, day_index, note=note),
    )


@router.post("/{plan_id}/weeks/{week_index}/days/{day_index}/note", response_model=TrainingPlan)
async def add_note(
    plan_id: int,
    week_index: int,
    day_index: int,
    body: NoteRequest,
    orchestrator: Orchestrator,
):
    return await _apply(
        orchestrator,
        plan_id,
        "note",
        lambda plan: plan_updater.add_note(plan, week_index, day_index, body.note),
    )
