"""API endpoints for running matching passes and handling suggestions."""
from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from plan_sync.dependencies import get_orchestrator
from plan_sync.exceptions import InvalidInputError
from plan_sync.models.schemas import (
    AcceptSuggestionRequest,
    MatchingRunRequest,
    MatchingRunResult,
    RejectSuggestionRequest,
    SlotMatch,
    SuggestionResult,
)
from plan_sync.services.matching_orchestrator import MatchingOrchestrator


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/matching", tags=["matching"])

Orchestrator = Annotated[MatchingOrchestrator, Depends(get_orchestrator)]


@router.post("/run", response_model=MatchingRunResult)
async def run_matching(orchestrator: Orchestrator, request: MatchingRunRequest | None = None):
    """
    Run a matching pass against the active plan (or ``plan_id``).

    Failures to read or persist are reported in the body with
    ``success: false`` so callers can re-run the pass.
    """
    request = request or MatchingRunRequest()
    try:
        result = await orchestrator.match_new_sessions(
            plan_id=request.plan_id,
            since_date=request.since_date,
        )
        logger.info(
            "Matching run: success=%s matched=%d suggested=%d plan=%s",
            result.success,
            result.matched,
            result.suggested,
            result.plan_id,
        )
        return result

    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Matching run failed")
        raise HTTPException(status_code=500, detail=f"Matching run failed: {str(e)}")


@router.get("/suggestions/{plan_id}", response_model=list[SlotMatch])
async def list_suggestions(plan_id: int, orchestrator: Orchestrator):
    return orchestrator.get_suggestions(plan_id)


@router.post("/suggestions/{plan_id}/accept", response_model=SuggestionResult)
async def accept_suggestion(plan_id: int, body: AcceptSuggestionRequest, orchestrator: Orchestrator):
    """Confirm a suggested match; the slot is completed with a fixed confidence."""
    try:
        return await orchestrator.accept_suggestion(
            plan_id,
            body.week_index,
            body.day_index,
            body.session,
        )
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.exception("Failed to accept suggestion for plan %s", plan_id)
        raise HTTPException(status_code=500, detail=f"Failed to accept suggestion: {str(e)}")


@router.post("/suggestions/{plan_id}/reject", response_model=SuggestionResult)
async def reject_suggestion(plan_id: int, body: RejectSuggestionRequest, orchestrator: Orchestrator):
    """Drop a suggestion without touching the slot."""
    return orchestrator.reject_suggestion(plan_id, body.week_index, body.day_index)
