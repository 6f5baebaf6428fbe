"""Shared service instances for the API and the scheduler."""
from __future__ import annotations

from functools import lru_cache

from plan_sync.config import get_settings
from plan_sync.services.matching_orchestrator import MatchingOrchestrator
from plan_sync.services.plan_store import SqlPlanStore
from plan_sync.services.single_flight import SingleFlightGuard


@lru_cache()
def get_plan_store() -> SqlPlanStore:
    from plan_sync.database import SessionLocal

    settings = get_settings()
    return SqlPlanStore(SessionLocal, tracked_kind=settings.tracked_activity_kind)


@lru_cache()
def get_orchestrator() -> MatchingOrchestrator:
    """Process-wide orchestrator so suggestions and the single-flight guard are shared."""
    return MatchingOrchestrator(get_plan_store(), guard=SingleFlightGuard(), settings=get_settings())
