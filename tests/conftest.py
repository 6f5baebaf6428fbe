"""Pytest configuration for global fixtures and logging setup."""
from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient

os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL") or "sqlite:///:memory:"
os.environ["LOG_LEVEL"] = os.environ.get("LOG_LEVEL") or "DEBUG"
os.environ["ATHLETE_ID"] = "test-athlete"

from plan_sync.logging_config import configure_logging

configure_logging()

from plan_sync.config import get_settings
from plan_sync.dependencies import get_orchestrator
from plan_sync.main import app
from plan_sync.models.schemas import AthleteBaseline, PlanData
from plan_sync.services.matching_orchestrator import MatchingOrchestrator
from plan_sync.services.plan_store import InMemoryPlanStore

from builders import build_day, build_plan, build_plan_data


@pytest.fixture
def baseline() -> AthleteBaseline:
    return AthleteBaseline(avg_pace=5.5, longest_distance=21.0, avg_distance=8.0, avg_runs_per_week=4.0)


@pytest.fixture
def two_week_plan() -> PlanData:
    """Week 0: Wed tempo, Thu rest, Fri easy, Sat long. Week 1: Mon intervals, Wed easy, Sun long."""
    return build_plan_data([
        [
            build_day(0, "Tempo Run", duration=50, zones=(4,)),
            build_day(1, rest=True),
            build_day(2, "Easy Run", duration=45, zones=(2,)),
            build_day(3, "Long Run", duration=100, zones=(2,)),
        ],
        [
            build_day(0, "Track Intervals", duration=60, zones=(5,), segment_type="INTERVAL"),
            build_day(1, rest=True),
            build_day(2, "Easy Run", duration=40, zones=(2,)),
            build_day(3, rest=True),
            build_day(4, "Recovery Jog", duration=30, zones=(1,)),
            build_day(5, rest=True),
            build_day(6, "Long Run", duration=110, zones=(2,)),
        ],
    ])


@pytest.fixture
def memory_store(two_week_plan: PlanData, baseline: AthleteBaseline) -> InMemoryPlanStore:
    return InMemoryPlanStore(plans=[build_plan(two_week_plan)], baseline=baseline)


@pytest.fixture
def orchestrator(memory_store: InMemoryPlanStore) -> MatchingOrchestrator:
    return MatchingOrchestrator(memory_store, settings=get_settings())


@pytest.fixture
def test_client(orchestrator: MatchingOrchestrator) -> TestClient:
    """Provide a FastAPI test client backed by an in-memory plan store."""

    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
