"""Tests for the SQLAlchemy-backed plan store."""
from __future__ import annotations

from datetime import date, datetime

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from plan_sync.database import Base
from plan_sync.exceptions import PlanStoreError
from plan_sync.models.database_models import RecordedSessionRecord, TrainingPlanRecord
from plan_sync.models.schemas import MatchType
from plan_sync.services.plan_codec import serialize_plan_data
from plan_sync.services.plan_store import SqlPlanStore
from plan_sync.services.plan_updater import manual_match


LEGACY_DOCUMENT = {
    "meta": {"start_date": "2025-01-01"},
    "schedule": [
        {
            "week_number": 1,
            "days": [
                "Wednesday|0|false|false|RUN|Tempo Run|50|MAIN:Tempo,50 min,Zone 4",
                "Thursday|1|true|false|REST|Rest day|0|",
            ],
        }
    ],
}


@pytest.fixture
def session_factory():
    """In-memory SQLite shared across the worker threads used by the store."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, future=True)

    with factory() as db:
        db.add_all([
            TrainingPlanRecord(
                id=1,
                name="Winter 10K",
                start_date=date(2025, 1, 1),
                end_date=date(2025, 2, 28),
                plan_data=LEGACY_DOCUMENT,
            ),
            TrainingPlanRecord(
                id=2,
                name="Archived",
                start_date=date(2025, 1, 1),
                end_date=date(2025, 3, 31),
                is_archived=True,
                plan_data=LEGACY_DOCUMENT,
            ),
            RecordedSessionRecord(
                id=101,
                activity_type="Run",
                name="Tempo",
                start_date=datetime(2025, 1, 1, 7, 0),
                distance=10000,
                moving_time=3000,
                average_speed=3.33,
                has_heartrate=True,
                average_heartrate=165,
                splits=[{"distance": 1000, "moving_time": 300}, {"distance": 1000, "moving_time": 302}],
            ),
            RecordedSessionRecord(
                id=102,
                activity_type="Run",
                name="Easy",
                start_date=datetime(2025, 1, 5, 8, 0),
                distance=8000,
                moving_time=2880,
                average_speed=2.78,
            ),
            RecordedSessionRecord(
                id=103,
                activity_type="Ride",
                name="Commute",
                start_date=datetime(2025, 1, 6, 8, 0),
                distance=15000,
                moving_time=2700,
                average_speed=5.5,
            ),
        ])
        db.commit()

    yield factory
    engine.dispose()


@pytest.fixture
def store(session_factory) -> SqlPlanStore:
    return SqlPlanStore(session_factory)


@pytest.mark.asyncio
async def test_active_plan_normalizes_legacy_days(store):
    plan = await store.get_active_plan(date(2025, 1, 15))

    assert plan.id == 1
    assert plan.plan_data.start_date == date(2025, 1, 1)
    first, rest = plan.plan_data.schedule[0].days
    assert first.activity_title == "Tempo Run"
    assert first.workout_structure[0].intensity_zone == 4
    assert rest.is_rest_day is True


@pytest.mark.asyncio
async def test_no_active_plan_outside_range(store):
    assert await store.get_active_plan(date(2025, 3, 15)) is None


@pytest.mark.asyncio
async def test_get_plan_missing(store):
    assert await store.get_plan(999) is None


@pytest.mark.asyncio
async def test_sessions_newest_first_with_filters(store):
    sessions = await store.get_sessions()
    assert [s.id for s in sessions] == [103, 102, 101]
    assert len(sessions[2].splits) == 2

    since = await store.get_sessions(since_date=date(2025, 1, 2))
    assert [s.id for s in since] == [103, 102]

    paged = await store.get_sessions(limit=1, offset=1)
    assert [s.id for s in paged] == [102]


@pytest.mark.asyncio
async def test_since_date_compares_local_start(session_factory):
    with session_factory() as db:
        db.add_all([
            # Local Jan 9 evening, Jan 10 in UTC
            RecordedSessionRecord(
                id=201,
                activity_type="Run",
                start_date=datetime(2025, 1, 10, 2, 0),
                start_date_local=datetime(2025, 1, 9, 21, 0),
            ),
            # Local Jan 10 just after midnight, still Jan 9 in UTC
            RecordedSessionRecord(
                id=202,
                activity_type="Run",
                start_date=datetime(2025, 1, 9, 23, 30),
                start_date_local=datetime(2025, 1, 10, 0, 30),
            ),
        ])
        db.commit()
    store = SqlPlanStore(session_factory)

    since = await store.get_sessions(since_date=date(2025, 1, 10))

    assert [s.id for s in since] == [202]


@pytest.mark.asyncio
async def test_baseline_from_history(store):
    baseline = await store.get_athlete_baseline()

    assert baseline.longest_distance == 10.0
    assert baseline.avg_distance == 9.0


@pytest.mark.asyncio
async def test_persist_plan_round_trips_match(store):
    plan = await store.get_plan(1)
    updated = manual_match(plan.plan_data, 0, 0, 101)

    result = await store.persist_plan(1, updated)
    reloaded = await store.get_plan(1)

    assert result.success is True
    assert reloaded.plan_data.schedule[0].days[0].matched_session_id == 101
    assert reloaded.plan_data.schedule[0].days[0].match_type == MatchType.MANUAL


@pytest.mark.asyncio
async def test_persist_unknown_plan(store, two_week_plan):
    result = await store.persist_plan(999, two_week_plan)

    assert result.success is False
    assert "not found" in result.error


@pytest.mark.asyncio
async def test_database_errors(session_factory, two_week_plan):
    store = SqlPlanStore(session_factory)
    with session_factory() as db:
        db.execute(text("DROP TABLE training_plans"))
        db.commit()

    with pytest.raises(PlanStoreError):
        await store.get_plan(1)

    result = await store.persist_plan(1, two_week_plan)
    assert result.success is False
    assert result.error


def test_serialized_plan_fits_json_column(session_factory, two_week_plan):
    with session_factory() as db:
        record = db.get(TrainingPlanRecord, 1)
        record.plan_data = serialize_plan_data(two_week_plan)
        db.commit()

    with session_factory() as db:
        assert db.get(TrainingPlanRecord, 1).plan_data["start_date"] == "2025-01-01"
