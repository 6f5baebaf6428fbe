"""Store adapters feeding plans and sessions into the matching pass."""
from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime
from typing import Any, Callable, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from plan_sync.exceptions import PlanStoreError
from plan_sync.models.database_models import RecordedSessionRecord, TrainingPlanRecord
from plan_sync.models.schemas import (
    AthleteBaseline,
    PersistResult,
    PlanData,
    RecordedSession,
    Split,
    TrainingPlan,
)
from plan_sync.services.athlete_baseline import compute_athlete_baseline
from plan_sync.services.plan_codec import normalize_plan_document, serialize_plan_data


logger = logging.getLogger(__name__)

BASELINE_HISTORY_LIMIT = 500


class PlanStore(Protocol):
    """Asynchronous collaborator the orchestrator reads from and writes to."""

    async def get_active_plan(self, today: date) -> TrainingPlan | None: ...

    async def get_plan(self, plan_id: int) -> TrainingPlan | None: ...

    async def get_sessions(
        self,
        since_date: date | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[RecordedSession]: ...

    async def get_athlete_baseline(self) -> AthleteBaseline | None: ...

    async def persist_plan(self, plan_id: int, plan_data: PlanData) -> PersistResult: ...


def plan_from_record(record: TrainingPlanRecord) -> TrainingPlan:
    return TrainingPlan(
        id=record.id,
        name=record.name,
        start_date=record.start_date,
        end_date=record.end_date,
        is_archived=record.is_archived,
        plan_data=normalize_plan_document(record.plan_data, fallback_start=record.start_date),
    )


def session_from_record(record: RecordedSessionRecord) -> RecordedSession:
    return RecordedSession(
        id=record.id,
        activity_type=record.activity_type,
        name=record.name,
        start_date=record.start_date,
        start_date_local=record.start_date_local,
        distance=record.distance,
        moving_time=record.moving_time,
        average_speed=record.average_speed,
        has_heartrate=record.has_heartrate,
        average_heartrate=record.average_heartrate,
        max_heartrate=record.max_heartrate,
        average_cadence=record.average_cadence,
        splits=tuple(Split(**split) for split in (record.splits or [])),
    )


class SqlPlanStore:
    """PlanStore over SQLAlchemy; blocking queries run in a worker thread."""

    def __init__(
        self,
        session_factory: sessionmaker | Callable[[], Session],
        tracked_kind: str = "run",
    ):
        self._session_factory = session_factory
        self._tracked_kind = tracked_kind

    async def _run(self, action: str, fn: Callable[[Session], Any]) -> Any:
        def work() -> Any:
            with self._session_factory() as db:
                return fn(db)

        try:
            return await asyncio.to_thread(work)
        except SQLAlchemyError as exc:
            logger.exception("Store failure while trying to %s", action)
            raise PlanStoreError(f"Failed to {action}: {exc}") from exc

    async def get_active_plan(self, today: date) -> TrainingPlan | None:
        def query(db: Session) -> TrainingPlan | None:
            stmt = (
                select(TrainingPlanRecord)
                .where(
                    TrainingPlanRecord.is_archived.is_(False),
                    TrainingPlanRecord.start_date <= today,
                    TrainingPlanRecord.end_date >= today,
                )
                .order_by(TrainingPlanRecord.start_date.desc(), TrainingPlanRecord.id.desc())
                .limit(1)
            )
            record = db.execute(stmt).scalar_one_or_none()
            return plan_from_record(record) if record else None

        return await self._run("fetch active plan", query)

    async def get_plan(self, plan_id: int) -> TrainingPlan | None:
        def query(db: Session) -> TrainingPlan | None:
            record = db.get(TrainingPlanRecord, plan_id)
            return plan_from_record(record) if record else None

        return await self._run(f"fetch plan {plan_id}", query)

    async def get_sessions(
        self,
        since_date: date | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[RecordedSession]:
        def query(db: Session) -> list[RecordedSession]:
            stmt = select(RecordedSessionRecord)
            if since_date is not None:
                local_start = func.coalesce(RecordedSessionRecord.start_date_local, RecordedSessionRecord.start_date)
                stmt = stmt.where(local_start >= datetime.combine(since_date, datetime.min.time()))
            stmt = stmt.order_by(RecordedSessionRecord.start_date.desc()).limit(limit).offset(offset)
            return [session_from_record(r) for r in db.execute(stmt).scalars()]

        return await self._run("fetch sessions", query)

    async def get_athlete_baseline(self) -> AthleteBaseline | None:
        sessions = await self.get_sessions(limit=BASELINE_HISTORY_LIMIT)
        return compute_athlete_baseline(sessions, tracked_kind=self._tracked_kind)

    async def persist_plan(self, plan_id: int, plan_data: PlanData) -> PersistResult:
        document = serialize_plan_data(plan_data)

        def write(db: Session) -> PersistResult:
            record = db.get(TrainingPlanRecord, plan_id)
            if record is None:
                return PersistResult(success=False, error=f"Plan {plan_id} not found")
            record.plan_data = document
            record.updated_at = datetime.utcnow()
            db.commit()
            return PersistResult(success=True)

        try:
            return await self._run(f"persist plan {plan_id}", write)
        except PlanStoreError as exc:
            return PersistResult(success=False, error=str(exc))


class InMemoryPlanStore:
    """Dictionary-backed PlanStore for tests and embedding."""

    def __init__(
        self,
        plans: list[TrainingPlan] | None = None,
        sessions: list[RecordedSession] | None = None,
        baseline: AthleteBaseline | None = None,
    ):
        self.plans: dict[int, TrainingPlan] = {plan.id: plan for plan in plans or []}
        self.sessions: list[RecordedSession] = list(sessions or [])
        self.baseline = baseline
        self.persist_calls = 0
        self.fail_persist = False

    async def get_active_plan(self, today: date) -> TrainingPlan | None:
        active = [plan for plan in self.plans.values() if plan.is_active_on(today)]
        if not active:
            return None
        return max(active, key=lambda plan: (plan.start_date, plan.id))

    async def get_plan(self, plan_id: int) -> TrainingPlan | None:
        return self.plans.get(plan_id)

    async def get_sessions(
        self,
        since_date: date | None = None,
        limit: int = 200,
        offset: int = 0,
    ) -> list[RecordedSession]:
        sessions = [
            s for s in self.sessions
            if since_date is None or s.session_date >= since_date
        ]
        sessions.sort(key=lambda s: s.start_date, reverse=True)
        return sessions[offset:offset + limit]

    async def get_athlete_baseline(self) -> AthleteBaseline | None:
        return self.baseline

    async def persist_plan(self, plan_id: int, plan_data: PlanData) -> PersistResult:
        self.persist_calls += 1
        if self.fail_persist:
            return PersistResult(success=False, error="Simulated persistence failure")
        plan = self.plans.get(plan_id)
        if plan is None:
            return PersistResult(success=False, error=f"Plan {plan_id} not found")
        self.plans[plan_id] = plan.model_copy(update={"plan_data": plan_data})
        return PersistResult(success=True)
