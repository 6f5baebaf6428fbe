"""SQLAlchemy ORM models for stored plans and imported sessions."""
from datetime import date, datetime

from sqlalchemy import JSON, Boolean, Date, DateTime, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from plan_sync.database import Base


class TrainingPlanRecord(Base):
    """Training plan with its structured schedule stored as one JSON document."""

    __tablename__ = "training_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Schedule with per-slot match state; may hold legacy pipe-delimited day strings
    plan_data: Mapped[dict] = mapped_column(JSON, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_training_plans_dates", "start_date", "end_date"),
    )


class RecordedSessionRecord(Base):
    """Activity imported from the tracking service."""

    __tablename__ = "recorded_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)  # Tracker's activity ID
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)

    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    start_date_local: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Distance & pace
    distance: Mapped[float | None] = mapped_column(Float, nullable=True)  # meters
    moving_time: Mapped[float | None] = mapped_column(Float, nullable=True)  # seconds
    average_speed: Mapped[float | None] = mapped_column(Float, nullable=True)  # m/s

    # Heart rate & cadence
    has_heartrate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    average_heartrate: Mapped[float | None] = mapped_column(Float, nullable=True)
    max_heartrate: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_cadence: Mapped[float | None] = mapped_column(Float, nullable=True)

    splits: Mapped[list | None] = mapped_column(JSON, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
