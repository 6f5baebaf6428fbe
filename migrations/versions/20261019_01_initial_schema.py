"""Initial plan sync schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20261019_01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "training_plans",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("plan_data", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index(
        "ix_training_plans_dates",
        "training_plans",
        ["start_date", "end_date"],
        unique=False,
    )

    op.create_table(
        "recorded_sessions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("activity_type", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("start_date_local", sa.DateTime(), nullable=True),
        sa.Column("distance", sa.Float(), nullable=True),
        sa.Column("moving_time", sa.Float(), nullable=True),
        sa.Column("average_speed", sa.Float(), nullable=True),
        sa.Column("has_heartrate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("average_heartrate", sa.Float(), nullable=True),
        sa.Column("max_heartrate", sa.Float(), nullable=True),
        sa.Column("average_cadence", sa.Float(), nullable=True),
        sa.Column("splits", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
    )
    op.create_index(
        "ix_recorded_sessions_start_date",
        "recorded_sessions",
        ["start_date"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_recorded_sessions_start_date", table_name="recorded_sessions")
    op.drop_table("recorded_sessions")
    op.drop_index("ix_training_plans_dates", table_name="training_plans")
    op.drop_table("training_plans")
