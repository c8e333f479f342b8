"""Initial Slotwise schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "202603020900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("family_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("country", sa.String(length=8), nullable=False, server_default=sa.text("'UK'")),
        sa.Column("available_time_start", sa.Integer(), nullable=False, server_default=sa.text("6")),
        sa.Column("available_time_end", sa.Integer(), nullable=False, server_default=sa.text("22")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("family_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False, server_default=sa.text("'goal'")),
        sa.Column("duration_min", sa.Integer(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("3")),
        sa.Column("scheduling_mode", sa.String(length=20), nullable=False, server_default=sa.text("'flexible'")),
        sa.Column("fixed_days", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("fixed_time", sa.Time(), nullable=True),
        sa.Column("frequency", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("frequency_period", sa.String(length=10), nullable=False, server_default=sa.text("'week'")),
        sa.Column("required_days", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("preferred_time_start", sa.Time(), nullable=True),
        sa.Column("preferred_time_end", sa.Time(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("duration_min >= 15", name="ck_tasks_min_duration"),
    )
    op.create_index("ix_tasks_user_id", "tasks", ["user_id"], unique=False)
    op.create_index("ix_tasks_family_id", "tasks", ["family_id"], unique=False)
    op.create_index("ix_tasks_is_active", "tasks", ["is_active"], unique=False)

    op.create_table(
        "scheduled_tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("task_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("assigned_to_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.DateTime(), nullable=False),
        sa.Column("end_time", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("was_manually_moved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("original_start_time", sa.DateTime(), nullable=True),
        sa.Column("original_end_time", sa.DateTime(), nullable=True),
        sa.Column("moved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("move_reason", sa.Text(), nullable=True),
        sa.Column("was_shortened", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("original_duration_min", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["assigned_to_user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_scheduled_tasks_user_date",
        "scheduled_tasks",
        ["assigned_to_user_id", "scheduled_date"],
        unique=False,
    )
    op.create_index("ix_scheduled_tasks_task_id", "scheduled_tasks", ["task_id"], unique=False)

    op.create_table(
        "schedule_conflicts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("week_of", sa.Date(), nullable=False),
        sa.Column("moved_scheduled_task_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("moved_task_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("affected_scheduled_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("affected_task_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("original_start", sa.DateTime(), nullable=False),
        sa.Column("original_end", sa.DateTime(), nullable=False),
        sa.Column("new_start", sa.DateTime(), nullable=False),
        sa.Column("new_end", sa.DateTime(), nullable=False),
        sa.Column("resolution", sa.String(length=20), nullable=False),
        sa.Column("affected_new_start", sa.DateTime(), nullable=True),
        sa.Column("affected_new_end", sa.DateTime(), nullable=True),
        sa.Column("user_accepted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["moved_scheduled_task_id"], ["scheduled_tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["affected_scheduled_task_id"], ["scheduled_tasks.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_schedule_conflicts_user_week", "schedule_conflicts", ["user_id", "week_of"], unique=False)
    op.create_index("ix_schedule_conflicts_moved", "schedule_conflicts", ["moved_scheduled_task_id"], unique=False)

    op.create_table(
        "schedule_overlaps",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scheduled_task_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("overlap_minutes", sa.Integer(), nullable=False),
        sa.Column("week_of", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["scheduled_task_id"], ["scheduled_tasks.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_schedule_overlaps_user_week", "schedule_overlaps", ["user_id", "week_of"], unique=False)

    op.create_table(
        "user_work_schedules",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.String(length=10), nullable=False),
        sa.Column("is_working", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("location", sa.String(length=10), nullable=False, server_default=sa.text("'home'")),
        sa.Column("commute_to_min", sa.Integer(), nullable=True),
        sa.Column("commute_from_min", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("user_id", "day_of_week", name="uq_user_work_schedules_user_day"),
    )

    op.create_table(
        "user_vacations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_user_vacations_user_id", "user_vacations", ["user_id"], unique=False)

    op.create_table(
        "learned_preferences",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", sa.String(length=40), nullable=False),
        sa.Column(
            "value",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("confidence", sa.Float(), nullable=False, server_default=sa.text("0.5")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_learned_preferences_user_id", "learned_preferences", ["user_id"], unique=False)

    op.create_table(
        "agent_actions_log",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column(
            "action_payload",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("week_of", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_agent_actions_log_user_id", "agent_actions_log", ["user_id"], unique=False)
    op.create_index("ix_agent_actions_log_user_week", "agent_actions_log", ["user_id", "week_of"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_agent_actions_log_user_week", table_name="agent_actions_log")
    op.drop_index("ix_agent_actions_log_user_id", table_name="agent_actions_log")
    op.drop_table("agent_actions_log")
    op.drop_index("ix_learned_preferences_user_id", table_name="learned_preferences")
    op.drop_table("learned_preferences")
    op.drop_index("ix_user_vacations_user_id", table_name="user_vacations")
    op.drop_table("user_vacations")
    op.drop_table("user_work_schedules")
    op.drop_index("ix_schedule_overlaps_user_week", table_name="schedule_overlaps")
    op.drop_table("schedule_overlaps")
    op.drop_index("ix_schedule_conflicts_moved", table_name="schedule_conflicts")
    op.drop_index("ix_schedule_conflicts_user_week", table_name="schedule_conflicts")
    op.drop_table("schedule_conflicts")
    op.drop_index("ix_scheduled_tasks_task_id", table_name="scheduled_tasks")
    op.drop_index("ix_scheduled_tasks_user_date", table_name="scheduled_tasks")
    op.drop_table("scheduled_tasks")
    op.drop_index("ix_tasks_is_active", table_name="tasks")
    op.drop_index("ix_tasks_family_id", table_name="tasks")
    op.drop_index("ix_tasks_user_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("users")
