"""Move conflict audit record ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, String, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from slotwise.db.base import Base


class ScheduleConflict(Base):
    """Append-only record of what a manual move did to its same-day siblings."""

    __tablename__ = "schedule_conflicts"
    __table_args__ = (
        Index("ix_schedule_conflicts_user_week", "user_id", "week_of"),
        Index("ix_schedule_conflicts_moved", "moved_scheduled_task_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    week_of = Column(Date, nullable=False)
    moved_scheduled_task_id = Column(
        UUID(as_uuid=True),
        ForeignKey("scheduled_tasks.id", ondelete="CASCADE"),
        nullable=False,
    )
    moved_task_id = Column(UUID(as_uuid=True), nullable=False)
    affected_scheduled_task_id = Column(
        UUID(as_uuid=True),
        ForeignKey("scheduled_tasks.id", ondelete="SET NULL"),
        nullable=True,
    )
    affected_task_id = Column(UUID(as_uuid=True), nullable=True)
    original_start = Column(DateTime, nullable=False)
    original_end = Column(DateTime, nullable=False)
    new_start = Column(DateTime, nullable=False)
    new_end = Column(DateTime, nullable=False)
    # "shortened", "displaced", or "moved" for the moved instance's own record.
    resolution = Column(String(length=20), nullable=False)
    affected_new_start = Column(DateTime, nullable=True)
    affected_new_end = Column(DateTime, nullable=True)
    user_accepted = Column(Boolean, nullable=False, server_default=sa_text("false"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
