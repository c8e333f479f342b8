"""Scheduled task instance ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from slotwise.db.base import Base


class ScheduledTask(Base):
    __tablename__ = "scheduled_tasks"
    __table_args__ = (
        Index("ix_scheduled_tasks_user_date", "assigned_to_user_id", "scheduled_date"),
        Index("ix_scheduled_tasks_task_id", "task_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    task_id = Column(UUID(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    assigned_to_user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    scheduled_date = Column(Date, nullable=False)
    # Naive local datetimes, matching the scheduling engine.
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String(length=20), nullable=False, server_default=sa_text("'pending'"))
    reasoning = Column(Text, nullable=True)
    was_manually_moved = Column(Boolean, nullable=False, server_default=sa_text("false"))
    original_start_time = Column(DateTime, nullable=True)
    original_end_time = Column(DateTime, nullable=True)
    moved_at = Column(DateTime(timezone=True), nullable=True)
    move_reason = Column(Text, nullable=True)
    was_shortened = Column(Boolean, nullable=False, server_default=sa_text("false"))
    original_duration_min = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    task = relationship("Task", lazy="joined")
