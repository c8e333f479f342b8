"""Accepted overlap ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, func
from sqlalchemy.dialects.postgresql import UUID

from slotwise.db.base import Base


class ScheduleOverlap(Base):
    __tablename__ = "schedule_overlaps"
    __table_args__ = (Index("ix_schedule_overlaps_user_week", "user_id", "week_of"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    scheduled_task_id = Column(
        UUID(as_uuid=True),
        ForeignKey("scheduled_tasks.id", ondelete="CASCADE"),
        nullable=False,
    )
    overlap_minutes = Column(Integer, nullable=False)
    week_of = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
