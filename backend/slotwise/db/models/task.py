"""Task definition ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, Time, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from slotwise.db.base import Base
from slotwise.db.types import WeekdayList


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_user_id", "user_id"),
        Index("ix_tasks_family_id", "family_id"),
        Index("ix_tasks_is_active", "is_active"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    family_id = Column(UUID(as_uuid=True), nullable=True)
    name = Column(Text, nullable=False)
    category = Column(String(length=20), nullable=False, server_default=sa_text("'goal'"))
    duration_min = Column(Integer, nullable=False)
    priority = Column(Integer, nullable=False, server_default=sa_text("3"))
    scheduling_mode = Column(String(length=20), nullable=False, server_default=sa_text("'flexible'"))
    # Lowercase weekday names, e.g. ["monday", "thursday"].
    fixed_days = Column(WeekdayList, nullable=True)
    fixed_time = Column(Time, nullable=True)
    frequency = Column(Integer, nullable=False, server_default=sa_text("1"))
    frequency_period = Column(String(length=10), nullable=False, server_default=sa_text("'week'"))
    required_days = Column(WeekdayList, nullable=True)
    preferred_time_start = Column(Time, nullable=True)
    preferred_time_end = Column(Time, nullable=True)
    is_active = Column(Boolean, nullable=False, server_default=sa_text("true"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
