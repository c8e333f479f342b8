"""Working pattern ORM models."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, Time, UniqueConstraint, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from slotwise.db.base import Base


class UserWorkSchedule(Base):
    __tablename__ = "user_work_schedules"
    __table_args__ = (UniqueConstraint("user_id", "day_of_week", name="uq_user_work_schedules_user_day"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(String(length=10), nullable=False)
    is_working = Column(Boolean, nullable=False, server_default=sa_text("true"))
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)
    location = Column(String(length=10), nullable=False, server_default=sa_text("'home'"))
    commute_to_min = Column(Integer, nullable=True)
    commute_from_min = Column(Integer, nullable=True)


class UserVacation(Base):
    __tablename__ = "user_vacations"
    __table_args__ = (Index("ix_user_vacations_user_id", "user_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
