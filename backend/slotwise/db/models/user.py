"""User ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from slotwise.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    # Shared family tasks are visible to every member with the same family_id.
    family_id = Column(UUID(as_uuid=True), nullable=True)
    country = Column(String(length=8), nullable=False, server_default=sa_text("'UK'"))
    available_time_start = Column(Integer, nullable=False, server_default=sa_text("6"))
    available_time_end = Column(Integer, nullable=False, server_default=sa_text("22"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
