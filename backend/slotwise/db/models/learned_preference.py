"""Learned scheduling preference ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, String, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from slotwise.db.base import Base
from slotwise.db.types import JSONBCompat


class LearnedPreference(Base):
    __tablename__ = "learned_preferences"
    __table_args__ = (Index("ix_learned_preferences_user_id", "user_id"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind = Column(String(length=40), nullable=False)
    value = Column(JSONBCompat, nullable=False, default=dict)
    confidence = Column(Float, nullable=False, server_default=sa_text("0.5"))
    is_active = Column(Boolean, nullable=False, server_default=sa_text("true"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
