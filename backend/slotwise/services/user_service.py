"""Helpers for working with users."""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from slotwise.core.config import settings
from slotwise.db.models.user import User

logger = logging.getLogger(__name__)


def get_or_create_user(db: Session, user_id: UUID) -> User:
    """Fetch an existing user or create one with the configured day window and country."""
    user = db.get(User, user_id)
    if user:
        return user

    user = User(
        id=user_id,
        country=settings.default_country,
        available_time_start=settings.default_day_start_hour,
        available_time_end=settings.default_day_end_hour,
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = db.get(User, user_id)
        if existing:
            return existing
        raise
    logger.info("Created user %s", user_id)
    return user
