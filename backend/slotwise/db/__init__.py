"""Database utilities and models."""

from slotwise.db.base import Base
from slotwise.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
