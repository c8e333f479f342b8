"""Current-time dependency, overridden in tests."""
from __future__ import annotations

from datetime import datetime


def get_now() -> datetime:
    """Return the naive local wall-clock time the scheduler plans against."""
    return datetime.now().replace(microsecond=0)
