"""Domain errors raised by the service layer and mapped to HTTP by the routes."""
from __future__ import annotations

from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """Base class for expected, user-facing scheduling failures."""

    status_code = 400

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(SchedulingError):
    status_code = 404


class OwnershipError(SchedulingError):
    status_code = 403


class SlotUnavailableError(SchedulingError):
    status_code = 409


class InvalidTaskError(SchedulingError):
    status_code = 422
