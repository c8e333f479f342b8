"""Translate service-layer errors into HTTP responses."""
from __future__ import annotations

from fastapi import HTTPException

from slotwise.services.errors import SchedulingError


def to_http(exc: SchedulingError) -> HTTPException:
    if exc.details:
        return HTTPException(status_code=exc.status_code, detail={"message": exc.message, **exc.details})
    return HTTPException(status_code=exc.status_code, detail=exc.message)
