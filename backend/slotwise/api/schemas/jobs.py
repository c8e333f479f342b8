"""Schemas for job operations endpoints."""
from __future__ import annotations

from datetime import date
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class JobRunRequest(BaseModel):
    job: Literal["weekly_schedule"] = "weekly_schedule"
    user_id: Optional[UUID] = None
    week_start: Optional[date] = None
    force: bool = False


class JobRunResponse(BaseModel):
    job: str
    users_processed: int
    schedules_written: int
    skipped_existing: int
    request_id: str
