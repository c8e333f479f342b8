"""Schemas for scheduled task instances and moves."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel


class ScheduledTaskOut(BaseModel):
    id: UUID
    task_id: UUID
    task_name: str
    scheduled_date: date
    start_time: datetime
    end_time: datetime
    status: str
    reasoning: Optional[str]
    was_manually_moved: bool
    original_start_time: Optional[datetime]
    original_end_time: Optional[datetime]
    was_shortened: bool
    original_duration_min: Optional[int]


class ScheduledTaskStatusUpdate(BaseModel):
    user_id: UUID
    status: Literal["pending", "completed", "skipped"]


class MoveRequest(BaseModel):
    user_id: UUID
    new_start: datetime
    new_end: datetime
    confirmed: bool = False
    reason: Optional[str] = None


class TimeRange(BaseModel):
    start: datetime
    end: datetime


class MoveConflictOut(BaseModel):
    type: Literal["shortened", "displaced"]
    scheduled_task_id: UUID
    task_name: str
    original_time: TimeRange
    resolution: Optional[TimeRange] = None
    overlap_minutes: int
    description: str


class MoveResponse(BaseModel):
    applied: bool
    requires_confirmation: bool
    conflicts: List[MoveConflictOut]
    conflicts_resolved: int
    message: str
    scheduled_task: ScheduledTaskOut
    request_id: str


class ConflictRecordOut(BaseModel):
    id: UUID
    week_of: date
    resolution: str
    affected_scheduled_task_id: Optional[UUID]
    original_start: datetime
    original_end: datetime
    new_start: datetime
    new_end: datetime
    affected_new_start: Optional[datetime]
    affected_new_end: Optional[datetime]
    user_accepted: bool
    created_at: datetime
