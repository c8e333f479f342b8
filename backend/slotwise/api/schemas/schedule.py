"""Schemas for schedule generation, approval and manual placement."""
from __future__ import annotations

from datetime import date, datetime, time
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class CalendarEventIn(BaseModel):
    id: str = ""
    summary: str = "Busy"
    start: datetime
    end: datetime
    all_day: bool = False


class GenerateScheduleRequest(BaseModel):
    user_id: UUID
    week_start: Optional[date] = None
    task_ids: Optional[List[UUID]] = None
    calendar_events: List[CalendarEventIn] = Field(default_factory=list)
    persist: bool = False


class PlacementOut(BaseModel):
    task_id: UUID
    task_name: str
    date: date
    start_time: str
    end_time: str
    reasoning: str
    instance_number: int
    total_instances: int
    source: str


class ConflictOut(BaseModel):
    task_id: UUID
    task_name: str
    date: date
    reason: str
    alternatives: List[str]


class ShortfallOut(BaseModel):
    task_id: UUID
    task_name: str
    requested: int
    placeable: int
    missing: int


class WeekOut(BaseModel):
    start: date
    end: date


class GenerateScheduleResponse(BaseModel):
    placements: List[PlacementOut]
    conflicts: List[ConflictOut]
    shortfalls: List[ShortfallOut]
    summary: str
    week: WeekOut
    optimizer: str
    persisted: bool = False
    scheduled_task_ids: List[UUID] = Field(default_factory=list)
    request_id: str


class ApprovedPlacementIn(BaseModel):
    task_id: UUID
    date: date
    start_time: time
    end_time: time
    reasoning: Optional[str] = None

    @model_validator(mode="after")
    def _check_times(self) -> "ApprovedPlacementIn":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ApproveScheduleRequest(BaseModel):
    user_id: UUID
    placements: List[ApprovedPlacementIn]
    replace_existing: bool = False


class ApproveScheduleResponse(BaseModel):
    created: int
    removed: int
    scheduled_task_ids: List[UUID]
    message: str
    request_id: str


class QuickScheduleRequest(BaseModel):
    user_id: UUID
    task_id: UUID
    date: date
    start_time: time
    end_time: time
    record_overlap: bool = False


class QuickScheduleResponse(BaseModel):
    scheduled_task_id: UUID
    start_time: datetime
    end_time: datetime
    overlap_minutes: int
    request_id: str


class SlotOut(BaseModel):
    start: str
    end: str
    minutes: int


class DayAvailabilityOut(BaseModel):
    date: date
    free_minutes: int
    slots: List[SlotOut]


class AvailableTimeResponse(BaseModel):
    week: WeekOut
    days: List[DayAvailabilityOut]
    total_free_minutes: int
    required_minutes: int
    fits: bool
    request_id: str


class QuickFindRequest(BaseModel):
    user_id: UUID
    task_id: UUID
    week_start: Optional[date] = None


class TaskBriefOut(BaseModel):
    id: UUID
    name: str
    duration_min: int
    category: str


class SlotOptionOut(BaseModel):
    date: date
    day_name: str
    start_time: str
    end_time: str
    score: int


class QuickFindResponse(BaseModel):
    success: bool
    message: str
    task: TaskBriefOut
    options: List[SlotOptionOut]
    slots_needed: int
    found_slots: int
    already_scheduled: int
    is_fixed_schedule: bool
    frequency: str
    request_id: str


class ScheduleHealthResponse(BaseModel):
    week: WeekOut
    overlaps_this_week: int
    overlaps_last_week: int
    skipped_tasks_this_week: int
    completed_tasks_this_week: int
    overlapped_and_skipped: int
    impact_percentage: int
    insight: str
    severity: Literal["low", "medium", "high"]
    request_id: str
