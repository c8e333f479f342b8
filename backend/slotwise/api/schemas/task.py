"""Schemas for task definitions."""
from __future__ import annotations

from datetime import datetime, time
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from slotwise.scheduling.types import WEEKDAY_NAMES


def _normalize_days(days: Optional[List[str]]) -> Optional[List[str]]:
    if days is None:
        return None
    normalized: List[str] = []
    for day in days:
        key = day.strip().lower()
        if key not in WEEKDAY_NAMES:
            raise ValueError(f"unknown weekday {day!r}")
        if key not in normalized:
            normalized.append(key)
    return normalized


class TaskFields(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    category: Optional[Literal["goal", "chore"]] = None
    duration_min: Optional[int] = Field(default=None, ge=15, le=720)
    priority: Optional[int] = Field(default=None, ge=1, le=4)
    scheduling_mode: Optional[Literal["fixed", "flexible"]] = None
    fixed_days: Optional[List[str]] = None
    fixed_time: Optional[time] = None
    frequency: Optional[int] = Field(default=None, ge=1, le=14)
    frequency_period: Optional[Literal["day", "week"]] = None
    required_days: Optional[List[str]] = None
    preferred_time_start: Optional[time] = None
    preferred_time_end: Optional[time] = None
    family_id: Optional[UUID] = None

    @field_validator("fixed_days", "required_days")
    @classmethod
    def _known_days(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _normalize_days(value)

    @model_validator(mode="after")
    def _check_window(self):
        start, end = self.preferred_time_start, self.preferred_time_end
        if (start is None) != (end is None):
            raise ValueError("preferred_time_start and preferred_time_end must be set together")
        if start is not None and end <= start:
            raise ValueError("preferred_time_end must be after preferred_time_start")
        return self


class TaskCreateRequest(TaskFields):
    user_id: UUID
    name: str = Field(min_length=1, max_length=200)
    duration_min: int = Field(ge=15, le=720)
    category: Literal["goal", "chore"] = "goal"
    priority: int = Field(default=3, ge=1, le=4)
    scheduling_mode: Literal["fixed", "flexible"] = "flexible"
    frequency: int = Field(default=1, ge=1, le=14)
    frequency_period: Literal["day", "week"] = "week"


class TaskUpdateRequest(TaskFields):
    user_id: UUID
    is_active: Optional[bool] = None


class TaskSummary(BaseModel):
    id: UUID
    user_id: UUID
    family_id: Optional[UUID]
    name: str
    category: str
    duration_min: int
    priority: int
    scheduling_mode: str
    fixed_days: List[str]
    fixed_time: Optional[time]
    frequency: int
    frequency_period: str
    required_days: List[str]
    preferred_time_start: Optional[time]
    preferred_time_end: Optional[time]
    is_active: bool
    created_at: datetime
    updated_at: datetime
