"""Schemas for a user's working pattern, vacations and settings."""
from __future__ import annotations

from datetime import date, time
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from slotwise.scheduling.holidays import SUPPORTED_COUNTRIES
from slotwise.scheduling.types import WEEKDAY_NAMES


class WorkDayIn(BaseModel):
    day_of_week: str
    is_working: bool = True
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: Literal["home", "office"] = "home"
    commute_to_min: Optional[int] = Field(default=None, ge=0, le=240)
    commute_from_min: Optional[int] = Field(default=None, ge=0, le=240)

    @field_validator("day_of_week")
    @classmethod
    def _known_day(cls, value: str) -> str:
        key = value.strip().lower()
        if key not in WEEKDAY_NAMES:
            raise ValueError(f"unknown weekday {value!r}")
        return key

    @model_validator(mode="after")
    def _check_hours(self) -> "WorkDayIn":
        if self.is_working:
            if self.start_time is None or self.end_time is None:
                raise ValueError("working days need start_time and end_time")
            if self.end_time <= self.start_time:
                raise ValueError("end_time must be after start_time")
        return self


class WorkDayOut(BaseModel):
    day_of_week: str
    is_working: bool
    start_time: Optional[time]
    end_time: Optional[time]
    location: str
    commute_to_min: Optional[int]
    commute_from_min: Optional[int]


class WorkScheduleUpdate(BaseModel):
    user_id: UUID
    days: List[WorkDayIn]


class WorkScheduleResponse(BaseModel):
    days: List[WorkDayOut]
    configured: bool
    request_id: str


class VacationCreate(BaseModel):
    user_id: UUID
    start_date: date
    end_date: date
    note: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _check_range(self) -> "VacationCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class VacationOut(BaseModel):
    id: UUID
    start_date: date
    end_date: date
    note: Optional[str]


class UserSettingsUpdate(BaseModel):
    user_id: UUID
    country: Optional[str] = None
    available_time_start: Optional[int] = Field(default=None, ge=0, le=23)
    available_time_end: Optional[int] = Field(default=None, ge=1, le=24)
    family_id: Optional[UUID] = None

    @field_validator("country")
    @classmethod
    def _supported_country(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        code = value.strip().upper()
        if code == "GB":
            code = "UK"
        if code not in SUPPORTED_COUNTRIES:
            raise ValueError(f"unsupported country {value!r}")
        return code


class UserSettingsOut(BaseModel):
    user_id: UUID
    country: str
    available_time_start: int
    available_time_end: int
    family_id: Optional[UUID]
    request_id: str


class HolidayOut(BaseModel):
    date: date
    observed: date
    name: str


class PreferenceCreate(BaseModel):
    user_id: UUID
    kind: Literal["time_window", "duration_adjustment", "sensitivity"]
    value: dict
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class PreferenceOut(BaseModel):
    id: UUID
    kind: str
    value: dict
    confidence: float
    is_active: bool
