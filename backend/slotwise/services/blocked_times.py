"""Blocked time derived from a user's work pattern, vacations and public holidays."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from slotwise.core.config import settings
from slotwise.db.models.user import User
from slotwise.db.models.work_schedule import UserVacation, UserWorkSchedule
from slotwise.scheduling.holidays import holidays_in_range
from slotwise.scheduling.types import WEEKDAY_NAMES, BlockKind, BlockedInterval, weekday_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkDay:
    day_of_week: str
    is_working: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    location: str = "home"
    commute_to_min: Optional[int] = None
    commute_from_min: Optional[int] = None


# Template offered to users who have not configured their week yet. It is not
# applied to scheduling until saved.
DEFAULT_WORK_WEEK: tuple[WorkDay, ...] = tuple(
    WorkDay(day, is_working=index < 5, start_time=time(9) if index < 5 else None, end_time=time(17) if index < 5 else None)
    for index, day in enumerate(WEEKDAY_NAMES)
)


@dataclass(frozen=True)
class AvailabilityProfile:
    country: str
    day_start_hour: int
    day_end_hour: int
    work_days: Dict[str, WorkDay]
    vacations: tuple[tuple[date, date, Optional[str]], ...]


def load_profile(db: Session, user: User, *, from_date: Optional[date] = None) -> AvailabilityProfile:
    rows = db.query(UserWorkSchedule).filter(UserWorkSchedule.user_id == user.id).all()
    work_days = {
        row.day_of_week: WorkDay(
            day_of_week=row.day_of_week,
            is_working=bool(row.is_working),
            start_time=row.start_time,
            end_time=row.end_time,
            location=row.location or "home",
            commute_to_min=row.commute_to_min,
            commute_from_min=row.commute_from_min,
        )
        for row in rows
    }
    vacation_query = db.query(UserVacation).filter(UserVacation.user_id == user.id)
    if from_date is not None:
        vacation_query = vacation_query.filter(UserVacation.end_date >= from_date)
    vacations = tuple(
        (row.start_date, row.end_date, row.note)
        for row in vacation_query.order_by(UserVacation.start_date).all()
    )
    start_hour = user.available_time_start if user.available_time_start is not None else settings.default_day_start_hour
    end_hour = user.available_time_end if user.available_time_end is not None else settings.default_day_end_hour
    return AvailabilityProfile(
        country=user.country or settings.default_country,
        day_start_hour=start_hour,
        day_end_hour=end_hour,
        work_days=work_days,
        vacations=vacations,
    )


def blocked_times_for_range(profile: AvailabilityProfile, start: date, end: date) -> List[BlockedInterval]:
    """Work, commute, vacation and holiday blocks for every day in ``[start, end]``.

    A vacation day suppresses the holiday and work blocks for that day, and a
    holiday suppresses work.
    """
    holidays = {holiday.effective_date: holiday for holiday in holidays_in_range(profile.country, start, end)}
    blocks: List[BlockedInterval] = []
    day = start
    while day <= end:
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        if _on_vacation(profile.vacations, day):
            blocks.append(BlockedInterval(day_start, day_end, "On vacation", BlockKind.VACATION))
        elif day in holidays:
            blocks.append(
                BlockedInterval(day_start, day_end, f"Public holiday: {holidays[day].name}", BlockKind.HOLIDAY)
            )
        else:
            work_day = profile.work_days.get(weekday_name(day))
            if work_day is not None:
                blocks.extend(_work_blocks(day, work_day))
        day += timedelta(days=1)
    return blocks


def _on_vacation(vacations: Sequence[tuple[date, date, Optional[str]]], day: date) -> bool:
    return any(start <= day <= end for start, end, _ in vacations)


def _work_blocks(day: date, work_day: WorkDay) -> List[BlockedInterval]:
    if not work_day.is_working or work_day.start_time is None or work_day.end_time is None:
        return []
    work_start = datetime.combine(day, work_day.start_time)
    work_end = datetime.combine(day, work_day.end_time)
    if work_end <= work_start:
        logger.debug("Ignoring inverted work hours on %s", day)
        return []
    blocks = [BlockedInterval(work_start, work_end, "Working hours", BlockKind.WORK)]
    if work_day.location == "office":
        if work_day.commute_to_min:
            blocks.append(
                BlockedInterval(
                    work_start - timedelta(minutes=work_day.commute_to_min),
                    work_start,
                    "Commute to office",
                    BlockKind.COMMUTE,
                )
            )
        if work_day.commute_from_min:
            blocks.append(
                BlockedInterval(
                    work_end,
                    work_end + timedelta(minutes=work_day.commute_from_min),
                    "Commute from office",
                    BlockKind.COMMUTE,
                )
            )
    return blocks


def get_blocked_times(db: Session, user_id: UUID, start: date, end: date) -> List[BlockedInterval]:
    user = db.get(User, user_id)
    if user is None:
        return []
    profile = load_profile(db, user, from_date=start)
    return blocked_times_for_range(profile, start, end)
