"""Value types shared by the scheduling engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Optional, Tuple, Union
from uuid import UUID

MIN_SLOT_MINUTES = 15

WEEKDAY_NAMES: Tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class BlockKind(str, Enum):
    CALENDAR_EVENT = "calendar_event"
    WORK = "work"
    COMMUTE = "commute"
    VACATION = "vacation"
    HOLIDAY = "holiday"
    SCHEDULED = "scheduled"


# Kinds that remove the whole day regardless of the interval they carry.
FULL_DAY_KINDS = frozenset({BlockKind.VACATION, BlockKind.HOLIDAY})


class SchedulingMode(str, Enum):
    FIXED = "fixed"
    FLEXIBLE = "flexible"


class FrequencyPeriod(str, Enum):
    DAY = "day"
    WEEK = "week"


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start) // timedelta(minutes=1))


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


@dataclass(frozen=True)
class TimeSlot:
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start, self.end)

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


@dataclass(frozen=True)
class BlockedInterval:
    start: datetime
    end: datetime
    reason: str
    kind: BlockKind


@dataclass(frozen=True)
class TaskSpec:
    """Read-only view of a task definition for one scheduling run."""

    id: Union[UUID, str]
    name: str
    duration_min: int
    priority: int = 3
    category: str = "goal"
    mode: SchedulingMode = SchedulingMode.FLEXIBLE
    fixed_days: Tuple[str, ...] = ()
    fixed_time: Optional[time] = None
    frequency: int = 1
    frequency_period: FrequencyPeriod = FrequencyPeriod.WEEK
    required_days: Tuple[str, ...] = ()
    preferred_start: Optional[time] = None
    preferred_end: Optional[time] = None

    @property
    def is_fixed(self) -> bool:
        return self.mode == SchedulingMode.FIXED


@dataclass(frozen=True)
class TaskInstance:
    instance_id: str
    task_id: Union[UUID, str]
    task_name: str
    day: date
    instance_number: int
    total_instances: int
    duration_min: int
    priority: int
    category: str = "goal"
    fixed_time: Optional[time] = None
    preferred_start: Optional[time] = None
    preferred_end: Optional[time] = None

    @property
    def day_name(self) -> str:
        return weekday_name(self.day).capitalize()


@dataclass(frozen=True)
class Placement:
    instance: TaskInstance
    start: datetime
    end: datetime
    reasoning: str
    source: str = "deterministic"

    is_conflict = False

    def as_block(self) -> BlockedInterval:
        return BlockedInterval(
            start=self.start,
            end=self.end,
            reason=f"Scheduled: {self.instance.task_name}",
            kind=BlockKind.SCHEDULED,
        )


@dataclass(frozen=True)
class ConflictOutcome:
    instance: TaskInstance
    reason: str
    alternatives: Tuple[str, ...] = field(default_factory=tuple)

    is_conflict = True


ScheduledInstance = Union[Placement, ConflictOutcome]
