"""Free-slot computation for a single day.

Availability is always derived from scratch: callers pass the full set of
blocking intervals (calendar events, work hours, commutes, vacations, holidays
and placements accepted so far) and receive a new immutable tuple of slots.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from slotwise.scheduling.types import (
    FULL_DAY_KINDS,
    MIN_SLOT_MINUTES,
    BlockedInterval,
    Placement,
    TimeSlot,
    minutes_between,
)


def day_window(day: date, start_hour: int, end_hour: int) -> Tuple[datetime, datetime]:
    """Return the datetimes bounding the schedulable part of ``day``."""
    start = datetime.combine(day, time.min) + timedelta(hours=start_hour)
    end = datetime.combine(day, time.min) + timedelta(hours=end_hour)
    return start, end


def compute_availability(
    day: date,
    blocked: Iterable[BlockedInterval],
    window_start: datetime,
    window_end: datetime,
    *,
    min_slot_minutes: int = MIN_SLOT_MINUTES,
) -> Tuple[TimeSlot, ...]:
    """Sweep the blocking intervals of ``day`` and return the ordered free slots."""
    if window_end <= window_start:
        return ()

    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)

    relevant: List[BlockedInterval] = []
    for block in blocked:
        if block.end <= block.start:
            continue
        if block.kind in FULL_DAY_KINDS:
            if block.start < day_end and block.end > day_start:
                return ()
            continue
        if block.end <= window_start or block.start >= window_end:
            continue
        relevant.append(block)

    relevant.sort(key=lambda block: (block.start, block.end))

    slots: List[TimeSlot] = []
    cursor = window_start
    for block in relevant:
        if block.start > cursor and minutes_between(cursor, block.start) >= min_slot_minutes:
            slots.append(TimeSlot(start=cursor, end=block.start))
        if block.end > cursor:
            cursor = block.end
        if cursor >= window_end:
            break

    if cursor < window_end and minutes_between(cursor, window_end) >= min_slot_minutes:
        slots.append(TimeSlot(start=cursor, end=window_end))

    return tuple(slots)


def validate_time_in_slots(slots: Sequence[TimeSlot], start: datetime, end: datetime) -> bool:
    """True when ``[start, end]`` lies wholly inside one free slot."""
    if end <= start:
        return False
    return any(slot.contains(start, end) for slot in slots)


def free_minutes(slots: Sequence[TimeSlot]) -> int:
    return sum(slot.duration_minutes for slot in slots)


def blocked_minutes(blocked: Iterable[BlockedInterval], start: datetime, end: datetime) -> int:
    """Minutes of ``[start, end]`` covered by at least one block, overlaps merged."""
    clipped = sorted(
        (max(block.start, start), min(block.end, end))
        for block in blocked
        if block.start < end and block.end > start
    )
    total = 0
    cursor = start
    for block_start, block_end in clipped:
        block_start = max(block_start, cursor)
        if block_end > block_start:
            total += minutes_between(block_start, block_end)
            cursor = block_end
    return total


def ceil_to_minute(moment: datetime) -> datetime:
    floored = moment.replace(second=0, microsecond=0)
    return floored if floored == moment else floored + timedelta(minutes=1)


@dataclass(frozen=True)
class SchedulingContext:
    """Snapshot of everything that blocks time during one scheduling run."""

    blocked: Tuple[BlockedInterval, ...]
    day_start_hour: int = 6
    day_end_hour: int = 22
    min_slot_minutes: int = MIN_SLOT_MINUTES
    # Nothing is offered before this moment; usually the run's "now".
    not_before: Optional[datetime] = None
    _by_day: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for block in self.blocked:
            day = block.start.date()
            last = (block.end - timedelta(microseconds=1)).date()
            while day <= last:
                self._by_day.setdefault(day, []).append(block)
                day += timedelta(days=1)

    def blocks_for(self, day: date) -> Tuple[BlockedInterval, ...]:
        return tuple(self._by_day.get(day, ()))

    def window(self, day: date) -> Tuple[datetime, datetime]:
        return day_window(day, self.day_start_hour, self.day_end_hour)

    def availability(self, day: date, accepted: Iterable[Placement] = ()) -> Tuple[TimeSlot, ...]:
        """Free slots of ``day`` given the placements accepted so far in the run."""
        blocks = list(self.blocks_for(day))
        blocks.extend(p.as_block() for p in accepted if p.start.date() == day)
        window_start, window_end = self.window(day)
        if self.not_before is not None:
            if day < self.not_before.date():
                return ()
            if day == self.not_before.date():
                window_start = max(window_start, ceil_to_minute(self.not_before))
        return compute_availability(
            day,
            blocks,
            window_start,
            window_end,
            min_slot_minutes=self.min_slot_minutes,
        )
