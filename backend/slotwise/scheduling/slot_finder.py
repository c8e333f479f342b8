"""Pick a single contiguous slot for one task instance."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence

from slotwise.scheduling.types import TimeSlot


@dataclass(frozen=True)
class SlotChoice:
    start: datetime
    end: datetime
    # "fixed", "preferred", "fallback" (preferred window had no room) or "first_available"
    matched: str


def find_slot(
    slots: Sequence[TimeSlot],
    duration: int,
    fixed_time: Optional[time] = None,
    preferred_start: Optional[time] = None,
    preferred_end: Optional[time] = None,
    *,
    day: Optional[date] = None,
) -> Optional[SlotChoice]:
    """Return the best slot for ``duration`` minutes, or None when nothing fits.

    A fixed time is honoured exactly or not at all. A preferred window picks the
    first slot whose start lies inside it; when none qualifies the first slot
    with enough room is used instead. Slots are never split.
    """
    if duration <= 0 or not slots:
        return None
    length = timedelta(minutes=duration)

    if fixed_time is not None:
        anchor = day or slots[0].start.date()
        start = datetime.combine(anchor, fixed_time)
        end = start + length
        for slot in slots:
            if slot.contains(start, end):
                return SlotChoice(start=start, end=end, matched="fixed")
        return None

    has_window = preferred_start is not None and preferred_end is not None
    if has_window:
        for slot in slots:
            slot_time = slot.start.time()
            if preferred_start <= slot_time < preferred_end and slot.duration_minutes >= duration:
                return SlotChoice(start=slot.start, end=slot.start + length, matched="preferred")

    for slot in slots:
        if slot.duration_minutes >= duration:
            matched = "fallback" if has_window else "first_available"
            return SlotChoice(start=slot.start, end=slot.start + length, matched=matched)
    return None
