"""Classify collisions caused by moving one scheduled instance."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, List, Optional, Sequence

from slotwise.scheduling.types import minutes_between

# Overlap, as a fraction of the sibling's duration, at which it counts as displaced.
DISPLACEMENT_THRESHOLD = 0.5


class MoveResolution(str, Enum):
    SHORTENED = "shortened"
    DISPLACED = "displaced"
    MOVED = "moved"


@dataclass(frozen=True)
class SiblingInterval:
    id: Any
    name: str
    start: datetime
    end: datetime

    @property
    def duration_minutes(self) -> int:
        return minutes_between(self.start, self.end)


@dataclass(frozen=True)
class MoveConflict:
    sibling: SiblingInterval
    resolution: MoveResolution
    overlap_minutes: int
    overlap_fraction: float
    new_start: Optional[datetime] = None
    new_end: Optional[datetime] = None

    @property
    def description(self) -> str:
        if self.resolution == MoveResolution.SHORTENED:
            return (
                f"{self.sibling.name} will be shortened to "
                f"{self.new_start.strftime('%H:%M')}-{self.new_end.strftime('%H:%M')}"
            )
        return f"{self.sibling.name} overlaps too much and needs to be rescheduled"


def overlap_minutes(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> int:
    start = max(start_a, start_b)
    end = min(end_a, end_b)
    if end <= start:
        return 0
    return minutes_between(start, end)


def shortened_interval(sibling: SiblingInterval, moved_start: datetime, moved_end: datetime, overlap: int):
    """Trim ``sibling`` away from the moved interval.

    When the moved instance starts first the sibling is pushed to begin at its
    end and keeps its non-overlapping length; otherwise the sibling simply ends
    where the moved instance starts.
    """
    if moved_start <= sibling.start:
        new_start = moved_end
        new_end = moved_end + timedelta(minutes=sibling.duration_minutes - overlap)
        return new_start, new_end
    return sibling.start, moved_start


def classify_move(
    moved_start: datetime,
    moved_end: datetime,
    siblings: Sequence[SiblingInterval],
    *,
    threshold: float = DISPLACEMENT_THRESHOLD,
) -> List[MoveConflict]:
    """Return one conflict per sibling that overlaps ``[moved_start, moved_end)``."""
    conflicts: List[MoveConflict] = []
    for sibling in sorted(siblings, key=lambda s: s.start):
        duration = sibling.duration_minutes
        if duration <= 0:
            continue
        overlap = overlap_minutes(moved_start, moved_end, sibling.start, sibling.end)
        if overlap == 0:
            continue
        fraction = overlap / duration
        if fraction >= threshold:
            conflicts.append(
                MoveConflict(
                    sibling=sibling,
                    resolution=MoveResolution.DISPLACED,
                    overlap_minutes=overlap,
                    overlap_fraction=fraction,
                )
            )
            continue
        new_start, new_end = shortened_interval(sibling, moved_start, moved_end, overlap)
        conflicts.append(
            MoveConflict(
                sibling=sibling,
                resolution=MoveResolution.SHORTENED,
                overlap_minutes=overlap,
                overlap_fraction=fraction,
                new_start=new_start,
                new_end=new_end,
            )
        )
    return conflicts
