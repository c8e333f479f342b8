"""Calendar event sources consumed by the scheduler."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple
from uuid import UUID

from slotwise.scheduling.types import BlockKind, BlockedInterval

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CalendarEvent:
    id: str
    summary: str
    start: datetime
    end: datetime
    all_day: bool = False

    def to_block(self) -> BlockedInterval:
        start, end = self.start, self.end
        if self.all_day:
            start = datetime.combine(self.start.date(), time.min)
            end = datetime.combine(self.end.date(), time.min)
            if end <= start:
                end = start + timedelta(days=1)
        return BlockedInterval(start=start, end=end, reason=self.summary or "Busy", kind=BlockKind.CALENDAR_EVENT)


class CalendarEventsProvider(Protocol):
    def fetch(self, user_id: UUID, start: date, end: date) -> List[CalendarEvent]:
        ...


class NullCalendarProvider:
    """No connected calendars."""

    def fetch(self, user_id: UUID, start: date, end: date) -> List[CalendarEvent]:
        return []


class StaticCalendarProvider:
    """Serves a fixed list of events, filtered to the requested range."""

    def __init__(self, events: Iterable[CalendarEvent] = ()) -> None:
        self._events = list(events)

    def fetch(self, user_id: UUID, start: date, end: date) -> List[CalendarEvent]:
        range_start = datetime.combine(start, time.min)
        range_end = datetime.combine(end, time.min) + timedelta(days=1)
        return [event for event in self._events if event.start < range_end and event.end > range_start]


@dataclass
class RunCache:
    """Memo of provider responses for one scheduling run."""

    events: Dict[Tuple[UUID, date, date], List[CalendarEvent]] = field(default_factory=dict)
    hits: int = 0


class CachedCalendarProvider:
    def __init__(self, inner: CalendarEventsProvider, cache: Optional[RunCache] = None) -> None:
        self._inner = inner
        self.cache = cache or RunCache()

    def fetch(self, user_id: UUID, start: date, end: date) -> List[CalendarEvent]:
        key = (user_id, start, end)
        if key in self.cache.events:
            self.cache.hits += 1
            return list(self.cache.events[key])
        events = self._inner.fetch(user_id, start, end)
        self.cache.events[key] = list(events)
        return list(events)


def events_to_blocks(events: Sequence[CalendarEvent]) -> List[BlockedInterval]:
    blocks: List[BlockedInterval] = []
    for event in events:
        if event.end <= event.start and not event.all_day:
            logger.debug("Ignoring calendar event %s with non-positive duration", event.id)
            continue
        blocks.append(event.to_block())
    return blocks


def get_calendar_provider() -> CalendarEventsProvider:
    """FastAPI dependency; external calendar sync plugs in here."""
    return NullCalendarProvider()
