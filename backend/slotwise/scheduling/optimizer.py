"""Pluggable optimizer strategies.

An optimizer only proposes start times. Every proposal is re-validated by
``slotwise.scheduling.reconcile`` against live availability, so a strategy can
be wrong, slow or absent without affecting correctness.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Protocol, Sequence, Tuple, Union

from slotwise.scheduling.availability import SchedulingContext
from slotwise.scheduling.types import TaskInstance, TimeSlot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Proposal:
    # Either a time or an "HH:MM" string straight from an external model.
    start_time: Union[time, str, None]
    reasoning: str = ""


@dataclass(frozen=True)
class DayBatch:
    day: date
    slots: Tuple[TimeSlot, ...]
    instances: Tuple[TaskInstance, ...]


@dataclass(frozen=True)
class OptimizerBatch:
    week_start: date
    week_end: date
    days: Tuple[DayBatch, ...]
    preferences: Tuple[Mapping[str, Any], ...] = field(default_factory=tuple)

    @property
    def instances(self) -> List[TaskInstance]:
        return [instance for day in self.days for instance in day.instances]


class OptimizerStrategy(Protocol):
    name: str

    def propose(self, batch: OptimizerBatch) -> Mapping[str, Proposal]:
        ...


class NullOptimizer:
    """Proposes nothing; every instance goes through the deterministic path."""

    name = "none"

    def propose(self, batch: OptimizerBatch) -> Mapping[str, Proposal]:
        return {}


class PreferredWindowOptimizer:
    """Heuristic that packs instances into their preferred windows.

    Unlike the slot finder, which requires a slot to *start* inside the window,
    this strategy also uses slots that open before the window and overlap it.
    It tracks its own tentative placements per day but has no authority: the
    validator still checks every proposal.
    """

    name = "heuristic"

    def propose(self, batch: OptimizerBatch) -> Mapping[str, Proposal]:
        proposals: Dict[str, Proposal] = {}
        for day_batch in batch.days:
            taken: List[Tuple[datetime, datetime]] = []
            for instance in day_batch.instances:
                if instance.fixed_time is None:
                    continue
                fixed_start = datetime.combine(day_batch.day, instance.fixed_time)
                taken.append((fixed_start, fixed_start + timedelta(minutes=instance.duration_min)))
                proposals[instance.instance_id] = Proposal(
                    start_time=instance.fixed_time,
                    reasoning=f"Kept the fixed time of {instance.fixed_time.strftime('%H:%M')}",
                )
            for instance in day_batch.instances:
                if instance.fixed_time is not None:
                    continue
                if instance.preferred_start is None or instance.preferred_end is None:
                    continue
                start = self._first_fit(day_batch, instance, taken)
                if start is None:
                    continue
                end = start + timedelta(minutes=instance.duration_min)
                taken.append((start, end))
                proposals[instance.instance_id] = Proposal(
                    start_time=start.time(),
                    reasoning=(
                        f"Fits inside your preferred window "
                        f"({instance.preferred_start.strftime('%H:%M')}-{instance.preferred_end.strftime('%H:%M')})"
                    ),
                )
        return proposals

    @staticmethod
    def _first_fit(
        day_batch: DayBatch,
        instance: TaskInstance,
        taken: Sequence[Tuple[datetime, datetime]],
    ) -> datetime | None:
        window_start = datetime.combine(day_batch.day, instance.preferred_start)
        window_end = datetime.combine(day_batch.day, instance.preferred_end)
        length = timedelta(minutes=instance.duration_min)
        for slot in day_batch.slots:
            cursor = max(slot.start, window_start)
            limit = min(slot.end, window_end)
            for busy_start, busy_end in sorted(taken):
                if busy_end <= cursor or busy_start >= limit:
                    continue
                if busy_start - cursor >= length:
                    break
                cursor = max(cursor, busy_end)
            if limit - cursor >= length:
                return cursor
        return None


def build_batch(
    instances: Sequence[TaskInstance],
    context: SchedulingContext,
    week_start: date,
    week_end: date,
    preferences: Sequence[Mapping[str, Any]] = (),
) -> OptimizerBatch:
    """Group instances by day alongside that day's initial availability."""
    by_day: Dict[date, List[TaskInstance]] = {}
    for instance in instances:
        by_day.setdefault(instance.day, []).append(instance)
    days = tuple(
        DayBatch(day=day, slots=context.availability(day), instances=tuple(items))
        for day, items in sorted(by_day.items())
    )
    return OptimizerBatch(
        week_start=week_start,
        week_end=week_end,
        days=days,
        preferences=tuple(preferences),
    )


def collect_proposals(strategy: OptimizerStrategy | None, batch: OptimizerBatch) -> Dict[str, Proposal]:
    """Run ``strategy`` and degrade any failure to zero proposals."""
    if strategy is None or not batch.days:
        return {}
    try:
        raw = strategy.propose(batch)
    except Exception as exc:
        logger.warning(
            "Optimizer %s failed, falling back to deterministic placement: %s",
            getattr(strategy, "name", type(strategy).__name__),
            exc,
        )
        return {}
    if not isinstance(raw, Mapping):
        logger.warning("Optimizer returned %s instead of a mapping; ignoring it", type(raw).__name__)
        return {}

    known = {instance.instance_id for instance in batch.instances}
    proposals: Dict[str, Proposal] = {}
    for instance_id, proposal in raw.items():
        if instance_id in known and isinstance(proposal, Proposal):
            proposals[instance_id] = proposal
    return proposals
