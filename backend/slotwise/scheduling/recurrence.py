"""Recurrence expansion: turn task definitions into dated instances for a week."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from slotwise.scheduling.types import (
    WEEKDAY_NAMES,
    FrequencyPeriod,
    SchedulingMode,
    TaskInstance,
    TaskSpec,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Expansion:
    achievable_count: int
    candidate_dates: Tuple[date, ...]
    assigned_dates: Tuple[date, ...]
    # Instances the definition asks for that no candidate day can hold.
    shortfall: int = 0


@dataclass(frozen=True)
class ExistingSchedule:
    count: int = 0
    dates: FrozenSet[date] = frozenset()


def allowed_weekdays(task: TaskSpec) -> Set[int]:
    """Weekday numbers (Monday=0) a task may land on; empty means unrestricted."""
    if task.is_fixed:
        names: Sequence[str] = task.fixed_days
    else:
        names = task.required_days
    allowed: Set[int] = set()
    for name in names:
        key = name.strip().lower()
        if key in WEEKDAY_NAMES:
            allowed.add(WEEKDAY_NAMES.index(key))
    return allowed


def candidate_dates(
    task: TaskSpec,
    week_start: date,
    week_end: date,
    already_scheduled_dates: Iterable[date],
    now: datetime,
) -> List[date]:
    """Dates in the week on which a new instance of ``task`` can still land."""
    today = now.date()
    taken = set(already_scheduled_dates)
    allowed = allowed_weekdays(task)

    dates: List[date] = []
    current = week_start
    while current <= week_end:
        day = current
        current += timedelta(days=1)
        if day < today:
            continue
        if day == today and task.fixed_time is not None:
            if datetime.combine(day, task.fixed_time) <= now:
                continue
        if day in taken:
            continue
        if allowed and day.weekday() not in allowed:
            continue
        dates.append(day)
    return dates


def spread_dates(candidates: Sequence[date], needed: int) -> List[date]:
    """Pick ``needed`` dates spread evenly across ``candidates``."""
    if needed <= 0:
        return []
    if needed >= len(candidates):
        return list(candidates)

    stride = len(candidates) / needed
    assigned: List[date] = []
    for i in range(needed):
        index = min(int(i * stride), len(candidates) - 1)
        choice = candidates[index]
        if choice in assigned:
            choice = next(day for day in candidates if day not in assigned)
        assigned.append(choice)
    return sorted(assigned)


def expand(
    task: TaskSpec,
    week_start: date,
    week_end: date,
    already_scheduled_dates: Iterable[date],
    now: datetime,
    *,
    already_scheduled_count: Optional[int] = None,
) -> Expansion:
    """Work out how many more instances of ``task`` fit this week and where."""
    scheduled_dates = frozenset(already_scheduled_dates)
    existing = len(scheduled_dates) if already_scheduled_count is None else already_scheduled_count

    if task.is_fixed and not task.fixed_days:
        return Expansion(achievable_count=0, candidate_dates=(), assigned_dates=())

    candidates = candidate_dates(task, week_start, week_end, scheduled_dates, now)
    shortfall = 0

    if task.mode == SchedulingMode.FIXED:
        count = min(len(candidates), len(allowed_weekdays(task)))
        assigned = candidates[:count]
    elif task.frequency_period == FrequencyPeriod.DAY:
        frequency = max(1, task.frequency)
        count = len(candidates) * frequency
        assigned = [day for day in candidates for _ in range(frequency)]
    else:
        still_needed = max(0, max(1, task.frequency) - existing)
        count = min(still_needed, len(candidates))
        shortfall = still_needed - count
        assigned = spread_dates(candidates, count)

    logger.debug(
        "Expanded %s: mode=%s freq=%s/%s existing=%s candidates=%s achievable=%s",
        task.name,
        task.mode.value,
        task.frequency,
        task.frequency_period.value,
        existing,
        len(candidates),
        count,
    )
    return Expansion(
        achievable_count=count,
        candidate_dates=tuple(candidates),
        assigned_dates=tuple(assigned),
        shortfall=shortfall,
    )


def expand_tasks(
    tasks: Iterable[TaskSpec],
    week_start: date,
    week_end: date,
    existing_by_task: Mapping[object, ExistingSchedule],
    now: datetime,
) -> Tuple[List[TaskInstance], Dict[object, Expansion]]:
    """Expand every task and return instances in placement order.

    Tasks with nothing achievable this week are left out silently; the
    per-task expansions are returned alongside so callers can report
    shortfalls.
    """
    instances: List[TaskInstance] = []
    expansions: Dict[object, Expansion] = {}

    for task in tasks:
        existing = existing_by_task.get(task.id, ExistingSchedule())
        expansion = expand(
            task,
            week_start,
            week_end,
            existing.dates,
            now,
            already_scheduled_count=existing.count,
        )
        expansions[task.id] = expansion
        if expansion.achievable_count == 0:
            logger.debug("Skipping %s: nothing achievable this week", task.name)
            continue

        total = existing.count + len(expansion.assigned_dates)
        for offset, day in enumerate(expansion.assigned_dates):
            number = existing.count + offset + 1
            instances.append(
                TaskInstance(
                    instance_id=f"{task.id}:{day.isoformat()}:{number}",
                    task_id=task.id,
                    task_name=task.name,
                    day=day,
                    instance_number=number,
                    total_instances=total,
                    duration_min=task.duration_min,
                    priority=task.priority,
                    category=task.category,
                    fixed_time=task.fixed_time,
                    preferred_start=task.preferred_start,
                    preferred_end=task.preferred_end,
                )
            )

    instances.sort(key=lambda inst: (inst.priority, inst.day, inst.task_name, inst.instance_number))
    return instances, expansions
