"""Schedule generation, approval and manual placement."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from slotwise.db.models.agent_action_log import AgentActionLog
from slotwise.db.models.schedule_overlap import ScheduleOverlap
from slotwise.db.models.scheduled_task import ScheduledTask
from slotwise.db.models.task import Task
from slotwise.db.models.user import User
from slotwise.observability.metrics import log_metric
from slotwise.observability.tracing import trace
from slotwise.scheduling.availability import (
    SchedulingContext,
    blocked_minutes,
    free_minutes,
    validate_time_in_slots,
)
from slotwise.scheduling.optimizer import OptimizerStrategy, build_batch, collect_proposals
from slotwise.scheduling.recurrence import ExistingSchedule, expand, expand_tasks
from slotwise.scheduling.reconcile import reconcile
from slotwise.scheduling.types import (
    BlockKind,
    BlockedInterval,
    ConflictOutcome,
    FrequencyPeriod,
    Placement,
    SchedulingMode,
    TaskSpec,
    TimeSlot,
)
from slotwise.services.blocked_times import blocked_times_for_range, load_profile
from slotwise.services.calendar_provider import (
    CachedCalendarProvider,
    CalendarEvent,
    CalendarEventsProvider,
    NullCalendarProvider,
    events_to_blocks,
)
from slotwise.services.errors import InvalidTaskError, NotFoundError, OwnershipError, SlotUnavailableError
from slotwise.services.preferences import apply_preferences, load_preferences, preferences_for_optimizer

logger = logging.getLogger(__name__)


def week_bounds(day: date) -> Tuple[date, date]:
    """Monday and Sunday of the week containing ``day``."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


@dataclass
class ScheduleRun:
    user_id: UUID
    week_start: date
    week_end: date
    placements: List[Placement]
    conflicts: List[ConflictOutcome]
    shortfalls: List[Dict[str, Any]] = field(default_factory=list)
    optimizer: str = "none"
    optimizer_accepted: int = 0
    tasks_considered: int = 0

    @property
    def summary(self) -> str:
        parts = [f"Scheduled {len(self.placements)} session(s) for the week of {self.week_start.isoformat()}"]
        if self.conflicts:
            parts.append(f"{len(self.conflicts)} could not be placed")
        if self.shortfalls:
            parts.append(f"{len(self.shortfalls)} task(s) asked for more sessions than days remain")
        return "; ".join(parts) + "."


@dataclass(frozen=True)
class ApprovedPlacement:
    task_id: UUID
    day: date
    start_time: time
    end_time: time
    reasoning: Optional[str] = None


@dataclass
class ApproveResult:
    created: List[ScheduledTask]
    removed: int
    weeks: List[date]


@dataclass
class QuickScheduleResult:
    scheduled_task: ScheduledTask
    overlap_minutes: int = 0


def task_to_spec(task: Task) -> TaskSpec:
    return TaskSpec(
        id=task.id,
        name=task.name,
        duration_min=int(task.duration_min),
        priority=int(task.priority if task.priority is not None else 3),
        category=task.category or "goal",
        mode=SchedulingMode(task.scheduling_mode or SchedulingMode.FLEXIBLE.value),
        fixed_days=tuple(task.fixed_days or ()),
        fixed_time=task.fixed_time,
        frequency=int(task.frequency or 1),
        frequency_period=FrequencyPeriod(task.frequency_period or FrequencyPeriod.WEEK.value),
        required_days=tuple(task.required_days or ()),
        preferred_start=task.preferred_time_start,
        preferred_end=task.preferred_time_end,
    )


def get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def ensure_task_access(task: Optional[Task], user: User) -> Task:
    if task is None:
        raise NotFoundError("Task not found")
    if task.user_id == user.id:
        return task
    if user.family_id is not None and task.family_id == user.family_id:
        return task
    raise OwnershipError("Task does not belong to user")


def _visible_tasks_query(db: Session, user: User):
    query = db.query(Task).filter(Task.is_active.is_(True))
    if user.family_id is not None:
        return query.filter(or_(Task.user_id == user.id, Task.family_id == user.family_id))
    return query.filter(Task.user_id == user.id)


def _existing_rows(db: Session, user_id: UUID, start: date, end: date) -> List[ScheduledTask]:
    return (
        db.query(ScheduledTask)
        .filter(
            ScheduledTask.assigned_to_user_id == user_id,
            ScheduledTask.scheduled_date >= start,
            ScheduledTask.scheduled_date <= end,
            ScheduledTask.status != "skipped",
        )
        .order_by(ScheduledTask.start_time)
        .all()
    )


def _row_block(row: ScheduledTask) -> BlockedInterval:
    name = row.task.name if row.task is not None else "task"
    return BlockedInterval(row.start_time, row.end_time, f"Scheduled: {name}", BlockKind.SCHEDULED)


def build_context(
    db: Session,
    user: User,
    start: date,
    end: date,
    *,
    calendar_provider: Optional[CalendarEventsProvider] = None,
    extra_events: Sequence[CalendarEvent] = (),
    existing: Optional[Sequence[ScheduledTask]] = None,
    not_before: Optional[datetime] = None,
) -> SchedulingContext:
    """Snapshot every blocking interval for ``[start, end]``."""
    profile = load_profile(db, user, from_date=start)
    blocks: List[BlockedInterval] = blocked_times_for_range(profile, start, end)

    provider = calendar_provider or NullCalendarProvider()
    events = list(provider.fetch(user.id, start, end)) + list(extra_events)
    blocks.extend(events_to_blocks(events))

    rows = existing if existing is not None else _existing_rows(db, user.id, start, end)
    blocks.extend(_row_block(row) for row in rows)

    return SchedulingContext(
        blocked=tuple(blocks),
        day_start_hour=profile.day_start_hour,
        day_end_hour=profile.day_end_hour,
        not_before=not_before,
    )


def _existing_by_task(rows: Iterable[ScheduledTask]) -> Dict[Any, ExistingSchedule]:
    counts: Dict[Any, int] = {}
    dates: Dict[Any, set] = {}
    for row in rows:
        counts[row.task_id] = counts.get(row.task_id, 0) + 1
        dates.setdefault(row.task_id, set()).add(row.scheduled_date)
    return {task_id: ExistingSchedule(count=counts[task_id], dates=frozenset(dates[task_id])) for task_id in counts}


def generate_schedule(
    db: Session,
    user_id: UUID,
    week_start: date,
    *,
    now: datetime,
    task_ids: Optional[Sequence[UUID]] = None,
    calendar_provider: Optional[CalendarEventsProvider] = None,
    extra_events: Sequence[CalendarEvent] = (),
    optimizer: Optional[OptimizerStrategy] = None,
    request_id: Optional[str] = None,
) -> ScheduleRun:
    """Expand, propose, validate and fill one user's week. Nothing is written."""
    user = get_user_or_404(db, user_id)
    monday, sunday = week_bounds(week_start)

    query = _visible_tasks_query(db, user)
    if task_ids:
        query = query.filter(Task.id.in_(list(task_ids)))
    tasks = query.order_by(Task.priority, Task.name).all()

    existing_rows = _existing_rows(db, user_id, monday, sunday)
    provider = CachedCalendarProvider(calendar_provider or NullCalendarProvider())
    context = build_context(
        db,
        user,
        monday,
        sunday,
        calendar_provider=provider,
        extra_events=extra_events,
        existing=existing_rows,
        not_before=now,
    )

    preferences = load_preferences(db, user_id)
    specs = apply_preferences([task_to_spec(task) for task in tasks], preferences)
    optimizer_name = getattr(optimizer, "name", "none") if optimizer is not None else "none"

    metadata = {
        "route": "/schedule/generate",
        "week_start": monday.isoformat(),
        "tasks": len(specs),
        "optimizer": optimizer_name,
    }
    with trace("schedule.generate", metadata=metadata, user_id=str(user_id), request_id=request_id):
        instances, expansions = expand_tasks(specs, monday, sunday, _existing_by_task(existing_rows), now)
        batch = build_batch(
            instances,
            context,
            monday,
            sunday,
            preferences=preferences_for_optimizer(preferences),
        )
        proposals = collect_proposals(optimizer, batch)
        outcomes = reconcile(proposals, instances, context)

    placements = [outcome for outcome in outcomes if not outcome.is_conflict]
    conflicts = [outcome for outcome in outcomes if outcome.is_conflict]
    shortfalls = [
        {
            "task_id": spec.id,
            "task_name": spec.name,
            "requested": spec.frequency,
            "placeable": expansions[spec.id].achievable_count,
            "missing": expansions[spec.id].shortfall,
        }
        for spec in specs
        if expansions[spec.id].shortfall > 0
    ]
    optimizer_accepted = sum(1 for placement in placements if placement.source == "optimizer")

    logger.info(
        "Generated schedule for %s week %s: %s placed, %s conflicts, %s/%s proposals accepted",
        user_id,
        monday,
        len(placements),
        len(conflicts),
        optimizer_accepted,
        len(proposals),
    )
    log_metric("schedule.generate.placements", len(placements), metadata={"user_id": str(user_id)})
    log_metric("schedule.generate.conflicts", len(conflicts), metadata={"user_id": str(user_id)})
    log_metric(
        "schedule.generate.optimizer_accepted",
        optimizer_accepted,
        metadata={"user_id": str(user_id), "optimizer": optimizer_name},
    )

    return ScheduleRun(
        user_id=user_id,
        week_start=monday,
        week_end=sunday,
        placements=placements,
        conflicts=conflicts,
        shortfalls=shortfalls,
        optimizer=optimizer_name,
        optimizer_accepted=optimizer_accepted,
        tasks_considered=len(specs),
    )


def placements_for_approval(run: ScheduleRun) -> List[ApprovedPlacement]:
    return [
        ApprovedPlacement(
            task_id=placement.instance.task_id,
            day=placement.instance.day,
            start_time=placement.start.time(),
            end_time=placement.end.time(),
            reasoning=placement.reasoning,
        )
        for placement in run.placements
    ]


def approve_schedule(
    db: Session,
    user_id: UUID,
    items: Sequence[ApprovedPlacement],
    *,
    replace_existing: bool = False,
    request_id: Optional[str] = None,
    action_type: str = "schedule_approved",
) -> ApproveResult:
    """Write placements as scheduled tasks in a single transaction."""
    user = get_user_or_404(db, user_id)
    weeks = sorted({week_bounds(item.day)[0] for item in items})

    try:
        with trace(
            "schedule.approve",
            metadata={"items": len(items), "replace_existing": replace_existing, "weeks": [w.isoformat() for w in weeks]},
            user_id=str(user_id),
            request_id=request_id,
        ):
            tasks: Dict[UUID, Task] = {}
            for item in items:
                if item.task_id not in tasks:
                    tasks[item.task_id] = ensure_task_access(db.get(Task, item.task_id), user)
                if datetime.combine(item.day, item.end_time) <= datetime.combine(item.day, item.start_time):
                    raise InvalidTaskError("end_time must be after start_time", details={"task_id": str(item.task_id)})

            removed = 0
            if replace_existing:
                for monday in weeks:
                    removed += (
                        db.query(ScheduledTask)
                        .filter(
                            ScheduledTask.assigned_to_user_id == user_id,
                            ScheduledTask.scheduled_date >= monday,
                            ScheduledTask.scheduled_date <= monday + timedelta(days=6),
                            ScheduledTask.status == "pending",
                            ScheduledTask.was_manually_moved.is_(False),
                        )
                        .delete(synchronize_session=False)
                    )

            created: List[ScheduledTask] = []
            for item in items:
                row = ScheduledTask(
                    task_id=item.task_id,
                    assigned_to_user_id=user_id,
                    scheduled_date=item.day,
                    start_time=datetime.combine(item.day, item.start_time),
                    end_time=datetime.combine(item.day, item.end_time),
                    status="pending",
                    reasoning=item.reasoning,
                )
                db.add(row)
                created.append(row)

            for monday in weeks:
                db.add(
                    AgentActionLog(
                        user_id=user_id,
                        action_type=action_type,
                        action_payload={
                            "week_of": monday.isoformat(),
                            "scheduled": sum(1 for item in items if week_bounds(item.day)[0] == monday),
                            "replaced": removed,
                            "request_id": request_id,
                        },
                        reason="Schedule written",
                        week_of=monday,
                    )
                )
            db.commit()
    except Exception:
        db.rollback()
        raise

    for row in created:
        db.refresh(row)
    log_metric("schedule.approve.created", len(created), metadata={"user_id": str(user_id)})
    return ApproveResult(created=created, removed=removed, weeks=weeks)


def quick_schedule(
    db: Session,
    user_id: UUID,
    task_id: UUID,
    day: date,
    start_time: time,
    end_time: time,
    *,
    record_overlap: bool = False,
    calendar_provider: Optional[CalendarEventsProvider] = None,
    request_id: Optional[str] = None,
) -> QuickScheduleResult:
    """Place one task at an exact time chosen by the user."""
    user = get_user_or_404(db, user_id)
    task = ensure_task_access(db.get(Task, task_id), user)
    start = datetime.combine(day, start_time)
    end = datetime.combine(day, end_time)
    if end <= start:
        raise InvalidTaskError("end_time must be after start_time")

    context = build_context(db, user, day, day, calendar_provider=calendar_provider)
    intersecting = [block for block in context.blocks_for(day) if block.start < end and block.end > start]
    overlap = blocked_minutes(intersecting, start, end)
    window_start, window_end = context.window(day)
    if not record_overlap:
        if overlap:
            raise SlotUnavailableError(
                "The requested time is not free",
                details={
                    "overlap_minutes": overlap,
                    "conflicting": [
                        {"reason": block.reason, "start": block.start.isoformat(), "end": block.end.isoformat()}
                        for block in intersecting
                    ],
                },
            )
        if start < window_start or end > window_end:
            raise SlotUnavailableError(
                "The requested time is outside your available hours",
                details={
                    "overlap_minutes": 0,
                    "available_start": window_start.strftime("%H:%M"),
                    "available_end": window_end.strftime("%H:%M"),
                },
            )

    try:
        with trace(
            "schedule.quick",
            metadata={"task_id": str(task_id), "date": day.isoformat(), "overlap_minutes": overlap},
            user_id=str(user_id),
            request_id=request_id,
        ):
            row = ScheduledTask(
                task_id=task.id,
                assigned_to_user_id=user_id,
                scheduled_date=day,
                start_time=start,
                end_time=end,
                status="pending",
                reasoning="Manually scheduled",
            )
            db.add(row)
            db.flush()
            if overlap:
                db.add(
                    ScheduleOverlap(
                        user_id=user_id,
                        scheduled_task_id=row.id,
                        overlap_minutes=overlap,
                        week_of=week_bounds(day)[0],
                    )
                )
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    log_metric("schedule.quick.success", 1, metadata={"user_id": str(user_id), "overlap": bool(overlap)})
    return QuickScheduleResult(scheduled_task=row, overlap_minutes=overlap)


@dataclass
class DayAvailability:
    day: date
    free_minutes: int
    slots: Tuple[TimeSlot, ...]


@dataclass
class AvailableTimeSummary:
    week_start: date
    week_end: date
    days: List[DayAvailability]
    required_minutes: int

    @property
    def total_free_minutes(self) -> int:
        return sum(day.free_minutes for day in self.days)

    @property
    def fits(self) -> bool:
        return self.required_minutes <= self.total_free_minutes


def available_time(
    db: Session,
    user_id: UUID,
    week_start: date,
    *,
    now: datetime,
    calendar_provider: Optional[CalendarEventsProvider] = None,
) -> AvailableTimeSummary:
    """Free minutes for each remaining day against what active tasks still need."""
    user = get_user_or_404(db, user_id)
    monday, sunday = week_bounds(week_start)
    existing_rows = _existing_rows(db, user_id, monday, sunday)
    context = build_context(
        db,
        user,
        monday,
        sunday,
        calendar_provider=calendar_provider,
        existing=existing_rows,
        not_before=now,
    )

    days: List[DayAvailability] = []
    day = max(monday, now.date())
    while day <= sunday:
        slots = context.availability(day)
        days.append(DayAvailability(day=day, free_minutes=free_minutes(slots), slots=slots))
        day += timedelta(days=1)

    specs = apply_preferences(
        [task_to_spec(task) for task in _visible_tasks_query(db, user).all()],
        load_preferences(db, user_id),
    )
    instances, _ = expand_tasks(specs, monday, sunday, _existing_by_task(existing_rows), now)
    required = sum(instance.duration_min for instance in instances)
    return AvailableTimeSummary(week_start=monday, week_end=sunday, days=days, required_minutes=required)


@dataclass(frozen=True)
class SlotOption:
    day: date
    start: datetime
    end: datetime
    score: int


@dataclass
class SlotOptionsResult:
    task: Task
    options: List[SlotOption]
    slots_needed: int
    already_scheduled: int
    is_fixed: bool
    frequency_label: str

    @property
    def message(self) -> str:
        if self.slots_needed == 0:
            return "Task is already fully scheduled for this week"
        if not self.options:
            return "No available time slots found this week"
        return f"Found {len(self.options)} of {self.slots_needed} slot(s)"


def _score_option(spec: TaskSpec, start: datetime, today: date) -> int:
    score = 100
    hour = start.hour
    if spec.category == "goal":
        if 8 <= hour <= 12:
            score += 20
        elif 14 <= hour <= 17:
            score += 10
    elif 14 <= hour <= 19:
        score += 15
    if spec.preferred_start is not None and spec.preferred_end is not None:
        if spec.preferred_start <= start.time() < spec.preferred_end:
            score += 25
    return score - (start.date() - today).days * 3


def _flexible_start(spec: TaskSpec, slot: TimeSlot) -> datetime:
    """Slot start, pushed into the preferred window when the task still fits there."""
    if spec.preferred_start is None or spec.preferred_end is None:
        return slot.start
    preferred = max(slot.start, datetime.combine(slot.start.date(), spec.preferred_start))
    within_window = preferred.time() < spec.preferred_end
    if within_window and preferred + timedelta(minutes=spec.duration_min) <= slot.end:
        return preferred
    return slot.start


def _pick_options(candidates: Sequence[SlotOption], needed: int, *, spread_days: bool) -> List[SlotOption]:
    ranked = sorted(candidates, key=lambda option: (-option.score, option.start))
    if not spread_days:
        return ranked[:needed]
    picked: List[SlotOption] = []
    used_days = set()
    for option in ranked:
        if len(picked) >= needed:
            break
        if option.day not in used_days:
            picked.append(option)
            used_days.add(option.day)
    for option in ranked:
        if len(picked) >= needed:
            break
        if option not in picked:
            picked.append(option)
    return picked


def find_slot_options(
    db: Session,
    user_id: UUID,
    task_id: UUID,
    week_start: date,
    *,
    now: datetime,
    calendar_provider: Optional[CalendarEventsProvider] = None,
) -> SlotOptionsResult:
    """Rank free times for one task's remaining sessions this week. Nothing is written."""
    user = get_user_or_404(db, user_id)
    task = ensure_task_access(db.get(Task, task_id), user)
    monday, sunday = week_bounds(week_start)

    existing_rows = _existing_rows(db, user_id, monday, sunday)
    task_rows = (
        db.query(ScheduledTask)
        .filter(
            ScheduledTask.task_id == task.id,
            ScheduledTask.scheduled_date >= monday,
            ScheduledTask.scheduled_date <= sunday,
            ScheduledTask.status != "skipped",
        )
        .all()
    )
    context = build_context(
        db,
        user,
        monday,
        sunday,
        calendar_provider=calendar_provider,
        existing=existing_rows,
        not_before=now,
    )
    (spec,) = apply_preferences([task_to_spec(task)], load_preferences(db, user_id))
    expansion = expand(
        spec,
        monday,
        sunday,
        {row.scheduled_date for row in task_rows},
        now,
        already_scheduled_count=len(task_rows),
    )

    candidates: List[SlotOption] = []
    length = timedelta(minutes=spec.duration_min)
    today = now.date()
    for day in expansion.candidate_dates if expansion.achievable_count else ():
        slots = context.availability(day)
        if spec.fixed_time is not None:
            start = datetime.combine(day, spec.fixed_time)
            if validate_time_in_slots(slots, start, start + length):
                candidates.append(SlotOption(day=day, start=start, end=start + length, score=200 - day.weekday()))
            continue
        for slot in slots:
            if slot.duration_minutes < spec.duration_min:
                continue
            start = _flexible_start(spec, slot)
            candidates.append(SlotOption(day=day, start=start, end=start + length, score=_score_option(spec, start, today)))

    options = _pick_options(candidates, expansion.achievable_count, spread_days=not spec.is_fixed)
    options.sort(key=lambda option: option.start)
    logger.debug(
        "Slot options for %s: needed=%s candidates=%s picked=%s",
        task.name,
        expansion.achievable_count,
        len(candidates),
        len(options),
    )

    period = "daily" if spec.frequency_period == FrequencyPeriod.DAY else "weekly"
    return SlotOptionsResult(
        task=task,
        options=options,
        slots_needed=expansion.achievable_count,
        already_scheduled=len(task_rows),
        is_fixed=spec.is_fixed,
        frequency_label=f"{spec.frequency}x {period}",
    )


@dataclass
class ScheduleHealth:
    week_start: date
    overlaps_this_week: int
    overlaps_last_week: int
    skipped_this_week: int
    completed_this_week: int
    overlapped_and_skipped: int

    @property
    def impact_percentage(self) -> int:
        finished = self.completed_this_week + self.skipped_this_week
        if not finished:
            return 0
        return round(self.overlapped_and_skipped / finished * 100)

    @property
    def severity(self) -> str:
        if self.overlaps_this_week <= 2:
            return "low"
        if self.overlaps_this_week <= 5:
            return "medium"
        return "high"

    @property
    def insight(self) -> str:
        count = self.overlaps_this_week
        if count == 0:
            text = "Your schedule is balanced. No accepted overlaps this week."
        elif count <= 2:
            text = f"{count} accepted overlap(s) this week. Minor, but worth reviewing."
        elif count <= 5:
            text = f"{count} accepted overlaps this week. Conflicts at this level often lead to dropped tasks."
        else:
            text = f"{count} accepted overlaps this week."
            if self.overlapped_and_skipped:
                text += f" {self.overlapped_and_skipped} of them were already skipped."
            text += " The week needs rebalancing."
        last = self.overlaps_last_week
        if last and count < last:
            text += f" Down from {last} last week."
        elif last and count > last:
            text += f" Up from {last} last week."
        return text


def schedule_health(db: Session, user_id: UUID, *, now: datetime) -> ScheduleHealth:
    """Accepted overlaps this week against last week, with how the week's sessions ended."""
    get_user_or_404(db, user_id)
    monday, sunday = week_bounds(now.date())
    last_monday = monday - timedelta(days=7)

    overlaps = db.query(ScheduleOverlap).filter(ScheduleOverlap.user_id == user_id)
    this_week = overlaps.filter(ScheduleOverlap.week_of >= monday, ScheduleOverlap.week_of <= sunday)
    last_week = overlaps.filter(ScheduleOverlap.week_of >= last_monday, ScheduleOverlap.week_of < monday)
    overlapped_and_skipped = (
        this_week.join(ScheduledTask, ScheduledTask.id == ScheduleOverlap.scheduled_task_id)
        .filter(ScheduledTask.status == "skipped")
        .count()
    )

    week_rows = db.query(ScheduledTask).filter(
        ScheduledTask.assigned_to_user_id == user_id,
        ScheduledTask.scheduled_date >= monday,
        ScheduledTask.scheduled_date <= sunday,
    )
    return ScheduleHealth(
        week_start=monday,
        overlaps_this_week=this_week.count(),
        overlaps_last_week=last_week.count(),
        skipped_this_week=week_rows.filter(ScheduledTask.status == "skipped").count(),
        completed_this_week=week_rows.filter(ScheduledTask.status == "completed").count(),
        overlapped_and_skipped=overlapped_and_skipped,
    )
