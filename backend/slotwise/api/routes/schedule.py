"""Schedule generation, approval and manual placement routes."""
from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from slotwise.api.errors import to_http
from slotwise.api.schemas.schedule import (
    ApproveScheduleRequest,
    ApproveScheduleResponse,
    AvailableTimeResponse,
    ConflictOut,
    DayAvailabilityOut,
    GenerateScheduleRequest,
    GenerateScheduleResponse,
    PlacementOut,
    QuickFindRequest,
    QuickFindResponse,
    QuickScheduleRequest,
    QuickScheduleResponse,
    ScheduleHealthResponse,
    ShortfallOut,
    SlotOptionOut,
    SlotOut,
    TaskBriefOut,
    WeekOut,
)
from slotwise.core.clock import get_now
from slotwise.db.deps import get_db
from slotwise.observability.metrics import log_metric, timed
from slotwise.observability.tracing import trace
from slotwise.scheduling.optimizer import OptimizerStrategy
from slotwise.services.calendar_provider import CalendarEvent, CalendarEventsProvider, get_calendar_provider
from slotwise.services.errors import SchedulingError
from slotwise.services.llm_optimizer import get_optimizer
from slotwise.services.schedule_service import (
    ApprovedPlacement,
    ScheduleRun,
    approve_schedule,
    available_time,
    find_slot_options,
    generate_schedule,
    placements_for_approval,
    quick_schedule,
    schedule_health,
)
from slotwise.services.user_locks import user_lock

router = APIRouter()


@router.post("/schedule/generate", response_model=GenerateScheduleResponse, tags=["schedule"])
def generate(
    payload: GenerateScheduleRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    calendar_provider: CalendarEventsProvider = Depends(get_calendar_provider),
    optimizer: Optional[OptimizerStrategy] = Depends(get_optimizer),
) -> GenerateScheduleResponse:
    """Plan the requested week; optionally persist the result in the same call."""
    request_id = getattr(http_request.state, "request_id", None)
    week_start = payload.week_start or now.date()
    extra_events = [
        CalendarEvent(
            id=event.id,
            summary=event.summary,
            start=event.start.replace(tzinfo=None),
            end=event.end.replace(tzinfo=None),
            all_day=event.all_day,
        )
        for event in payload.calendar_events
    ]

    scheduled_ids: List[UUID] = []
    try:
        with timed("schedule.generate", metadata={"user_id": str(payload.user_id)}), user_lock(payload.user_id):
            run = generate_schedule(
                db,
                payload.user_id,
                week_start,
                now=now,
                task_ids=payload.task_ids,
                calendar_provider=calendar_provider,
                extra_events=extra_events,
                optimizer=optimizer,
                request_id=request_id,
            )
            if payload.persist:
                result = approve_schedule(
                    db,
                    payload.user_id,
                    placements_for_approval(run),
                    request_id=request_id,
                    action_type="schedule_generated",
                )
                scheduled_ids = [row.id for row in result.created]
    except SchedulingError as exc:
        raise to_http(exc)

    return _serialize_run(run, persisted=payload.persist, scheduled_ids=scheduled_ids, request_id=request_id)


@router.post("/schedule/approve", response_model=ApproveScheduleResponse, tags=["schedule"])
def approve(
    payload: ApproveScheduleRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> ApproveScheduleResponse:
    """Persist placements the user accepted."""
    request_id = getattr(http_request.state, "request_id", None)
    items = [
        ApprovedPlacement(
            task_id=item.task_id,
            day=item.date,
            start_time=item.start_time,
            end_time=item.end_time,
            reasoning=item.reasoning,
        )
        for item in payload.placements
    ]
    try:
        with user_lock(payload.user_id):
            result = approve_schedule(
                db,
                payload.user_id,
                items,
                replace_existing=payload.replace_existing,
                request_id=request_id,
            )
    except SchedulingError as exc:
        raise to_http(exc)

    return ApproveScheduleResponse(
        created=len(result.created),
        removed=result.removed,
        scheduled_task_ids=[row.id for row in result.created],
        message=f"Scheduled {len(result.created)} of {len(items)} task(s)",
        request_id=request_id or "",
    )


@router.post(
    "/schedule/quick",
    response_model=QuickScheduleResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["schedule"],
)
def quick(
    payload: QuickScheduleRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    calendar_provider: CalendarEventsProvider = Depends(get_calendar_provider),
) -> QuickScheduleResponse:
    """Place a task at an exact time; 409 when the time is taken unless the overlap is accepted."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with user_lock(payload.user_id):
            result = quick_schedule(
                db,
                payload.user_id,
                payload.task_id,
                payload.date,
                payload.start_time,
                payload.end_time,
                record_overlap=payload.record_overlap,
                calendar_provider=calendar_provider,
                request_id=request_id,
            )
    except SchedulingError as exc:
        raise to_http(exc)

    row = result.scheduled_task
    return QuickScheduleResponse(
        scheduled_task_id=row.id,
        start_time=row.start_time,
        end_time=row.end_time,
        overlap_minutes=result.overlap_minutes,
        request_id=request_id or "",
    )


@router.get("/schedule/available-time", response_model=AvailableTimeResponse, tags=["schedule"])
def get_available_time(
    http_request: Request,
    user_id: UUID = Query(..., description="User to report on"),
    week_start: Optional[date] = Query(default=None),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    calendar_provider: CalendarEventsProvider = Depends(get_calendar_provider),
) -> AvailableTimeResponse:
    request_id = getattr(http_request.state, "request_id", None)
    try:
        summary = available_time(
            db,
            user_id,
            week_start or now.date(),
            now=now,
            calendar_provider=calendar_provider,
        )
    except SchedulingError as exc:
        raise to_http(exc)

    return AvailableTimeResponse(
        week=WeekOut(start=summary.week_start, end=summary.week_end),
        days=[
            DayAvailabilityOut(
                date=day.day,
                free_minutes=day.free_minutes,
                slots=[
                    SlotOut(
                        start=slot.start.strftime("%H:%M"),
                        end=slot.end.strftime("%H:%M"),
                        minutes=slot.duration_minutes,
                    )
                    for slot in day.slots
                ],
            )
            for day in summary.days
        ],
        total_free_minutes=summary.total_free_minutes,
        required_minutes=summary.required_minutes,
        fits=summary.fits,
        request_id=request_id or "",
    )


@router.post("/schedule/quick-find", response_model=QuickFindResponse, tags=["schedule"])
def quick_find(
    payload: QuickFindRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    calendar_provider: CalendarEventsProvider = Depends(get_calendar_provider),
) -> QuickFindResponse:
    """Suggest free times for the sessions a task still needs this week."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with trace(
            "schedule.quick_find",
            metadata={"task_id": str(payload.task_id)},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            result = find_slot_options(
                db,
                payload.user_id,
                payload.task_id,
                payload.week_start or now.date(),
                now=now,
                calendar_provider=calendar_provider,
            )
    except SchedulingError as exc:
        raise to_http(exc)

    task = result.task
    return QuickFindResponse(
        success=result.slots_needed == 0 or bool(result.options),
        message=result.message,
        task=TaskBriefOut(id=task.id, name=task.name, duration_min=task.duration_min, category=task.category),
        options=[
            SlotOptionOut(
                date=option.day,
                day_name=option.day.strftime("%A"),
                start_time=option.start.strftime("%H:%M"),
                end_time=option.end.strftime("%H:%M"),
                score=option.score,
            )
            for option in result.options
        ],
        slots_needed=result.slots_needed,
        found_slots=len(result.options),
        already_scheduled=result.already_scheduled,
        is_fixed_schedule=result.is_fixed,
        frequency=result.frequency_label,
        request_id=request_id or "",
    )


@router.get("/schedule/health", response_model=ScheduleHealthResponse, tags=["schedule"])
def get_schedule_health(
    http_request: Request,
    user_id: UUID = Query(..., description="User to report on"),
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
) -> ScheduleHealthResponse:
    request_id = getattr(http_request.state, "request_id", None)
    try:
        health = schedule_health(db, user_id, now=now)
    except SchedulingError as exc:
        raise to_http(exc)

    log_metric("schedule.health.overlaps", health.overlaps_this_week, metadata={"user_id": str(user_id)})
    return ScheduleHealthResponse(
        week=WeekOut(start=health.week_start, end=health.week_start + timedelta(days=6)),
        overlaps_this_week=health.overlaps_this_week,
        overlaps_last_week=health.overlaps_last_week,
        skipped_tasks_this_week=health.skipped_this_week,
        completed_tasks_this_week=health.completed_this_week,
        overlapped_and_skipped=health.overlapped_and_skipped,
        impact_percentage=health.impact_percentage,
        insight=health.insight,
        severity=health.severity,
        request_id=request_id or "",
    )


def _serialize_run(
    run: ScheduleRun,
    *,
    persisted: bool,
    scheduled_ids: List[UUID],
    request_id: Optional[str],
) -> GenerateScheduleResponse:
    placements = [
        PlacementOut(
            task_id=placement.instance.task_id,
            task_name=placement.instance.task_name,
            date=placement.instance.day,
            start_time=placement.start.strftime("%H:%M"),
            end_time=placement.end.strftime("%H:%M"),
            reasoning=placement.reasoning,
            instance_number=placement.instance.instance_number,
            total_instances=placement.instance.total_instances,
            source=placement.source,
        )
        for placement in run.placements
    ]
    conflicts = [
        ConflictOut(
            task_id=conflict.instance.task_id,
            task_name=conflict.instance.task_name,
            date=conflict.instance.day,
            reason=conflict.reason,
            alternatives=list(conflict.alternatives),
        )
        for conflict in run.conflicts
    ]
    shortfalls: List[Dict[str, Any]] = run.shortfalls
    return GenerateScheduleResponse(
        placements=placements,
        conflicts=conflicts,
        shortfalls=[ShortfallOut(**item) for item in shortfalls],
        summary=run.summary,
        week=WeekOut(start=run.week_start, end=run.week_end),
        optimizer=run.optimizer,
        persisted=persisted,
        scheduled_task_ids=scheduled_ids,
        request_id=request_id or "",
    )
