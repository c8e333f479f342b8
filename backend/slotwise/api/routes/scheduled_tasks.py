"""Scheduled task listing, status changes and manual moves."""
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import asc, or_
from sqlalchemy.orm import Session

from slotwise.api.errors import to_http
from slotwise.api.schemas.scheduled_task import (
    ConflictRecordOut,
    MoveConflictOut,
    MoveRequest,
    MoveResponse,
    ScheduledTaskOut,
    ScheduledTaskStatusUpdate,
    TimeRange,
)
from slotwise.db.deps import get_db
from slotwise.db.models.schedule_conflict import ScheduleConflict
from slotwise.db.models.scheduled_task import ScheduledTask
from slotwise.observability.metrics import log_metric
from slotwise.observability.tracing import trace
from slotwise.scheduling.move_conflicts import MoveConflict, MoveResolution
from slotwise.services.errors import SchedulingError
from slotwise.services.move_service import move_scheduled_instance
from slotwise.services.user_locks import user_lock

router = APIRouter()


@router.get("/scheduled-tasks", response_model=List[ScheduledTaskOut], tags=["scheduled-tasks"])
def list_scheduled_tasks(
    http_request: Request,
    user_id: UUID = Query(..., description="User the instances are assigned to"),
    from_: Optional[date] = Query(default=None, alias="from"),
    to: Optional[date] = Query(default=None),
    include_skipped: bool = Query(default=False),
    db: Session = Depends(get_db),
) -> List[ScheduledTaskOut]:
    request_id = getattr(http_request.state, "request_id", None)
    with trace(
        "scheduled_tasks.list",
        metadata={"route": "/scheduled-tasks", "from": str(from_), "to": str(to)},
        user_id=str(user_id),
        request_id=request_id,
    ):
        query = db.query(ScheduledTask).filter(ScheduledTask.assigned_to_user_id == user_id)
        if from_:
            query = query.filter(ScheduledTask.scheduled_date >= from_)
        if to:
            query = query.filter(ScheduledTask.scheduled_date <= to)
        if not include_skipped:
            query = query.filter(ScheduledTask.status != "skipped")
        rows = query.order_by(asc(ScheduledTask.start_time)).all()

    log_metric("scheduled_tasks.list.count", len(rows), metadata={"user_id": str(user_id)})
    return [serialize_scheduled_task(row) for row in rows]


@router.patch("/scheduled-tasks/{scheduled_task_id}", response_model=ScheduledTaskOut, tags=["scheduled-tasks"])
def update_scheduled_task_status(
    scheduled_task_id: UUID,
    payload: ScheduledTaskStatusUpdate,
    db: Session = Depends(get_db),
) -> ScheduledTaskOut:
    """Mark an instance completed, skipped or pending again."""
    row = db.get(ScheduledTask, scheduled_task_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scheduled task not found")
    if row.assigned_to_user_id != payload.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Scheduled task does not belong to user")

    try:
        row.status = payload.status
        db.add(row)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(row)
    log_metric("scheduled_tasks.status", 1, metadata={"status": payload.status})
    return serialize_scheduled_task(row)


@router.post("/scheduled-tasks/{scheduled_task_id}/move", response_model=MoveResponse, tags=["scheduled-tasks"])
def move_scheduled_task(
    scheduled_task_id: UUID,
    payload: MoveRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> MoveResponse:
    """Preview a move, or apply it once the caller confirms the collisions."""
    request_id = getattr(http_request.state, "request_id", None)
    try:
        with user_lock(payload.user_id):
            outcome = move_scheduled_instance(
                db,
                scheduled_task_id,
                payload.user_id,
                payload.new_start,
                payload.new_end,
                confirmed=payload.confirmed,
                reason=payload.reason,
                request_id=request_id,
            )
    except SchedulingError as exc:
        raise to_http(exc)

    return MoveResponse(
        applied=outcome.applied,
        requires_confirmation=outcome.requires_confirmation,
        conflicts=[_serialize_conflict(conflict) for conflict in outcome.conflicts],
        conflicts_resolved=len(outcome.conflicts) if outcome.applied else 0,
        message=outcome.message,
        scheduled_task=serialize_scheduled_task(outcome.scheduled_task),
        request_id=request_id or "",
    )


@router.get(
    "/scheduled-tasks/{scheduled_task_id}/conflicts",
    response_model=List[ConflictRecordOut],
    tags=["scheduled-tasks"],
)
def list_move_history(
    scheduled_task_id: UUID,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> List[ConflictRecordOut]:
    row = db.get(ScheduledTask, scheduled_task_id)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scheduled task not found")
    if row.assigned_to_user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Scheduled task does not belong to user")

    records = (
        db.query(ScheduleConflict)
        .filter(
            or_(
                ScheduleConflict.moved_scheduled_task_id == scheduled_task_id,
                ScheduleConflict.affected_scheduled_task_id == scheduled_task_id,
            )
        )
        .order_by(asc(ScheduleConflict.created_at))
        .all()
    )
    return [
        ConflictRecordOut(
            id=record.id,
            week_of=record.week_of,
            resolution=record.resolution,
            affected_scheduled_task_id=record.affected_scheduled_task_id,
            original_start=record.original_start,
            original_end=record.original_end,
            new_start=record.new_start,
            new_end=record.new_end,
            affected_new_start=record.affected_new_start,
            affected_new_end=record.affected_new_end,
            user_accepted=bool(record.user_accepted),
            created_at=record.created_at,
        )
        for record in records
    ]


def serialize_scheduled_task(row: ScheduledTask) -> ScheduledTaskOut:
    return ScheduledTaskOut(
        id=row.id,
        task_id=row.task_id,
        task_name=row.task.name if row.task is not None else "",
        scheduled_date=row.scheduled_date,
        start_time=row.start_time,
        end_time=row.end_time,
        status=row.status,
        reasoning=row.reasoning,
        was_manually_moved=bool(row.was_manually_moved),
        original_start_time=row.original_start_time,
        original_end_time=row.original_end_time,
        was_shortened=bool(row.was_shortened),
        original_duration_min=row.original_duration_min,
    )


def _serialize_conflict(conflict: MoveConflict) -> MoveConflictOut:
    resolution = None
    if conflict.resolution == MoveResolution.SHORTENED:
        resolution = TimeRange(start=conflict.new_start, end=conflict.new_end)
    return MoveConflictOut(
        type=conflict.resolution.value,
        scheduled_task_id=conflict.sibling.id,
        task_name=conflict.sibling.name,
        original_time=TimeRange(start=conflict.sibling.start, end=conflict.sibling.end),
        resolution=resolution,
        overlap_minutes=conflict.overlap_minutes,
        description=conflict.description,
    )
