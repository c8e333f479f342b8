"""Task definition API routes."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy import asc, or_
from sqlalchemy.orm import Session

from slotwise.api.schemas.task import TaskCreateRequest, TaskSummary, TaskUpdateRequest
from slotwise.db.deps import get_db
from slotwise.db.models.agent_action_log import AgentActionLog
from slotwise.db.models.task import Task
from slotwise.db.models.user import User
from slotwise.observability.metrics import log_metric
from slotwise.observability.tracing import trace
from slotwise.services.user_service import get_or_create_user

router = APIRouter()

_UPDATABLE_FIELDS = (
    "name",
    "category",
    "duration_min",
    "priority",
    "scheduling_mode",
    "fixed_days",
    "fixed_time",
    "frequency",
    "frequency_period",
    "required_days",
    "preferred_time_start",
    "preferred_time_end",
    "family_id",
    "is_active",
)


@router.post("/tasks", response_model=TaskSummary, status_code=status.HTTP_201_CREATED, tags=["tasks"])
def create_task(
    payload: TaskCreateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskSummary:
    """Create a recurring or one-off task definition."""
    request_id = getattr(http_request.state, "request_id", None)
    start_time = datetime.now(timezone.utc)
    try:
        with trace(
            "task.create",
            metadata={
                "route": "/tasks",
                "mode": payload.scheduling_mode,
                "frequency": payload.frequency,
                "request_id": request_id,
            },
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            get_or_create_user(db, payload.user_id)
            task = Task(
                user_id=payload.user_id,
                family_id=payload.family_id,
                name=payload.name.strip(),
                category=payload.category,
                duration_min=payload.duration_min,
                priority=payload.priority,
                scheduling_mode=payload.scheduling_mode,
                fixed_days=payload.fixed_days or [],
                fixed_time=payload.fixed_time,
                frequency=payload.frequency,
                frequency_period=payload.frequency_period,
                required_days=payload.required_days or [],
                preferred_time_start=payload.preferred_time_start,
                preferred_time_end=payload.preferred_time_end,
                is_active=True,
            )
            db.add(task)
            db.flush()
            db.add(
                AgentActionLog(
                    user_id=payload.user_id,
                    action_type="task_created",
                    action_payload={"task_id": str(task.id), "request_id": request_id},
                    reason="Task definition created",
                )
            )
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(task)
    latency_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
    log_metric("task.create.success", 1, metadata={"user_id": str(payload.user_id)})
    log_metric("task.create.latency_ms", latency_ms, metadata={"task_id": str(task.id)})
    return _serialize_task(task)


@router.get("/tasks", response_model=List[TaskSummary], tags=["tasks"])
def list_tasks(
    http_request: Request,
    user_id: UUID = Query(..., description="User ID owning the tasks"),
    status: str = Query("active", pattern="^(active|inactive|all)$"),
    db: Session = Depends(get_db),
) -> List[TaskSummary]:
    """List a user's task definitions, including shared family tasks."""
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/tasks",
        "user_id": str(user_id),
        "status": status,
        "request_id": request_id,
    }
    with trace("task.list", metadata=metadata, user_id=str(user_id), request_id=request_id):
        user = db.get(User, user_id)
        query = db.query(Task)
        if user is not None and user.family_id is not None:
            query = query.filter(or_(Task.user_id == user_id, Task.family_id == user.family_id))
        else:
            query = query.filter(Task.user_id == user_id)
        if status == "active":
            query = query.filter(Task.is_active.is_(True))
        elif status == "inactive":
            query = query.filter(Task.is_active.is_(False))
        tasks = query.order_by(asc(Task.priority), asc(Task.name), asc(Task.created_at)).all()

    log_metric("task.list.count", len(tasks), metadata={"user_id": str(user_id), "status": status})
    return [_serialize_task(task) for task in tasks]


@router.patch("/tasks/{task_id}", response_model=TaskSummary, tags=["tasks"])
def update_task(
    task_id: UUID,
    payload: TaskUpdateRequest,
    http_request: Request,
    db: Session = Depends(get_db),
) -> TaskSummary:
    """Update fields of a task definition. Already scheduled instances are left as they are."""
    task = db.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    if task.user_id != payload.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task does not belong to user")

    request_id = getattr(http_request.state, "request_id", None)
    changes = payload.model_dump(exclude_unset=True, exclude={"user_id"})
    changed_fields: List[str] = []
    try:
        with trace(
            "task.update",
            metadata={"task_id": str(task_id), "fields": sorted(changes), "request_id": request_id},
            user_id=str(payload.user_id),
            request_id=request_id,
        ):
            for field in _UPDATABLE_FIELDS:
                if field not in changes:
                    continue
                value = changes[field]
                if field == "name" and isinstance(value, str):
                    value = value.strip()
                if field in {"fixed_days", "required_days"} and value is None:
                    value = []
                if getattr(task, field) != value:
                    setattr(task, field, value)
                    changed_fields.append(field)
            if changed_fields:
                db.add(
                    AgentActionLog(
                        user_id=payload.user_id,
                        action_type="task_updated",
                        action_payload={"task_id": str(task.id), "fields": changed_fields, "request_id": request_id},
                        reason="Task definition updated",
                    )
                )
            db.add(task)
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(task)
    log_metric("task.update.changed", len(changed_fields), metadata={"task_id": str(task_id)})
    return _serialize_task(task)


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["tasks"])
def deactivate_task(
    task_id: UUID,
    user_id: UUID = Query(...),
    db: Session = Depends(get_db),
) -> Response:
    """Soft delete: the task stops expanding but its history stays."""
    task = db.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    if task.user_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task does not belong to user")

    try:
        if task.is_active:
            task.is_active = False
            db.add(task)
            db.add(
                AgentActionLog(
                    user_id=user_id,
                    action_type="task_deactivated",
                    action_payload={"task_id": str(task.id)},
                    reason="Task definition removed",
                )
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _serialize_task(task: Task) -> TaskSummary:
    return TaskSummary(
        id=task.id,
        user_id=task.user_id,
        family_id=task.family_id,
        name=task.name,
        category=task.category,
        duration_min=task.duration_min,
        priority=task.priority,
        scheduling_mode=task.scheduling_mode,
        fixed_days=list(task.fixed_days or []),
        fixed_time=task.fixed_time,
        frequency=task.frequency,
        frequency_period=task.frequency_period,
        required_days=list(task.required_days or []),
        preferred_time_start=task.preferred_time_start,
        preferred_time_end=task.preferred_time_end,
        is_active=bool(task.is_active),
        created_at=task.created_at,
        updated_at=task.updated_at,
    )
