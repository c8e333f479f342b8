"""Operational endpoints for scheduler jobs."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from slotwise.api.schemas.jobs import JobRunRequest, JobRunResponse
from slotwise.core.clock import get_now
from slotwise.core.config import settings
from slotwise.db.deps import get_db
from slotwise.observability.metrics import log_metric, timed
from slotwise.observability.tracing import trace
from slotwise.scheduling.optimizer import OptimizerStrategy
from slotwise.services.errors import NotFoundError
from slotwise.services.job_runner import (
    run_weekly_schedule_for_all_users,
    run_weekly_schedule_for_user,
)
from slotwise.services.llm_optimizer import get_optimizer

router = APIRouter()


@router.get("/jobs", tags=["jobs"])
def get_jobs_config(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    with trace("jobs.config", metadata={"request_id": request_id}, request_id=request_id):
        data = {
            "scheduler_enabled": settings.scheduler_enabled,
            "optimizer_provider": settings.optimizer_provider,
            "schedule": {
                "timezone": settings.scheduler_timezone,
                "weekly_day": settings.weekly_job_day,
                "weekly_time": f"{settings.weekly_job_hour:02d}:{settings.weekly_job_minute:02d}",
            },
        }
    return {**data, "request_id": request_id or ""}


@router.post("/jobs/run-now", response_model=JobRunResponse, tags=["jobs"])
def run_job_now(
    request: Request,
    payload: JobRunRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
    optimizer: Optional[OptimizerStrategy] = Depends(get_optimizer),
) -> JobRunResponse:
    if not settings.debug:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Run-now only allowed in debug mode")

    request_id = getattr(request.state, "request_id", None)
    metadata = {"job": payload.job, "request_id": request_id}
    with timed("jobs.run_now", metadata={"job": payload.job}), trace("jobs.run_now", metadata=metadata, request_id=request_id):
        if payload.user_id:
            try:
                created = run_weekly_schedule_for_user(
                    db,
                    payload.user_id,
                    now=now,
                    week_start=payload.week_start,
                    optimizer=optimizer,
                    force=payload.force,
                )
            except NotFoundError as exc:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
            result = {"users_processed": 1, "schedules_written": 1 if created else 0, "skipped_existing": 0 if created else 1}
        else:
            res = run_weekly_schedule_for_all_users(
                db,
                now=now,
                week_start=payload.week_start,
                optimizer=optimizer,
                force=payload.force,
            )
            result = {
                "users_processed": res.users_processed,
                "schedules_written": res.schedules_written,
                "skipped_existing": res.skipped_existing,
            }

    log_metric("jobs.run_now.success", 1, metadata={"job": payload.job})

    return JobRunResponse(job=payload.job, request_id=request_id or "", **result)
