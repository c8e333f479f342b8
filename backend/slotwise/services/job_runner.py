"""Batch job runner for weekly schedule generation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from slotwise.db.models.agent_action_log import AgentActionLog
from slotwise.db.models.task import Task
from slotwise.db.models.user import User
from slotwise.scheduling.optimizer import OptimizerStrategy
from slotwise.services.calendar_provider import CalendarEventsProvider
from slotwise.services.errors import NotFoundError
from slotwise.services.schedule_service import (
    approve_schedule,
    generate_schedule,
    placements_for_approval,
    week_bounds,
)
from slotwise.services.user_locks import user_lock

logger = logging.getLogger(__name__)

GENERATED_ACTION = "schedule_generated"


@dataclass
class JobRunResult:
    users_processed: int
    schedules_written: int
    skipped_existing: int = 0
    failed: int = 0


def upcoming_week_start(now: datetime) -> date:
    """Monday of the week after ``now``."""
    monday, _ = week_bounds(now.date())
    return monday + timedelta(days=7)


def _active_user_ids(db: Session) -> List[UUID]:
    rows = db.query(Task.user_id).filter(Task.is_active.is_(True)).distinct().all()
    return [row[0] for row in rows]


def _already_generated(db: Session, user_id: UUID, week_start: date) -> bool:
    return (
        db.query(AgentActionLog.id)
        .filter(
            AgentActionLog.user_id == user_id,
            AgentActionLog.action_type == GENERATED_ACTION,
            AgentActionLog.week_of == week_start,
        )
        .first()
        is not None
    )


def run_weekly_schedule_for_user(
    db: Session,
    user_id: UUID,
    *,
    now: datetime,
    week_start: Optional[date] = None,
    optimizer: Optional[OptimizerStrategy] = None,
    calendar_provider: Optional[CalendarEventsProvider] = None,
    force: bool = False,
) -> bool:
    """Generate and persist one user's week; returns False when skipped."""
    if db.get(User, user_id) is None:
        raise NotFoundError("User not found")
    target = week_bounds(week_start)[0] if week_start else upcoming_week_start(now)

    with user_lock(user_id):
        if not force and _already_generated(db, user_id, target):
            logger.debug("Schedule for user %s week %s already generated; skipping", user_id, target)
            return False
        run = generate_schedule(
            db,
            user_id,
            target,
            now=now,
            calendar_provider=calendar_provider,
            optimizer=optimizer,
        )
        approve_schedule(
            db,
            user_id,
            placements_for_approval(run),
            action_type=GENERATED_ACTION,
        )
        if not run.placements:
            # Record the run so the week is not regenerated on every tick.
            db.add(
                AgentActionLog(
                    user_id=user_id,
                    action_type=GENERATED_ACTION,
                    action_payload={"week_of": target.isoformat(), "scheduled": 0, "conflicts": len(run.conflicts)},
                    reason="Nothing to schedule",
                    week_of=target,
                )
            )
            db.commit()
    return True


def run_weekly_schedule_for_all_users(
    db: Session,
    *,
    now: datetime,
    user_ids: Optional[Iterable[UUID]] = None,
    week_start: Optional[date] = None,
    optimizer: Optional[OptimizerStrategy] = None,
    force: bool = False,
) -> JobRunResult:
    ids = _normalize_user_ids(user_ids, db)
    users_processed = 0
    written = 0
    skipped = 0
    failed = 0
    for uid in ids:
        try:
            created = run_weekly_schedule_for_user(
                db,
                uid,
                now=now,
                week_start=week_start,
                optimizer=optimizer,
                force=force,
            )
        except Exception:  # pragma: no cover
            logger.exception("Weekly schedule job failed for user %s", uid)
            failed += 1
            continue
        users_processed += 1
        if created:
            written += 1
        else:
            skipped += 1
    return JobRunResult(
        users_processed=users_processed,
        schedules_written=written,
        skipped_existing=skipped,
        failed=failed,
    )


def _normalize_user_ids(user_ids: Optional[Iterable[UUID]], db: Session) -> List[UUID]:
    if user_ids is None:
        return _active_user_ids(db)
    return list(dict.fromkeys(user_ids))
