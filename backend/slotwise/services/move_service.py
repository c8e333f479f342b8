"""Moving an already-scheduled instance and resolving same-day collisions."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from slotwise.db.models.schedule_conflict import ScheduleConflict
from slotwise.db.models.scheduled_task import ScheduledTask
from slotwise.observability.metrics import log_metric
from slotwise.observability.tracing import trace
from slotwise.scheduling.move_conflicts import MoveConflict, MoveResolution, SiblingInterval, classify_move
from slotwise.scheduling.types import minutes_between
from slotwise.services.errors import InvalidTaskError, NotFoundError, OwnershipError
from slotwise.services.schedule_service import week_bounds

logger = logging.getLogger(__name__)


@dataclass
class MoveOutcome:
    scheduled_task: ScheduledTask
    conflicts: List[MoveConflict] = field(default_factory=list)
    applied: bool = False

    @property
    def requires_confirmation(self) -> bool:
        return not self.applied and bool(self.conflicts)

    @property
    def message(self) -> str:
        if self.requires_confirmation:
            return f"Moving this task will affect {len(self.conflicts)} other task(s). Do you want to proceed?"
        if self.conflicts:
            return f"Moved; {len(self.conflicts)} other task(s) adjusted or flagged."
        return "Moved."


def _siblings(db: Session, moved: ScheduledTask, new_start: datetime) -> List[ScheduledTask]:
    return (
        db.query(ScheduledTask)
        .filter(
            ScheduledTask.id != moved.id,
            ScheduledTask.assigned_to_user_id == moved.assigned_to_user_id,
            ScheduledTask.scheduled_date == new_start.date(),
            ScheduledTask.status != "skipped",
        )
        .order_by(ScheduledTask.start_time)
        .all()
    )


def move_scheduled_instance(
    db: Session,
    scheduled_task_id: UUID,
    user_id: UUID,
    new_start: datetime,
    new_end: datetime,
    *,
    confirmed: bool = False,
    reason: Optional[str] = None,
    request_id: Optional[str] = None,
) -> MoveOutcome:
    """Preview or apply a move.

    Without ``confirmed`` a move that collides with siblings is only previewed.
    Applying updates the moved row, trims shortened siblings and writes the
    audit records in one transaction.
    """
    new_start = new_start.replace(tzinfo=None)
    new_end = new_end.replace(tzinfo=None)
    if new_end <= new_start:
        raise InvalidTaskError("new_end must be after new_start")
    if new_end.date() != new_start.date() and new_end.time() != datetime.min.time():
        raise InvalidTaskError("A scheduled task must start and end on the same day")

    moved = db.get(ScheduledTask, scheduled_task_id)
    if moved is None:
        raise NotFoundError("Scheduled task not found")
    if moved.assigned_to_user_id != user_id:
        raise OwnershipError("Scheduled task does not belong to user")

    siblings = _siblings(db, moved, new_start)
    by_id = {row.id: row for row in siblings}
    conflicts = classify_move(
        new_start,
        new_end,
        [
            SiblingInterval(
                id=row.id,
                name=row.task.name if row.task is not None else "task",
                start=row.start_time,
                end=row.end_time,
            )
            for row in siblings
        ],
    )

    if conflicts and not confirmed:
        logger.debug("Move of %s previewed with %s conflict(s)", scheduled_task_id, len(conflicts))
        return MoveOutcome(scheduled_task=moved, conflicts=conflicts, applied=False)

    previous_start, previous_end = moved.start_time, moved.end_time
    week_of = week_bounds(new_start.date())[0]
    try:
        with trace(
            "schedule.move",
            metadata={
                "scheduled_task_id": str(scheduled_task_id),
                "conflicts": len(conflicts),
                "confirmed": confirmed,
            },
            user_id=str(user_id),
            request_id=request_id,
        ):
            if not moved.was_manually_moved:
                moved.original_start_time = previous_start
                moved.original_end_time = previous_end
            moved.start_time = new_start
            moved.end_time = new_end
            moved.scheduled_date = new_start.date()
            moved.was_manually_moved = True
            moved.moved_at = datetime.now(timezone.utc)
            moved.move_reason = reason
            db.add(moved)

            for conflict in conflicts:
                sibling = by_id[conflict.sibling.id]
                if conflict.resolution == MoveResolution.SHORTENED:
                    if not sibling.was_shortened:
                        sibling.original_duration_min = minutes_between(sibling.start_time, sibling.end_time)
                    sibling.start_time = conflict.new_start
                    sibling.end_time = conflict.new_end
                    sibling.was_shortened = True
                    db.add(sibling)
                db.add(
                    ScheduleConflict(
                        user_id=user_id,
                        week_of=week_of,
                        moved_scheduled_task_id=moved.id,
                        moved_task_id=moved.task_id,
                        affected_scheduled_task_id=sibling.id,
                        affected_task_id=sibling.task_id,
                        original_start=previous_start,
                        original_end=previous_end,
                        new_start=new_start,
                        new_end=new_end,
                        resolution=conflict.resolution.value,
                        affected_new_start=conflict.new_start,
                        affected_new_end=conflict.new_end,
                        user_accepted=True,
                    )
                )

            db.add(
                ScheduleConflict(
                    user_id=user_id,
                    week_of=week_of,
                    moved_scheduled_task_id=moved.id,
                    moved_task_id=moved.task_id,
                    original_start=previous_start,
                    original_end=previous_end,
                    new_start=new_start,
                    new_end=new_end,
                    resolution=MoveResolution.MOVED.value,
                    user_accepted=True,
                )
            )
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(moved)
    log_metric("schedule.move.success", 1, metadata={"user_id": str(user_id)})
    log_metric(
        "schedule.move.conflicts",
        len(conflicts),
        metadata={
            "user_id": str(user_id),
            "displaced": sum(1 for c in conflicts if c.resolution == MoveResolution.DISPLACED),
        },
    )
    return MoveOutcome(scheduled_task=moved, conflicts=conflicts, applied=True)
