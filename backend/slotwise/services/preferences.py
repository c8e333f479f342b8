"""Learned scheduling preferences.

Rows are stored as ``kind`` + JSON ``value`` and parsed into a tagged union.
Preferences only ever fill gaps in a task definition: an explicit preferred
window or duration on the task always wins.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import time
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union
from uuid import UUID

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, model_validator
from sqlalchemy.orm import Session

from slotwise.db.models.learned_preference import LearnedPreference
from slotwise.scheduling.types import MIN_SLOT_MINUTES, TaskSpec

logger = logging.getLogger(__name__)


class TimeWindowPreference(BaseModel):
    kind: Literal["time_window"] = "time_window"
    category: Optional[str] = None
    task_name: Optional[str] = None
    start: time
    end: time

    @model_validator(mode="after")
    def _check_order(self) -> "TimeWindowPreference":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    def matches(self, task: TaskSpec) -> bool:
        if self.task_name and self.task_name.strip().lower() != task.name.strip().lower():
            return False
        if self.category and self.category != task.category:
            return False
        return True


class DurationAdjustmentPreference(BaseModel):
    kind: Literal["duration_adjustment"] = "duration_adjustment"
    task_name: str
    adjust_minutes: int = Field(ge=-240, le=240)


class SensitivityPreference(BaseModel):
    """Informational only; forwarded to the optimizer as context."""

    kind: Literal["sensitivity"] = "sensitivity"
    topic: str
    note: Optional[str] = None


Preference = Annotated[
    Union[TimeWindowPreference, DurationAdjustmentPreference, SensitivityPreference],
    Field(discriminator="kind"),
]

_preference_adapter: TypeAdapter[Preference] = TypeAdapter(Preference)


def parse_preference(kind: str, value: Dict[str, Any]) -> Preference:
    return _preference_adapter.validate_python({**(value or {}), "kind": kind})


def load_preferences(db: Session, user_id: UUID) -> List[Preference]:
    rows = (
        db.query(LearnedPreference)
        .filter(LearnedPreference.user_id == user_id, LearnedPreference.is_active.is_(True))
        .order_by(LearnedPreference.created_at)
        .all()
    )
    parsed: List[Preference] = []
    for row in rows:
        try:
            parsed.append(parse_preference(row.kind, row.value))
        except ValidationError as exc:
            logger.warning("Skipping invalid preference %s (%s): %s", row.id, row.kind, exc.errors()[0]["msg"])
    return parsed


def apply_preferences(tasks: Sequence[TaskSpec], preferences: Sequence[Preference]) -> List[TaskSpec]:
    """Return task specs with learned preferences folded in."""
    windows = [p for p in preferences if isinstance(p, TimeWindowPreference)]
    durations = {
        p.task_name.strip().lower(): p.adjust_minutes
        for p in preferences
        if isinstance(p, DurationAdjustmentPreference)
    }

    adjusted: List[TaskSpec] = []
    for task in tasks:
        updates: Dict[str, Any] = {}
        if not task.is_fixed and task.preferred_start is None and task.preferred_end is None:
            # Task-specific windows take precedence over category windows.
            ordered = sorted(windows, key=lambda p: p.task_name is None)
            for window in ordered:
                if window.matches(task):
                    updates["preferred_start"] = window.start
                    updates["preferred_end"] = window.end
                    break
        delta = durations.get(task.name.strip().lower())
        if delta:
            updates["duration_min"] = max(MIN_SLOT_MINUTES, task.duration_min + delta)
        adjusted.append(replace(task, **updates) if updates else task)
    return adjusted


def preferences_for_optimizer(preferences: Sequence[Preference]) -> List[Dict[str, Any]]:
    return [preference.model_dump(mode="json") for preference in preferences]
