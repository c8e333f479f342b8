"""Validator / gap-filler.

Turns optimizer proposals plus the full instance batch into exactly one
outcome per instance. Proposals are accepted only after checking them against
availability recomputed from every placement accepted so far; everything else
goes through the deterministic slot finder.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, time, timedelta
from typing import Dict, List, Mapping, Optional, Sequence

from slotwise.scheduling.availability import SchedulingContext, validate_time_in_slots
from slotwise.scheduling.optimizer import Proposal
from slotwise.scheduling.slot_finder import SlotChoice, find_slot
from slotwise.scheduling.types import ConflictOutcome, Placement, ScheduledInstance, TaskInstance

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$")

CONFLICT_ALTERNATIVES = ("Try a different day", "Reduce the duration")
FIXED_TIME_ALTERNATIVES = ("Try a different day", "Pick another fixed time")


def parse_proposed_time(value: object) -> Optional[time]:
    """Accept a ``time`` or an ``HH:MM`` string; anything else is no proposal."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        return None
    match = _HHMM.match(value)
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return time(hour=hour, minute=minute)


def reconcile(
    proposals: Mapping[str, Proposal],
    instances: Sequence[TaskInstance],
    context: SchedulingContext,
) -> List[ScheduledInstance]:
    """Return one placement or conflict per instance, in input order."""
    accepted: List[Placement] = []
    outcomes: Dict[str, ScheduledInstance] = {}

    for instance in instances:
        proposal = proposals.get(instance.instance_id)
        if proposal is None:
            continue
        placement = _validate_proposal(instance, proposal, context, accepted)
        if placement is None:
            logger.debug("Rejected proposal for %s (%s)", instance.task_name, instance.instance_id)
            continue
        accepted.append(placement)
        outcomes[instance.instance_id] = placement

    for instance in instances:
        if instance.instance_id in outcomes:
            continue
        slots = context.availability(instance.day, accepted)
        choice = find_slot(
            slots,
            instance.duration_min,
            instance.fixed_time,
            instance.preferred_start,
            instance.preferred_end,
            day=instance.day,
        )
        if choice is None:
            outcomes[instance.instance_id] = _conflict_for(instance)
            continue
        placement = Placement(
            instance=instance,
            start=choice.start,
            end=choice.end,
            reasoning=deterministic_reasoning(instance, choice),
        )
        accepted.append(placement)
        outcomes[instance.instance_id] = placement

    return [outcomes[instance.instance_id] for instance in instances]


def _validate_proposal(
    instance: TaskInstance,
    proposal: Proposal,
    context: SchedulingContext,
    accepted: Sequence[Placement],
) -> Optional[Placement]:
    start_time = parse_proposed_time(proposal.start_time)
    if start_time is None:
        return None
    if instance.fixed_time is not None and start_time != instance.fixed_time:
        return None
    start = datetime.combine(instance.day, start_time)
    end = start + timedelta(minutes=instance.duration_min)
    slots = context.availability(instance.day, accepted)
    if not validate_time_in_slots(slots, start, end):
        return None
    reasoning = proposal.reasoning.strip() if isinstance(proposal.reasoning, str) else ""
    return Placement(
        instance=instance,
        start=start,
        end=end,
        reasoning=reasoning or deterministic_reasoning(instance, SlotChoice(start, end, "optimizer")),
        source="optimizer",
    )


def deterministic_reasoning(instance: TaskInstance, choice: SlotChoice) -> str:
    parts: List[str] = []
    if choice.matched == "fixed" and instance.fixed_time is not None:
        parts.append(f"Scheduled at your fixed time of {instance.fixed_time.strftime('%H:%M')}")
    elif choice.matched == "preferred":
        parts.append(
            "Scheduled within your preferred time window "
            f"({instance.preferred_start.strftime('%H:%M')}-{instance.preferred_end.strftime('%H:%M')})"
        )
    elif choice.matched == "fallback":
        parts.append(
            "Your preferred window had no room, so this uses the first available slot "
            f"({choice.start.strftime('%H:%M')})"
        )
    else:
        parts.append(f"Scheduled at first available slot ({choice.start.strftime('%H:%M')})")

    if instance.total_instances > 1:
        parts.append(f"This is session {instance.instance_number} of {instance.total_instances} for the week")
    return ". ".join(parts) + "."


def _conflict_for(instance: TaskInstance) -> ConflictOutcome:
    if instance.fixed_time is not None:
        return ConflictOutcome(
            instance=instance,
            reason=f"No available slot at {instance.fixed_time.strftime('%H:%M')} on {instance.day_name}",
            alternatives=FIXED_TIME_ALTERNATIVES,
        )
    return ConflictOutcome(
        instance=instance,
        reason=f"No {instance.duration_min}-minute slot available on {instance.day_name}",
        alternatives=CONFLICT_ALTERNATIVES,
    )
