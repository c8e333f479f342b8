from __future__ import annotations

from datetime import date, datetime, time
from itertools import combinations

from slotwise.scheduling.availability import SchedulingContext
from slotwise.scheduling.optimizer import Proposal
from slotwise.scheduling.reconcile import (
    CONFLICT_ALTERNATIVES,
    FIXED_TIME_ALTERNATIVES,
    parse_proposed_time,
    reconcile,
)
from slotwise.scheduling.recurrence import expand_tasks
from slotwise.scheduling.types import BlockKind, BlockedInterval, SchedulingMode, TaskInstance, TaskSpec

MONDAY = date(2025, 3, 10)
SUNDAY = date(2025, 3, 16)
BEFORE_WEEK = datetime(2025, 3, 9, 20, 0)


def _at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def _instance(
    name: str,
    duration: int,
    *,
    number: int = 1,
    day: date = MONDAY,
    fixed_time: time | None = None,
    preferred: tuple[time, time] | None = None,
    priority: int = 3,
) -> TaskInstance:
    return TaskInstance(
        instance_id=f"{name}:{day.isoformat()}:{number}",
        task_id=name,
        task_name=name,
        day=day,
        instance_number=number,
        total_instances=1,
        duration_min=duration,
        priority=priority,
        fixed_time=fixed_time,
        preferred_start=preferred[0] if preferred else None,
        preferred_end=preferred[1] if preferred else None,
    )


def _event(start: datetime, end: datetime) -> BlockedInterval:
    return BlockedInterval(start=start, end=end, reason="Meeting", kind=BlockKind.CALENDAR_EVENT)


def test_parse_proposed_time() -> None:
    assert parse_proposed_time("07:30") == time(7, 30)
    assert parse_proposed_time(" 7:05:00 ") == time(7, 5)
    assert parse_proposed_time(time(9, 15, 30)) == time(9, 15)
    assert parse_proposed_time("25:00") is None
    assert parse_proposed_time("soon") is None
    assert parse_proposed_time(None) is None


def test_every_instance_gets_exactly_one_outcome_in_order() -> None:
    context = SchedulingContext(blocked=(_event(_at(6), _at(21)),))
    instances = [
        _instance("a", 30),
        _instance("b", 30),
        _instance("c", 60),
        _instance("d", 45),
    ]
    outcomes = reconcile({}, instances, context)

    assert len(outcomes) == len(instances)
    assert [outcome.instance.instance_id for outcome in outcomes] == [i.instance_id for i in instances]
    assert [outcome.is_conflict for outcome in outcomes] == [False, False, True, True]


def test_accepted_placements_never_overlap() -> None:
    context = SchedulingContext(blocked=(_event(_at(9), _at(17)),))
    instances = [_instance(f"t{n}", 40) for n in range(12)]
    proposals = {instance.instance_id: Proposal(start_time="06:00") for instance in instances}

    outcomes = reconcile(proposals, instances, context)
    placed = [outcome for outcome in outcomes if not outcome.is_conflict]

    assert len(placed) == 11
    assert sum(1 for outcome in placed if outcome.source == "optimizer") == 1
    for first, second in combinations(placed, 2):
        assert first.end <= second.start or second.end <= first.start
    for placement in placed:
        assert not (placement.start < _at(17) and placement.end > _at(9))


def test_fixed_time_is_exact_or_conflict() -> None:
    context = SchedulingContext(blocked=())
    instance = _instance("yoga", 30, fixed_time=time(7))
    proposals = {instance.instance_id: Proposal(start_time="07:15", reasoning="later is better")}

    (outcome,) = reconcile(proposals, [instance], context)

    assert not outcome.is_conflict
    assert outcome.start == _at(7)
    assert outcome.end == _at(7, 30)
    assert outcome.source == "deterministic"
    assert outcome.reasoning == "Scheduled at your fixed time of 07:00."


def test_optimizer_proposal_is_accepted_when_valid() -> None:
    context = SchedulingContext(blocked=())
    instance = _instance("read", 30)
    proposals = {instance.instance_id: Proposal(start_time="20:00", reasoning="Quiet evening slot")}

    (outcome,) = reconcile(proposals, [instance], context)

    assert outcome.start == _at(20)
    assert outcome.source == "optimizer"
    assert outcome.reasoning == "Quiet evening slot"


def test_malformed_or_unavailable_proposals_fall_back() -> None:
    context = SchedulingContext(blocked=(_event(_at(6), _at(8)),))
    first = _instance("a", 30)
    second = _instance("b", 30)
    proposals = {
        first.instance_id: Proposal(start_time="not a time"),
        second.instance_id: Proposal(start_time="06:30"),
        "unknown:id": Proposal(start_time="10:00"),
    }

    outcomes = reconcile(proposals, [first, second], context)

    assert [outcome.start for outcome in outcomes] == [_at(8), _at(8, 30)]
    assert all(outcome.source == "deterministic" for outcome in outcomes)


def test_conflict_messages_name_the_failing_constraint() -> None:
    fixed = _instance("standup", 15, fixed_time=time(9))
    flexible = _instance("deep work", 45, day=date(2025, 3, 11))
    context = SchedulingContext(
        blocked=(_event(_at(6), _at(22)), _event(_at(6, day=date(2025, 3, 11)), _at(22, day=date(2025, 3, 11))))
    )

    fixed_outcome, flexible_outcome = reconcile({}, [fixed, flexible], context)

    assert fixed_outcome.reason == "No available slot at 09:00 on Monday"
    assert fixed_outcome.alternatives == FIXED_TIME_ALTERNATIVES
    assert flexible_outcome.reason == "No 45-minute slot available on Tuesday"
    assert flexible_outcome.alternatives == CONFLICT_ALTERNATIVES


def test_reasoning_mentions_session_number() -> None:
    instance = TaskInstance(
        instance_id="gym:2025-03-10:2",
        task_id="gym",
        task_name="Gym",
        day=MONDAY,
        instance_number=2,
        total_instances=3,
        duration_min=45,
        priority=3,
        preferred_start=time(6),
        preferred_end=time(9),
    )
    (outcome,) = reconcile({}, [instance], SchedulingContext(blocked=()))
    assert outcome.reasoning == (
        "Scheduled within your preferred time window (06:00-09:00). This is session 2 of 3 for the week."
    )


def test_gym_three_times_a_week_in_the_morning() -> None:
    gym = TaskSpec(
        id="gym",
        name="Gym",
        duration_min=45,
        frequency=3,
        preferred_start=time(6),
        preferred_end=time(9),
    )
    instances, _ = expand_tasks([gym], MONDAY, SUNDAY, {}, BEFORE_WEEK)
    outcomes = reconcile({}, instances, SchedulingContext(blocked=()))

    assert len(outcomes) == 3
    assert all(not outcome.is_conflict for outcome in outcomes)
    days = [outcome.instance.day for outcome in outcomes]
    assert len(set(days)) == 3
    assert days == [date(2025, 3, 10), date(2025, 3, 12), date(2025, 3, 14)]
    for outcome in outcomes:
        assert time(6) <= outcome.start.time() <= time(8, 15)
        assert outcome.end.time() <= time(9)


def test_standup_blocked_by_meeting_is_a_conflict() -> None:
    standup = TaskSpec(
        id="standup",
        name="Standup",
        duration_min=15,
        mode=SchedulingMode.FIXED,
        fixed_days=("monday",),
        fixed_time=time(9),
    )
    instances, _ = expand_tasks([standup], MONDAY, SUNDAY, {}, BEFORE_WEEK)
    context = SchedulingContext(blocked=(_event(_at(9), _at(9, 30)),))

    outcomes = reconcile({}, instances, context)

    assert len(outcomes) == 1
    assert outcomes[0].is_conflict
    assert "09:00" in outcomes[0].reason
    assert [o for o in outcomes if not o.is_conflict] == []
