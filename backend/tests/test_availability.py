from __future__ import annotations

from datetime import date, datetime

from slotwise.scheduling.availability import (
    SchedulingContext,
    compute_availability,
    blocked_minutes,
    day_window,
    free_minutes,
    validate_time_in_slots,
)
from slotwise.scheduling.types import BlockKind, BlockedInterval, Placement, TaskInstance, TimeSlot

DAY = date(2025, 3, 10)


def _at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def _block(start: datetime, end: datetime, kind: BlockKind = BlockKind.CALENDAR_EVENT) -> BlockedInterval:
    return BlockedInterval(start=start, end=end, reason="busy", kind=kind)


def _window():
    return day_window(DAY, 6, 22)


def test_empty_day_is_one_slot() -> None:
    start, end = _window()
    slots = compute_availability(DAY, [], start, end)
    assert slots == (TimeSlot(_at(6), _at(22)),)


def test_blocks_split_the_window() -> None:
    start, end = _window()
    slots = compute_availability(DAY, [_block(_at(9), _at(10)), _block(_at(12), _at(13))], start, end)
    assert slots == (
        TimeSlot(_at(6), _at(9)),
        TimeSlot(_at(10), _at(12)),
        TimeSlot(_at(13), _at(22)),
    )


def test_overlapping_and_contained_blocks_merge() -> None:
    start, end = _window()
    blocks = [
        _block(_at(9), _at(11)),
        _block(_at(10), _at(12)),
        _block(_at(10, 30), _at(10, 45)),
    ]
    slots = compute_availability(DAY, blocks, start, end)
    assert slots == (TimeSlot(_at(6), _at(9)), TimeSlot(_at(12), _at(22)))


def test_gaps_shorter_than_minimum_are_dropped() -> None:
    start, end = _window()
    blocks = [_block(_at(6), _at(9)), _block(_at(9, 10), _at(21, 50))]
    slots = compute_availability(DAY, blocks, start, end)
    assert slots == ()


def test_inverted_and_zero_length_blocks_are_ignored() -> None:
    start, end = _window()
    blocks = [_block(_at(10), _at(10)), _block(_at(12), _at(11))]
    assert compute_availability(DAY, blocks, start, end) == (TimeSlot(_at(6), _at(22)),)


def test_blocks_outside_window_are_ignored() -> None:
    start, end = _window()
    blocks = [_block(_at(4), _at(5, 30)), _block(_at(22), _at(23))]
    assert compute_availability(DAY, blocks, start, end) == (TimeSlot(_at(6), _at(22)),)


def test_vacation_and_holiday_remove_the_day() -> None:
    start, end = _window()
    vacation = _block(_at(0), _at(0, day=date(2025, 3, 11)), BlockKind.VACATION)
    assert compute_availability(DAY, [vacation], start, end) == ()
    holiday = _block(_at(0), _at(0, day=date(2025, 3, 11)), BlockKind.HOLIDAY)
    assert compute_availability(DAY, [holiday], start, end) == ()


def test_validate_time_requires_single_slot() -> None:
    slots = (TimeSlot(_at(6), _at(9)), TimeSlot(_at(9, 30), _at(12)))
    assert validate_time_in_slots(slots, _at(7), _at(8))
    assert validate_time_in_slots(slots, _at(6), _at(9))
    assert not validate_time_in_slots(slots, _at(8, 30), _at(10))
    assert not validate_time_in_slots(slots, _at(8), _at(8))


def test_free_minutes() -> None:
    slots = (TimeSlot(_at(6), _at(9)), TimeSlot(_at(10), _at(11)))
    assert free_minutes(slots) == 240


def test_blocked_minutes_merges_overlapping_blocks() -> None:
    blocks = [_block(_at(9), _at(10)), _block(_at(9, 30), _at(10, 30)), _block(_at(12), _at(13))]
    assert blocked_minutes(blocks, _at(9, 15), _at(12, 30)) == 75 + 30
    assert blocked_minutes(blocks, _at(10, 30), _at(12)) == 0
    # A short free gap between two blocks is not counted.
    assert blocked_minutes([_block(_at(10), _at(11)), _block(_at(11, 10), _at(12))], _at(11), _at(11, 10)) == 0


def test_context_recomputes_with_accepted_placements() -> None:
    context = SchedulingContext(blocked=(_block(_at(9), _at(17), BlockKind.WORK),))
    instance = TaskInstance(
        instance_id="t:2025-03-10:1",
        task_id="t",
        task_name="Read",
        day=DAY,
        instance_number=1,
        total_instances=1,
        duration_min=30,
        priority=3,
    )
    placement = Placement(instance=instance, start=_at(6), end=_at(6, 30), reasoning="")

    before = context.availability(DAY)
    after = context.availability(DAY, [placement])

    assert before == (TimeSlot(_at(6), _at(9)), TimeSlot(_at(17), _at(22)))
    assert after == (TimeSlot(_at(6, 30), _at(9)), TimeSlot(_at(17), _at(22)))
    # The snapshot itself never changes.
    assert context.availability(DAY) == before


def test_context_indexes_multi_day_blocks() -> None:
    next_day = date(2025, 3, 11)
    block = _block(_at(20), _at(8, day=next_day))
    context = SchedulingContext(blocked=(block,))
    assert context.blocks_for(DAY) == (block,)
    assert context.blocks_for(next_day) == (block,)
    assert context.availability(next_day)[0].start == _at(8, day=next_day)


def test_context_hides_time_before_not_before() -> None:
    context = SchedulingContext(blocked=(), not_before=_at(10, 15))
    assert context.availability(date(2025, 3, 9)) == ()
    assert context.availability(DAY) == (TimeSlot(_at(10, 15), _at(22)),)
    tomorrow = date(2025, 3, 11)
    assert context.availability(tomorrow) == (TimeSlot(_at(6, day=tomorrow), _at(22, day=tomorrow)),)


def test_not_before_is_rounded_up_to_the_minute() -> None:
    context = SchedulingContext(blocked=(), not_before=datetime(2025, 3, 10, 7, 13, 27))
    assert context.availability(DAY)[0].start == _at(7, 14)
    on_the_minute = SchedulingContext(blocked=(), not_before=_at(7, 13))
    assert on_the_minute.availability(DAY)[0].start == _at(7, 13)
