"""Tests for BlockAllocator - the greedy packing loop."""

from collections import defaultdict
from datetime import date, datetime

import pytest

from studyplanner.config import PlannerConfig
from studyplanner.engine.allocator import BlockAllocator, InfeasibleModuleError
from studyplanner.services.constraints import AutoScheduleRequest, resolve_scheduling_config
from studyplanner.services.overlap import BusyInterval
from studyplanner.services.selection import Module, order_modules
from studyplanner.services.timeplan import iso_week_start
from studyplanner.validator import validate_schedule

MONDAY = datetime(2025, 9, 1, 8, 0)


def _config(now=MONDAY, cfg=None, **request):
    return resolve_scheduling_config(AutoScheduleRequest(**request), cfg, now=now)


def _module(module_id, hours, course_id=1, **kwargs):
    fields = {
        "id": module_id,
        "course_id": course_id,
        "course_title": f"Course {course_id}",
        "title": f"Module {module_id}",
        "estimated_hours": hours,
    }
    fields.update(kwargs)
    return Module(**fields)


def _spans(events):
    return [(e.start_utc, e.end_utc) for e in events]


def _hours(event):
    return (event.end_utc - event.start_utc).total_seconds() / 3600


def test_single_module_split_around_lunch():
    """5h module, 9-17 window, 90 minute sessions: four blocks, none crossing lunch."""
    config = _config(
        now=datetime(2025, 9, 1, 9, 0),
        preferred_start_hour=9,
        preferred_end_hour=17,
        max_session_minutes=90,
    )
    module = _module(1, 5)

    result = BlockAllocator(config).allocate([module])

    assert _spans(result.events) == [
        (datetime(2025, 9, 1, 9, 0), datetime(2025, 9, 1, 10, 30)),
        (datetime(2025, 9, 1, 10, 45), datetime(2025, 9, 1, 12, 0)),
        (datetime(2025, 9, 1, 13, 0), datetime(2025, 9, 1, 14, 30)),
        (datetime(2025, 9, 1, 14, 45), datetime(2025, 9, 1, 15, 30)),
    ]
    assert sum(_hours(e) for e in result.events) == pytest.approx(5.0)
    assert all(e.title == "Course 1 - Module 1" for e in result.events)
    assert all(e.course_module_id == 1 for e in result.events)
    validate_schedule(result.events, config, modules=[module])


def test_urgent_high_priority_module_goes_first():
    """A dated High-priority module is placed entirely before an undated Low one."""
    config = _config()
    urgent = _module(1, 3, course_id=1, course_priority="High", course_target_date=date(2025, 9, 2))
    relaxed = _module(2, 3, course_id=2, course_priority="Low")

    ordered = order_modules([relaxed, urgent], config)
    result = BlockAllocator(config).allocate(ordered)

    assert [m.id for m in ordered] == [1, 2]
    urgent_starts = [e.start_utc for e in result.events if e.course_module_id == 1]
    relaxed_starts = [e.start_utc for e in result.events if e.course_module_id == 2]
    assert max(urgent_starts) < min(relaxed_starts)


def test_weekend_start_moves_to_monday():
    """A run starting on Saturday with weekends excluded begins on Monday."""
    config = _config(now=datetime(2025, 9, 6, 10, 0))

    result = BlockAllocator(config).allocate([_module(1, 2)])

    assert result.events[0].start_utc == datetime(2025, 9, 8, 8, 0)
    assert all(e.start_utc.weekday() < 5 for e in result.events)


def test_weekends_allowed_when_requested():
    config = _config(now=datetime(2025, 9, 6, 10, 0), include_weekends=True)

    result = BlockAllocator(config).allocate([_module(1, 1)])

    assert result.events[0].start_utc == datetime(2025, 9, 6, 10, 0)


def test_busy_interval_pushes_first_block_past_buffer():
    """Existing 08:00-10:00 event: first block starts at 10:15."""
    config = _config()
    busy = [BusyInterval(datetime(2025, 9, 1, 8, 0), datetime(2025, 9, 1, 10, 0))]

    result = BlockAllocator(config, busy=busy).allocate([_module(1, 2)])

    assert result.events[0].start_utc == datetime(2025, 9, 1, 10, 15)
    validate_schedule(result.events, config, busy=busy)


def test_weekly_limit_spreads_across_iso_weeks():
    """3h weekly limit with 5h of demand needs two ISO weeks."""
    config = _config(weekly_limit_hours=3, max_session_minutes=60)

    result = BlockAllocator(config).allocate([_module(1, 5)])

    per_week = defaultdict(float)
    for e in result.events:
        per_week[iso_week_start(e.start_utc)] += _hours(e)
    assert sorted(per_week) == [date(2025, 9, 1), date(2025, 9, 8)]
    assert per_week[date(2025, 9, 1)] == pytest.approx(3.0)
    assert per_week[date(2025, 9, 8)] == pytest.approx(2.0)
    assert result.events[3].start_utc == datetime(2025, 9, 8, 8, 0)


def test_advanced_course_blocks_capped_at_one_hour():
    config = _config(max_session_minutes=180)
    module = _module(1, 4, course_difficulty="Advanced")

    result = BlockAllocator(config).allocate([module])

    assert all(_hours(e) <= 1.0 + 1e-9 for e in result.events)
    assert sum(_hours(e) for e in result.events) == pytest.approx(4.0)


def test_daily_cap_moves_to_next_day():
    config = _config(max_daily_hours=2, max_session_minutes=60)

    result = BlockAllocator(config).allocate([_module(1, 3)])

    assert [e.start_utc.date() for e in result.events] == [
        date(2025, 9, 1),
        date(2025, 9, 1),
        date(2025, 9, 2),
    ]
    assert result.events[2].start_utc == datetime(2025, 9, 2, 8, 0)


def test_fractional_remainder_is_last_block():
    config = _config(max_session_minutes=60)

    result = BlockAllocator(config).allocate([_module(1, 2.5)])

    assert [_hours(e) for e in result.events] == pytest.approx([1.0, 1.0, 0.5])


def test_non_positive_estimate_schedules_one_hour():
    config = _config()

    result = BlockAllocator(config).allocate([_module(1, 0)])

    assert len(result.events) == 1
    assert _hours(result.events[0]) == pytest.approx(1.0)


def test_slow_study_speed_scales_demand():
    config = _config(study_speed="slow")
    module = _module(1, 4)

    result = BlockAllocator(config).allocate([module])

    assert sum(_hours(e) for e in result.events) == pytest.approx(5.0)
    validate_schedule(result.events, config, modules=[module])


def test_timezone_offset_converts_to_utc():
    """UTC-5 user (offset 300): local 08:00 is 13:00 UTC."""
    config = _config(now=datetime(2025, 9, 1, 13, 0), timezone_offset_minutes=300)

    result = BlockAllocator(config).allocate([_module(1, 1)])

    assert _spans(result.events) == [(datetime(2025, 9, 1, 13, 0), datetime(2025, 9, 1, 14, 0))]


def test_evening_focus_starts_late():
    config = _config(focus_preference="evening")

    result = BlockAllocator(config).allocate([_module(1, 1)])

    assert result.events[0].start_utc == datetime(2025, 9, 1, 15, 0)


def test_infeasible_module_is_rolled_back_and_others_continue():
    """Beyond the horizon a module is reported, not looped on forever."""
    config = _config(cfg=PlannerConfig(horizon_days=7), weekly_limit_hours=2)
    too_big = _module(1, 10, course_id=1)
    small = _module(2, 1, course_id=2)

    result = BlockAllocator(config).allocate([too_big, small])

    assert result.infeasible_module_ids == [1]
    assert isinstance(result.infeasible[0], InfeasibleModuleError)
    assert _spans(result.events) == [(datetime(2025, 9, 1, 8, 0), datetime(2025, 9, 1, 9, 0))]
    assert result.events[0].course_module_id == 2


def test_iteration_cap_reports_infeasible():
    config = _config(cfg=PlannerConfig(max_iterations_per_module=3), max_session_minutes=60)

    result = BlockAllocator(config).allocate([_module(1, 5)])

    assert result.events == []
    assert result.infeasible_module_ids == [1]


def test_allocation_is_deterministic():
    config = _config(weekly_limit_hours=8, max_session_minutes=75)
    modules = [
        _module(1, 3, course_id=1, course_priority="High"),
        _module(2, 4.5, course_id=2, course_difficulty="Advanced"),
        _module(3, 2, course_id=3),
    ]
    busy = [
        BusyInterval(datetime(2025, 9, 1, 9, 0), datetime(2025, 9, 1, 10, 0)),
        BusyInterval(datetime(2025, 9, 2, 14, 0), datetime(2025, 9, 2, 16, 30)),
    ]

    def run():
        events = BlockAllocator(config, busy=busy).allocate(modules).events
        return [(e.title, e.start_utc, e.end_utc, e.course_module_id) for e in events]

    assert run() == run()


def test_mixed_backlog_satisfies_all_invariants():
    """Several modules, busy time, tight budgets: every invariant holds."""
    config = _config(
        now=datetime(2025, 9, 3, 10, 20),
        preferred_start_hour=9,
        preferred_end_hour=17,
        max_daily_hours=4,
        weekly_limit_hours=10,
        max_session_minutes=100,
        buffer_minutes=10,
    )
    modules = order_modules(
        [
            _module(1, 6, course_id=1, course_priority="High"),
            _module(2, 3.5, course_id=2, course_difficulty="Advanced"),
            _module(3, 2.25, course_id=3, course_priority="Low"),
            _module(4, 5, course_id=1, course_priority="High", order_index=1),
        ],
        config,
    )
    busy = [
        BusyInterval(datetime(2025, 9, 3, 13, 0), datetime(2025, 9, 3, 15, 0)),
        BusyInterval(datetime(2025, 9, 4, 9, 30), datetime(2025, 9, 4, 11, 0)),
        BusyInterval(datetime(2025, 9, 8, 0, 0), datetime(2025, 9, 9, 0, 0)),
    ]

    result = BlockAllocator(config, busy=busy).allocate(modules)

    assert result.infeasible == []
    validate_schedule(result.events, config, busy=busy, modules=modules)
