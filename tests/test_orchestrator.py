"""Tests for AutoScheduler - end-to-end runs against the database."""

import threading
import time
from datetime import datetime

import pytest

from studyplanner.config import PlannerConfig
from studyplanner.domain.db import get_session, init_database
from studyplanner.domain.models import Course, CourseModule, ScheduleEvent, User
from studyplanner.domain.repositories import ScheduleEventRepository
from studyplanner.engine.allocator import BlockAllocator
from studyplanner.engine.orchestrator import (
    AutoScheduler,
    UserRunLocks,
    auto_schedule,
    busy_intervals_from_events,
)
from studyplanner.services.constraints import AutoScheduleRequest
from studyplanner.services.overlap import BusyInterval
from studyplanner.services.timeline import FixedOffsetTimeline

START = datetime(2025, 9, 1, 8, 0)


@pytest.fixture
def sample_user(db_session):
    """User with one course, two modules and a morning meeting."""
    db_session.add(User(id=1, full_name="Ada", email="ada@example.com", max_session_minutes=60))
    db_session.add(Course(id=1, user_id=1, title="Algebra", priority="High"))
    db_session.add_all(
        [
            CourseModule(id=1, course_id=1, title="Groups", estimated_hours=2, order_index=0),
            CourseModule(id=2, course_id=1, title="Rings", estimated_hours=1, order_index=1),
        ]
    )
    db_session.add(
        ScheduleEvent(
            user_id=1,
            title="Team meeting",
            start_utc=datetime(2025, 9, 1, 8, 0),
            end_utc=datetime(2025, 9, 1, 10, 0),
        )
    )
    db_session.commit()
    return db_session


def _request():
    return AutoScheduleRequest(start_datetime=START)


def test_auto_schedule_persists_events(sample_user):
    """Test that a run fills the gaps around existing events and saves them."""
    result = auto_schedule(sample_user, 1, _request())

    assert result.scheduled_event_count == 4
    assert result.infeasible_module_ids == []
    assert [(e.start_utc, e.end_utc) for e in result.events] == [
        (datetime(2025, 9, 1, 10, 15), datetime(2025, 9, 1, 11, 15)),
        (datetime(2025, 9, 1, 11, 30), datetime(2025, 9, 1, 12, 0)),
        (datetime(2025, 9, 1, 13, 0), datetime(2025, 9, 1, 13, 30)),
        (datetime(2025, 9, 1, 13, 45), datetime(2025, 9, 1, 14, 45)),
    ]
    assert [e.title for e in result.events] == ["Algebra - Groups"] * 3 + ["Algebra - Rings"]

    stored = ScheduleEventRepository.get_by_user(sample_user, 1)
    assert len(stored) == 5
    assert all(e.id is not None for e in result.events)


def test_second_run_finds_nothing_to_schedule(sample_user):
    auto_schedule(sample_user, 1, _request())

    again = auto_schedule(sample_user, 1, _request())

    assert again.scheduled_event_count == 0
    assert len(ScheduleEventRepository.get_by_user(sample_user, 1)) == 5


def test_dry_run_does_not_persist(sample_user):
    result = auto_schedule(sample_user, 1, _request(), persist=False)

    assert result.scheduled_event_count == 4
    assert len(ScheduleEventRepository.get_by_user(sample_user, 1)) == 1


def test_effective_limits_reported(sample_user):
    request = AutoScheduleRequest(start_datetime=START, weekly_limit_hours=-1, max_session_minutes=500)

    result = auto_schedule(sample_user, 1, request, persist=False)

    assert result.effective_weekly_limit_hours == 0
    assert result.effective_max_daily_hours == 6
    assert result.effective_max_session_minutes == 180


def test_result_to_dict(sample_user):
    data = auto_schedule(sample_user, 1, _request()).to_dict()

    assert data["scheduledEventCount"] == 4
    assert data["effectiveMaxSessionMinutes"] == 60
    assert data["infeasibleModuleIds"] == []
    assert data["events"][0]["startUtc"] == "2025-09-01T10:15:00"
    assert data["events"][0]["courseModuleId"] == 1


def test_infeasible_modules_reported(sample_user):
    cfg = PlannerConfig(horizon_days=1)
    request = AutoScheduleRequest(start_datetime=START, max_daily_hours=2)

    result = AutoScheduler(cfg).run(sample_user, 1, request)

    # Groups uses the whole 2h day; Rings would spill past the one-day horizon
    assert result.infeasible_module_ids == [2]
    assert result.scheduled_event_count == 3
    stored_module_ids = {e.course_module_id for e in ScheduleEventRepository.get_by_user(sample_user, 1)}
    assert stored_module_ids == {None, 1}


def test_unknown_user_raises(db_session):
    with pytest.raises(ValueError, match="not found"):
        auto_schedule(db_session, 99, _request())


def test_empty_backlog(db_session):
    db_session.add(User(id=1, email="ada@example.com"))
    db_session.commit()

    result = auto_schedule(db_session, 1, _request())

    assert result.scheduled_event_count == 0
    assert result.events == []


def test_user_run_locks():
    locks = UserRunLocks()
    assert locks.for_user(1) is locks.for_user(1)
    assert locks.for_user(1) is not locks.for_user(2)
    assert len(locks) == 2


def test_busy_interval_mapping():
    timeline = FixedOffsetTimeline(0)
    events = [
        ScheduleEvent(title="Trip", start_utc=datetime(2025, 9, 2, 15, 0), all_day=True),
        ScheduleEvent(title="Call", start_utc=datetime(2025, 9, 3, 9, 0), end_utc=None, all_day=False),
        ScheduleEvent(
            title="Empty",
            start_utc=datetime(2025, 9, 4, 9, 0),
            end_utc=datetime(2025, 9, 4, 9, 0),
            all_day=False,
        ),
    ]

    intervals = busy_intervals_from_events(events, timeline, default_event_minutes=30)

    assert intervals == [
        BusyInterval(datetime(2025, 9, 2, 0, 0), datetime(2025, 9, 3, 0, 0)),
        BusyInterval(datetime(2025, 9, 3, 9, 0), datetime(2025, 9, 3, 9, 30)),
    ]


def test_busy_interval_mapping_uses_local_day_for_all_day_events():
    """UTC-5: an all-day event stored at 03:00 UTC belongs to the previous local day."""
    timeline = FixedOffsetTimeline(300)
    event = ScheduleEvent(title="Holiday", start_utc=datetime(2025, 9, 2, 3, 0), all_day=True)

    assert busy_intervals_from_events([event], timeline) == [
        BusyInterval(datetime(2025, 9, 1, 0, 0), datetime(2025, 9, 2, 0, 0))
    ]


def test_result_carries_effective_config(sample_user):
    """The profile's weekly limit and session length drive the run."""
    result = auto_schedule(sample_user, 1, _request(), persist=False)

    assert result.scheduling_config.max_session_minutes == 60
    assert result.scheduling_config.weekly_limit_hours == 10
    assert result.effective_weekly_limit_hours == 10
    assert result.scheduling_config.start_instant == START


@pytest.mark.integration
def test_concurrent_runs_for_one_user_do_not_double_book(tmp_path, monkeypatch):
    """Two threads sharing one AutoScheduler: the second run sees the first run's events."""
    db_url = f"sqlite:///{tmp_path / 'concurrent.db'}"
    init_database(db_url)
    session = get_session(db_url)
    session.add(User(id=1, email="ada@example.com"))
    session.add(Course(id=1, user_id=1, title="Algebra"))
    session.add(CourseModule(id=1, course_id=1, title="Groups", estimated_hours=2))
    session.commit()
    session.close()

    original_allocate = BlockAllocator.allocate

    def slow_allocate(self, modules, user_id=None):
        # Widen the read -> write gap so unserialized runs would both read an empty calendar
        time.sleep(0.2)
        return original_allocate(self, modules, user_id)

    monkeypatch.setattr(BlockAllocator, "allocate", slow_allocate)

    scheduler = AutoScheduler()
    errors = []

    def worker():
        run_session = get_session(db_url)
        try:
            auto_schedule(run_session, 1, _request(), scheduler=scheduler)
        except Exception as e:
            errors.append(e)
        finally:
            run_session.close()

    threads = [threading.Thread(target=worker) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    check = get_session(db_url)
    try:
        events = ScheduleEventRepository.get_by_user(check, 1)
        spans = [(e.start_utc, e.end_utc) for e in events]
    finally:
        check.close()
    assert len(events) == 2
    assert len(set(spans)) == 2
    assert spans == [
        (datetime(2025, 9, 1, 8, 0), datetime(2025, 9, 1, 9, 0)),
        (datetime(2025, 9, 1, 9, 15), datetime(2025, 9, 1, 10, 15)),
    ]
