"""Orchestrator - loads a user's backlog, runs the allocator and persists the result."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from studyplanner.config import PlannerConfig
from studyplanner.domain.models import ScheduleEvent
from studyplanner.domain.repositories import ScheduleEventRepository, UserRepository
from studyplanner.services.constraints import AutoScheduleRequest, SchedulingConfig, resolve_scheduling_config
from studyplanner.services.overlap import BusyInterval
from studyplanner.services.selection import select_modules
from studyplanner.services.timeline import FixedOffsetTimeline

from .allocator import AllocationResult, BlockAllocator


def busy_intervals_from_events(
    events: Iterable[ScheduleEvent],
    timeline: FixedOffsetTimeline,
    default_event_minutes: int = 60,
) -> List[BusyInterval]:
    """
    Map stored events onto the local timeline.

    All-day events block their whole local day; events without an end
    block ``default_event_minutes`` from their start. Zero-length events
    are dropped.
    """
    intervals: List[BusyInterval] = []
    for event in events:
        start = timeline.to_local(event.start_utc)
        if event.all_day:
            start = datetime.combine(start.date(), time.min)
            end = start + timedelta(days=1)
        elif event.end_utc is None:
            end = start + timedelta(minutes=default_event_minutes)
        else:
            end = timeline.to_local(event.end_utc)
        if end > start:
            intervals.append(BusyInterval(start, end))
    return intervals


@dataclass
class AutoScheduleResult:
    scheduled_event_count: int
    effective_weekly_limit_hours: float
    effective_max_daily_hours: float
    effective_max_session_minutes: int
    events: List[ScheduleEvent] = field(default_factory=list)
    infeasible_module_ids: List[int] = field(default_factory=list)
    scheduling_config: Optional[SchedulingConfig] = None

    def to_dict(self) -> Dict:
        return {
            "scheduledEventCount": self.scheduled_event_count,
            "effectiveWeeklyLimitHours": self.effective_weekly_limit_hours,
            "effectiveMaxDailyHours": self.effective_max_daily_hours,
            "effectiveMaxSessionMinutes": self.effective_max_session_minutes,
            "infeasibleModuleIds": list(self.infeasible_module_ids),
            "events": [
                {
                    "id": e.id,
                    "title": e.title,
                    "startUtc": e.start_utc.isoformat(),
                    "endUtc": e.end_utc.isoformat() if e.end_utc else None,
                    "courseModuleId": e.course_module_id,
                }
                for e in self.events
            ],
        }


class UserRunLocks:
    """One lock per user so runs for the same user never interleave."""

    def __init__(self):
        self._registry_lock = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}

    def for_user(self, user_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[user_id] = lock
            return lock

    def __len__(self) -> int:
        return len(self._locks)


class AutoScheduler:
    """
    Coordinates one auto-schedule run per call.

    Reads the backlog and busy events, packs blocks in memory, and writes
    all new events in a single commit. Runs for the same user are
    serialized through ``locks``.
    """

    def __init__(self, cfg: PlannerConfig | None = None, locks: UserRunLocks | None = None):
        self.cfg = cfg or PlannerConfig()
        self.locks = locks or UserRunLocks()

    def build_schedule(
        self,
        session: Session,
        user_id: int,
        request: AutoScheduleRequest | None = None,
        now: datetime | None = None,
    ) -> Tuple[SchedulingConfig, AllocationResult]:
        """
        Compute new events without persisting them.

        Raises:
            ValueError: If the user does not exist
        """
        user = UserRepository.get_by_id(session, user_id)
        if user is None:
            raise ValueError(f"User {user_id} not found")

        scheduling_cfg = resolve_scheduling_config(request, self.cfg, user=user, now=now)
        modules = select_modules(session, user_id, scheduling_cfg)
        print(f"[INFO] Auto-schedule for user {user_id}: {len(modules)} modules in backlog")
        if not modules:
            return scheduling_cfg, AllocationResult()

        timeline = FixedOffsetTimeline(scheduling_cfg.timezone_offset_minutes)
        busy = busy_intervals_from_events(
            ScheduleEventRepository.get_by_user(session, user_id),
            timeline,
            self.cfg.default_event_minutes,
        )
        print(f"[INFO] Loaded {len(busy)} busy intervals")

        allocator = BlockAllocator(scheduling_cfg, busy=busy, timeline=timeline)
        allocation = allocator.allocate(modules, user_id=user_id)
        return scheduling_cfg, allocation

    def run(
        self,
        session: Session,
        user_id: int,
        request: AutoScheduleRequest | None = None,
        persist: bool = True,
        now: datetime | None = None,
    ) -> AutoScheduleResult:
        with self.locks.for_user(user_id):
            scheduling_cfg, allocation = self.build_schedule(session, user_id, request, now=now)
            if persist and allocation.events:
                ScheduleEventRepository.bulk_create(session, allocation.events)
                print(f"[INFO] Persisted {len(allocation.events)} events")

        if allocation.infeasible:
            print(f"[WARN] {len(allocation.infeasible)} modules could not be scheduled")
        print(f"[OK] Auto-schedule complete: {len(allocation.events)} events")

        return AutoScheduleResult(
            scheduled_event_count=len(allocation.events),
            effective_weekly_limit_hours=scheduling_cfg.weekly_limit_hours,
            effective_max_daily_hours=scheduling_cfg.max_daily_hours,
            effective_max_session_minutes=scheduling_cfg.max_session_minutes,
            events=allocation.events,
            infeasible_module_ids=allocation.infeasible_module_ids,
            scheduling_config=scheduling_cfg,
        )


def auto_schedule(
    session: Session,
    user_id: int,
    request: AutoScheduleRequest | None = None,
    cfg: PlannerConfig | None = None,
    persist: bool = True,
    now: datetime | None = None,
    scheduler: AutoScheduler | None = None,
) -> AutoScheduleResult:
    """
    Convenience function for a single run.

    Concurrent callers must pass the same ``scheduler``: runs for one user
    are only serialized by the locks of a shared AutoScheduler instance.

    Args:
        session: Database session
        user_id: Owner of the backlog and calendar
        request: Optional scheduling knobs
        cfg: PlannerConfig (defaults if omitted)
        persist: If True, save new events to the database
        now: Start instant when the request has none (UTC)
        scheduler: AutoScheduler to run on (a new one built from ``cfg`` if omitted)

    Returns:
        AutoScheduleResult
    """
    scheduler = scheduler or AutoScheduler(cfg)
    return scheduler.run(session, user_id, request, persist=persist, now=now)
