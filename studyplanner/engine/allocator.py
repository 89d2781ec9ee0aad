"""Greedy block allocator: packs module demand into the work window."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from studyplanner.domain.models import ScheduleEvent
from studyplanner.services.budget import BudgetTracker
from studyplanner.services.constraints import SchedulingConfig
from studyplanner.services.overlap import BusyInterval, OverlapGuard
from studyplanner.services.selection import Module, demand_hours, difficulty_cap
from studyplanner.services.timeline import FixedOffsetTimeline
from studyplanner.services.timeplan import TimeWindowAligner, hours_between

EPSILON_HOURS = 1e-6


class SchedulingError(RuntimeError):
    """Base class for scheduling failures."""


class InfeasibleModuleError(SchedulingError):
    """A module's demand cannot be placed within the look-ahead bounds."""

    def __init__(self, module_id: int, reason: str):
        self.module_id = module_id
        self.reason = reason
        super().__init__(f"Module {module_id} could not be scheduled: {reason}")


@dataclass
class AllocationResult:
    events: List[ScheduleEvent] = field(default_factory=list)
    infeasible: List[InfeasibleModuleError] = field(default_factory=list)

    @property
    def infeasible_module_ids(self) -> List[int]:
        return [err.module_id for err in self.infeasible]


class BlockAllocator:
    """
    Single forward scan over local time that turns module demand into events.

    One cursor walks the timeline across all modules in the given order.
    At every step it is aligned into the work window, checked against the
    weekly and daily budgets, sized to the largest legal block, and tested
    for collisions. Accepted blocks are fed back into the budget and the
    busy set, then the cursor moves past the block plus the buffer.

    An allocator holds run state; use a fresh instance per run.
    """

    def __init__(
        self,
        config: SchedulingConfig,
        busy: Iterable[BusyInterval] = (),
        timeline: Optional[FixedOffsetTimeline] = None,
        aligner: Optional[TimeWindowAligner] = None,
        budget: Optional[BudgetTracker] = None,
        guard: Optional[OverlapGuard] = None,
    ):
        self.config = config
        self.timeline = timeline or FixedOffsetTimeline(config.timezone_offset_minutes)
        self.aligner = aligner or TimeWindowAligner(config)
        self.budget = budget or BudgetTracker(config.max_daily_hours, config.weekly_limit_hours)
        self.guard = guard or OverlapGuard(busy, config.buffer_minutes)
        self.buffer = timedelta(minutes=config.buffer_minutes)

    def allocate(self, modules: Sequence[Module], user_id: Optional[int] = None) -> AllocationResult:
        """
        Place every module in order.

        A module that cannot be fully placed is rolled back and reported in
        ``AllocationResult.infeasible``; the scan resumes from where that
        module started.
        """
        origin = self.timeline.to_local(self.config.start_instant)
        horizon_end = origin + timedelta(days=self.config.horizon_days)
        cursor = self.aligner.align(origin)
        result = AllocationResult()

        for module in modules:
            budget_snapshot = self.budget.snapshot()
            guard_mark = self.guard.mark()
            try:
                events, cursor = self._allocate_module(module, cursor, horizon_end, user_id)
            except InfeasibleModuleError as exc:
                self.budget.restore(budget_snapshot)
                self.guard.rollback(guard_mark)
                result.infeasible.append(exc)
                print(f"[WARN] {exc}")
                continue
            result.events.extend(events)

        return result

    def _allocate_module(
        self,
        module: Module,
        cursor: datetime,
        horizon_end: datetime,
        user_id: Optional[int],
    ) -> Tuple[List[ScheduleEvent], datetime]:
        cfg = self.config
        remaining = demand_hours(module, cfg)
        cap = difficulty_cap(module, cfg)
        events: List[ScheduleEvent] = []
        attempts = 0

        while remaining > EPSILON_HOURS:
            attempts += 1
            if attempts > cfg.max_iterations_per_module:
                raise InfeasibleModuleError(
                    module.id, f"no free slot found after {cfg.max_iterations_per_module} attempts"
                )

            cursor = self.aligner.align(cursor)
            if cursor >= horizon_end:
                raise InfeasibleModuleError(
                    module.id,
                    f"{remaining:.2f}h still unplaced beyond the {cfg.horizon_days}-day horizon",
                )

            week_left = self.budget.remaining_this_week(cursor)
            if week_left <= EPSILON_HOURS:
                cursor = self.aligner.next_week_start(cursor)
                continue

            day_left = self.budget.remaining_today(cursor)
            if day_left <= EPSILON_HOURS:
                cursor = self.aligner.next_day_start(cursor)
                continue

            boundary = self.aligner.day_boundary(cursor)
            available = hours_between(cursor, boundary)
            if available <= EPSILON_HOURS:
                cursor = boundary
                continue

            block_hours = min(cap, remaining, available, day_left, week_left)
            if block_hours <= EPSILON_HOURS:
                cursor = self.aligner.next_day_start(cursor)
                continue

            end = cursor + timedelta(hours=block_hours)
            if cfg.spans_lunch:
                lunch = self.aligner.lunch_start(cursor.date())
                if cursor < lunch < end:
                    end = lunch
            block_hours = hours_between(cursor, end)

            conflict, retry_from = self.guard.check_and_advance(cursor, end)
            if conflict:
                cursor = self.aligner.align(retry_from)
                continue

            events.append(
                ScheduleEvent(
                    user_id=user_id,
                    title=module.event_title,
                    start_utc=self.timeline.to_utc(cursor),
                    end_utc=self.timeline.to_utc(end),
                    all_day=False,
                    course_module_id=module.id,
                )
            )
            self.guard.add(cursor, end)
            self.budget.commit(cursor, block_hours)
            remaining -= block_hours
            cursor = self.aligner.align(end + self.buffer)

        return events, cursor
