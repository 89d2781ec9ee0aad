"""Backlog selection and urgency ordering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from studyplanner.domain.models import CourseModule
from studyplanner.domain.repositories import CourseModuleRepository

from .constraints import SchedulingConfig

PRIORITY_RANK = {"HIGH": 1, "MEDIUM": 2, "LOW": 3}
UNRANKED = float("inf")


@dataclass(frozen=True)
class Module:
    """Read-only snapshot of a module and the course fields the scheduler needs."""

    id: int
    course_id: int
    course_title: str
    title: str
    estimated_hours: float
    order_index: int = 0
    course_difficulty: str = "Beginner"
    course_priority: str = "Medium"
    course_target_date: Optional[date] = None
    is_completed: bool = False
    is_course_active: bool = True

    @property
    def is_advanced(self) -> bool:
        return (self.course_difficulty or "").strip().lower() == "advanced"

    @property
    def event_title(self) -> str:
        return f"{self.course_title} - {self.title}"


def module_from_row(row: CourseModule) -> Optional[Module]:
    """Snapshot an ORM module; returns None when its course is missing."""
    course = row.course
    if course is None:
        return None
    return Module(
        id=row.id,
        course_id=course.id,
        course_title=course.title,
        title=row.title,
        estimated_hours=float(row.estimated_hours or 0.0),
        order_index=row.order_index or 0,
        course_difficulty=course.difficulty or "",
        course_priority=course.priority or "",
        course_target_date=course.target_completion_date,
        is_completed=bool(row.is_completed),
        is_course_active=bool(course.is_active),
    )


def is_schedulable(module: Module) -> bool:
    return module.is_course_active and not module.is_completed


def demand_hours(module: Module, config: SchedulingConfig) -> float:
    """Hours to place: the estimate scaled by study speed, or 1h when no estimate is set."""
    if module.estimated_hours <= 0:
        return 1.0
    return module.estimated_hours * config.speed_multiplier


def difficulty_cap(module: Module, config: SchedulingConfig) -> float:
    if module.is_advanced:
        return min(config.max_block_hours, config.advanced_block_hours)
    return config.max_block_hours


def order_modules(modules: Iterable[Module], config: SchedulingConfig) -> List[Module]:
    """
    Sort by urgency: explicit course rank, target date, priority, authoring order.

    Unranked courses and undated courses sort last; module id breaks any
    remaining tie so the order is fully deterministic.
    """

    def sort_key(module: Module):
        rank = config.course_rank(module.course_id)
        return (
            UNRANKED if rank is None else rank,
            module.course_target_date or date.max,
            PRIORITY_RANK.get((module.course_priority or "").upper(), 3),
            module.order_index,
            module.id,
        )

    return sorted((m for m in modules if is_schedulable(m)), key=sort_key)


def select_modules(session: Session, user_id: int, config: SchedulingConfig) -> List[Module]:
    """Load the user's unscheduled backlog and return it in scheduling order."""
    rows = CourseModuleRepository.get_unscheduled(session, user_id)
    snapshots = [m for m in (module_from_row(r) for r in rows) if m is not None]
    return order_modules(snapshots, config)
