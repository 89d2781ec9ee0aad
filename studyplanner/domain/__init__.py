"""Domain models and data access layer."""

from .models import Base, Course, CourseModule, ScheduleEvent, User
from .repositories import (
    CourseModuleRepository,
    CourseRepository,
    ScheduleEventRepository,
    UserRepository,
)

__all__ = [
    "Base",
    "User",
    "Course",
    "CourseModule",
    "ScheduleEvent",
    "UserRepository",
    "CourseRepository",
    "CourseModuleRepository",
    "ScheduleEventRepository",
]
