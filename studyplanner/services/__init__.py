"""Services for scheduling logic."""

from .budget import BudgetTracker
from .constraints import AutoScheduleRequest, SchedulingConfig, resolve_scheduling_config
from .overlap import BusyInterval, OverlapGuard
from .selection import Module, order_modules, select_modules
from .timeline import FixedOffsetTimeline
from .timeplan import TimeWindowAligner, iso_week_start

__all__ = [
    "AutoScheduleRequest",
    "SchedulingConfig",
    "resolve_scheduling_config",
    "Module",
    "order_modules",
    "select_modules",
    "TimeWindowAligner",
    "iso_week_start",
    "BudgetTracker",
    "BusyInterval",
    "OverlapGuard",
    "FixedOffsetTimeline",
]
