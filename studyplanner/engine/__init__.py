"""Scheduling engine: the block allocator and the run orchestrator."""

from .allocator import AllocationResult, BlockAllocator, InfeasibleModuleError, SchedulingError
from .orchestrator import AutoScheduler, AutoScheduleResult, UserRunLocks, auto_schedule

__all__ = [
    "BlockAllocator",
    "AllocationResult",
    "SchedulingError",
    "InfeasibleModuleError",
    "AutoScheduler",
    "AutoScheduleResult",
    "UserRunLocks",
    "auto_schedule",
]
