"""Busy-interval collision checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class BusyInterval:
    """Occupied local time range, half-open ``[start, end)``."""

    start: datetime
    end: datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end and end > self.start


class OverlapGuard:
    """
    Ordered list of busy intervals for one run.

    Pre-existing events are loaded once; every accepted block must be
    added back before the next query so later blocks cannot land on it.
    """

    def __init__(self, busy: Iterable[BusyInterval] = (), buffer_minutes: int = 0):
        self.intervals: List[BusyInterval] = list(busy)
        self.buffer = timedelta(minutes=buffer_minutes)

    def check_and_advance(self, start: datetime, end: datetime) -> Tuple[bool, datetime]:
        """
        Check a candidate block against the busy set.

        Returns:
            ``(True, restart)`` for the first conflicting interval, where
            ``restart`` is that interval's end plus the buffer; otherwise
            ``(False, start)``.
        """
        for interval in self.intervals:
            if interval.overlaps(start, end):
                return True, interval.end + self.buffer
        return False, start

    def add(self, start: datetime, end: datetime) -> BusyInterval:
        interval = BusyInterval(start, end)
        self.intervals.append(interval)
        return interval

    def mark(self) -> int:
        return len(self.intervals)

    def rollback(self, mark: int) -> None:
        """Forget intervals added after ``mark``."""
        del self.intervals[mark:]

    def __len__(self) -> int:
        return len(self.intervals)
