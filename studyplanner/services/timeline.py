"""UTC <-> local conversion for the working timeline.

Scheduling happens on naive local datetimes; storage uses naive UTC. The
offset follows the browser convention: ``local = utc - offset_minutes``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def as_naive_utc(value: datetime) -> datetime:
    """Drop tzinfo after converting aware values to UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class FixedOffsetTimeline:
    """Fixed minute offset between UTC and the user's local clock."""

    def __init__(self, offset_minutes: int = 0):
        self.offset = timedelta(minutes=offset_minutes)

    def to_local(self, utc_value: datetime) -> datetime:
        return as_naive_utc(utc_value) - self.offset

    def to_utc(self, local_value: datetime) -> datetime:
        return local_value + self.offset

    def __repr__(self) -> str:
        return f"<FixedOffsetTimeline(offset={int(self.offset.total_seconds() // 60)}m)>"
