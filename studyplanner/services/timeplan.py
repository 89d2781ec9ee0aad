"""Work-window alignment on the local timeline."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

from .constraints import SchedulingConfig

SATURDAY = 5
EVENING_WINDOW_HOURS = 3


def at_hour(day: date, hour: int) -> datetime:
    return datetime.combine(day, time(hour, 0))


def iso_week_start(value: datetime | date) -> date:
    """Monday of the ISO week containing ``value``."""
    day = value.date() if isinstance(value, datetime) else value
    return day - timedelta(days=day.weekday())


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600.0


class TimeWindowAligner:
    """
    Snaps local instants forward into the allowed work window.

    Rules, re-applied until nothing moves:
      1. weekend days are skipped unless weekends are allowed
      2. before the start hour -> start hour of the same day
      3. at/after the end hour -> start hour of the next day
      4. inside the lunch gap (when the window spans it) -> end of lunch
      5. evening focus: before the evening slot -> start of the evening slot

    Each rule only ever moves the instant later, so alignment terminates.
    """

    def __init__(self, config: SchedulingConfig):
        self.config = config

    def day_start(self, day: date) -> datetime:
        return at_hour(day, self.config.preferred_start_hour)

    def next_day_start(self, instant: datetime) -> datetime:
        return self.day_start(instant.date() + timedelta(days=1))

    def next_week_start(self, instant: datetime) -> datetime:
        return self.day_start(iso_week_start(instant) + timedelta(days=7))

    def lunch_start(self, day: date) -> datetime:
        return at_hour(day, self.config.lunch_start_hour)

    def day_boundary(self, instant: datetime) -> datetime:
        """Latest end for a block starting at ``instant``: lunch if still ahead, else end of window."""
        cfg = self.config
        if cfg.spans_lunch and instant.hour < cfg.lunch_start_hour:
            return self.lunch_start(instant.date())
        return at_hour(instant.date(), cfg.preferred_end_hour)

    def evening_start_hour(self) -> int:
        cfg = self.config
        return max(cfg.preferred_start_hour, cfg.preferred_end_hour - EVENING_WINDOW_HOURS)

    def _step(self, instant: datetime) -> datetime:
        cfg = self.config
        if not cfg.include_weekends and instant.weekday() >= SATURDAY:
            return self.next_day_start(instant)
        if instant.hour < cfg.preferred_start_hour:
            return self.day_start(instant.date())
        if instant.hour >= cfg.preferred_end_hour:
            return self.next_day_start(instant)
        if cfg.spans_lunch and cfg.lunch_start_hour <= instant.hour < cfg.lunch_end_hour:
            return at_hour(instant.date(), cfg.lunch_end_hour)
        if cfg.focus_preference == "evening" and instant.hour < self.evening_start_hour():
            return at_hour(instant.date(), self.evening_start_hour())
        return instant

    def align(self, instant: datetime) -> datetime:
        current = instant
        while True:
            moved = self._step(current)
            if moved == current:
                return current
            current = moved
