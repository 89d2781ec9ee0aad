"""Daily and weekly effort budgets for a single scheduling run."""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Tuple

from .timeplan import iso_week_start

BudgetSnapshot = Tuple[Dict[date, float], Dict[date, float]]


class BudgetTracker:
    """
    Hours used per local day and per ISO week (keyed by its Monday).

    A weekly limit of 0 means no weekly cap.
    """

    def __init__(self, max_daily_hours: float, weekly_limit_hours: float = 0.0):
        self.max_daily_hours = max_daily_hours
        self.weekly_limit_hours = weekly_limit_hours
        self.hours_by_day: Dict[date, float] = defaultdict(float)
        self.hours_by_week: Dict[date, float] = defaultdict(float)

    def remaining_today(self, instant: datetime) -> float:
        return self.max_daily_hours - self.hours_by_day.get(instant.date(), 0.0)

    def remaining_this_week(self, instant: datetime) -> float:
        if self.weekly_limit_hours <= 0:
            return math.inf
        return self.weekly_limit_hours - self.hours_by_week.get(iso_week_start(instant), 0.0)

    def commit(self, instant: datetime, hours: float) -> None:
        self.hours_by_day[instant.date()] += hours
        self.hours_by_week[iso_week_start(instant)] += hours

    def snapshot(self) -> BudgetSnapshot:
        return dict(self.hours_by_day), dict(self.hours_by_week)

    def restore(self, snapshot: BudgetSnapshot) -> None:
        by_day, by_week = snapshot
        self.hours_by_day = defaultdict(float, by_day)
        self.hours_by_week = defaultdict(float, by_week)
