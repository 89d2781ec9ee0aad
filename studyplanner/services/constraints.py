"""Run parameters: the raw request, the clamped config, and the resolver between them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence, Tuple

from studyplanner.config import PlannerConfig

from .timeline import as_naive_utc

FOCUS_PREFERENCES = {"morning", "evening"}
MAX_OFFSET_MINUTES = 14 * 60


@dataclass
class AutoScheduleRequest:
    """Caller-supplied knobs; every field is optional."""

    start_datetime: Optional[datetime] = None
    preferred_start_hour: Optional[int] = None
    preferred_end_hour: Optional[int] = None
    include_weekends: Optional[bool] = None
    max_daily_hours: Optional[float] = None
    max_session_minutes: Optional[int] = None
    buffer_minutes: Optional[int] = None
    weekly_limit_hours: Optional[float] = None
    timezone_offset_minutes: Optional[int] = None
    course_order_ids: Optional[Sequence[int]] = None
    focus_preference: Optional[str] = None
    study_speed: Optional[str] = None


@dataclass(frozen=True)
class SchedulingConfig:
    preferred_start_hour: int
    preferred_end_hour: int
    include_weekends: bool
    max_session_minutes: int
    buffer_minutes: int
    max_daily_hours: float
    weekly_limit_hours: float  # 0 means unlimited
    timezone_offset_minutes: int
    start_instant: datetime  # naive UTC
    course_order_ids: Tuple[int, ...] = field(default_factory=tuple)
    focus_preference: Optional[str] = None
    speed_multiplier: float = 1.0
    lunch_start_hour: int = 12
    lunch_end_hour: int = 13
    advanced_block_hours: float = 1.0
    horizon_days: int = 365
    max_iterations_per_module: int = 100_000

    @property
    def max_block_hours(self) -> float:
        return self.max_session_minutes / 60.0

    @property
    def window_hours(self) -> int:
        return self.preferred_end_hour - self.preferred_start_hour

    @property
    def spans_lunch(self) -> bool:
        """True when the lunch gap sits strictly inside the work window."""
        return (
            self.preferred_start_hour < self.lunch_start_hour
            and self.preferred_end_hour > self.lunch_end_hour
        )

    def course_rank(self, course_id: int) -> Optional[int]:
        try:
            return self.course_order_ids.index(course_id)
        except ValueError:
            return None


def clamp(value, low, high):
    return max(low, min(high, value))


def _first_set(*values):
    for value in values:
        if value is not None:
            return value
    return None


def resolve_scheduling_config(
    request: AutoScheduleRequest | None,
    cfg: PlannerConfig | None = None,
    user=None,
    now: datetime | None = None,
) -> SchedulingConfig:
    """
    Normalize a raw request into a bounded SchedulingConfig.

    Out-of-range values are clamped, never rejected.

    Args:
        request: Raw request (None behaves like an empty request)
        cfg: PlannerConfig supplying defaults
        user: Optional User whose profile fills session length, weekly limit and study speed
        now: Start instant used when the request carries none (UTC)

    Returns:
        Fully populated SchedulingConfig
    """
    request = request or AutoScheduleRequest()
    cfg = cfg or PlannerConfig()
    defaults = cfg.defaults

    start_hour = int(clamp(_first_set(request.preferred_start_hour, defaults.preferred_start_hour), 5, 12))
    end_hour = int(
        clamp(_first_set(request.preferred_end_hour, defaults.preferred_end_hour), start_hour + 2, 22)
    )
    window_hours = end_hour - start_hour

    session_minutes = int(
        clamp(
            _first_set(
                request.max_session_minutes,
                getattr(user, "max_session_minutes", None),
                defaults.max_session_minutes,
            ),
            30,
            180,
        )
    )
    buffer_minutes = int(clamp(_first_set(request.buffer_minutes, defaults.buffer_minutes), 5, 45))

    daily = request.max_daily_hours
    if daily is None:
        daily = min(window_hours, defaults.daily_hours_ceiling)
    max_daily_hours = float(clamp(daily, 2, window_hours))

    weekly_limit_hours = float(
        max(
            0,
            _first_set(
                request.weekly_limit_hours,
                getattr(user, "weekly_limit_hours", None),
                defaults.weekly_limit_hours,
            ),
        )
    )

    offset = int(
        clamp(
            _first_set(request.timezone_offset_minutes, defaults.timezone_offset_minutes),
            -MAX_OFFSET_MINUTES,
            MAX_OFFSET_MINUTES,
        )
    )

    focus = (request.focus_preference or "").strip().lower() or None
    if focus not in FOCUS_PREFERENCES:
        focus = None

    speed = _first_set(request.study_speed, getattr(user, "study_speed", None), "normal")
    speed_multiplier = float(cfg.speed_multipliers.get(str(speed).lower(), 1.0))

    if request.start_datetime is not None:
        start_instant = as_naive_utc(request.start_datetime)
    elif now is not None:
        start_instant = as_naive_utc(now)
    else:
        start_instant = datetime.now(timezone.utc).replace(tzinfo=None)

    return SchedulingConfig(
        preferred_start_hour=start_hour,
        preferred_end_hour=end_hour,
        include_weekends=bool(_first_set(request.include_weekends, defaults.include_weekends)),
        max_session_minutes=session_minutes,
        buffer_minutes=buffer_minutes,
        max_daily_hours=max_daily_hours,
        weekly_limit_hours=weekly_limit_hours,
        timezone_offset_minutes=offset,
        start_instant=start_instant,
        course_order_ids=tuple(int(c) for c in (request.course_order_ids or ())),
        focus_preference=focus,
        speed_multiplier=speed_multiplier,
        lunch_start_hour=cfg.lunch.start_hour,
        lunch_end_hour=cfg.lunch.end_hour,
        advanced_block_hours=cfg.advanced_block_hours,
        horizon_days=cfg.horizon_days,
        max_iterations_per_module=cfg.max_iterations_per_module,
    )
