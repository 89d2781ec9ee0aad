"""Planner configuration loaded from YAML (JSON files parse too)."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml


@dataclass
class PreferenceDefaults:
    """Values used when neither the request nor the user profile sets them."""

    preferred_start_hour: int = 8
    preferred_end_hour: int = 18
    max_session_minutes: int = 60
    buffer_minutes: int = 15
    weekly_limit_hours: float = 20.0
    daily_hours_ceiling: float = 6.0
    include_weekends: bool = False
    timezone_offset_minutes: int = 0


@dataclass
class LunchWindow:
    start_hour: int = 12
    end_hour: int = 13


@dataclass
class PlannerConfig:
    db_url: str = "sqlite:///studyplanner.db"
    defaults: PreferenceDefaults = field(default_factory=PreferenceDefaults)
    lunch: LunchWindow = field(default_factory=LunchWindow)
    advanced_block_hours: float = 1.0
    horizon_days: int = 365
    max_iterations_per_module: int = 100_000
    default_event_minutes: int = 60
    speed_multipliers: Dict[str, float] = field(
        default_factory=lambda: {"slow": 1.25, "normal": 1.0, "fast": 0.9}
    )


def _build(cls, raw: Dict[str, Any] | None):
    # Unknown keys are ignored so older config files keep loading
    raw = raw or {}
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in raw.items() if k in known})


def config_from_dict(raw: Dict[str, Any] | None) -> PlannerConfig:
    raw = dict(raw or {})
    defaults = _build(PreferenceDefaults, raw.pop("defaults", None))
    lunch = _build(LunchWindow, raw.pop("lunch", None))
    cfg = _build(PlannerConfig, raw)
    cfg.defaults = defaults
    cfg.lunch = lunch
    if cfg.lunch.end_hour <= cfg.lunch.start_hour:
        raise ValueError(
            f"Lunch window must end after it starts: {cfg.lunch.start_hour}-{cfg.lunch.end_hour}"
        )
    if cfg.horizon_days < 1:
        raise ValueError(f"horizon_days must be positive, got {cfg.horizon_days}")
    return cfg


def load_config(path: str | Path | None = None) -> PlannerConfig:
    """
    Load planner configuration.

    Args:
        path: YAML or JSON file. ``None`` returns the built-in defaults.

    Returns:
        PlannerConfig with missing keys filled from defaults
    """
    if path is None:
        return PlannerConfig()
    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)
    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return config_from_dict(raw)
