from __future__ import annotations

from datetime import datetime, time
from typing import Iterable, List, Sequence

import pandas as pd

from .domain.models import ScheduleEvent
from .services.constraints import SchedulingConfig
from .services.overlap import BusyInterval
from .services.selection import Module, demand_hours, difficulty_cap
from .services.timeline import FixedOffsetTimeline

TOLERANCE_HOURS = 1e-6

EVENT_COLUMNS = ["event_id", "module_id", "title", "start", "end", "hours"]


def events_frame(events: Iterable[ScheduleEvent], config: SchedulingConfig) -> pd.DataFrame:
    """Events as a DataFrame on the local timeline."""
    timeline = FixedOffsetTimeline(config.timezone_offset_minutes)
    rows = []
    for e in events:
        if e.end_utc is None:
            raise ValueError(f"Scheduled event '{e.title}' has no end time")
        start = timeline.to_local(e.start_utc)
        end = timeline.to_local(e.end_utc)
        rows.append(
            {
                "event_id": e.id,
                "module_id": e.course_module_id,
                "title": e.title,
                "start": start,
                "end": end,
                "hours": (end - start).total_seconds() / 3600.0,
            }
        )
    df = pd.DataFrame(rows, columns=EVENT_COLUMNS)
    if not df.empty:
        df["start"] = pd.to_datetime(df["start"])
        df["end"] = pd.to_datetime(df["end"])
        df["date"] = df["start"].dt.date
        df["week_start"] = (df["start"] - pd.to_timedelta(df["start"].dt.weekday, unit="D")).dt.date
    return df


def validate_schedule(
    events: Sequence[ScheduleEvent],
    config: SchedulingConfig,
    busy: Iterable[BusyInterval] = (),
    modules: Sequence[Module] | None = None,
    infeasible_module_ids: Iterable[int] = (),
) -> None:
    """
    Check a produced schedule against every scheduling invariant.

    Raises:
        ValueError: On the first violated invariant
    """
    df = events_frame(events, config)
    if df.empty:
        return

    # Positive durations, sorted non-overlap
    if (df["hours"] <= 0).any():
        raise ValueError("Scheduled events must have positive duration")
    ordered = df.sort_values(["start", "end"]).reset_index(drop=True)
    prev_end = None
    for _, row in ordered.iterrows():
        if prev_end is not None and row["start"] < prev_end:
            raise ValueError(f"Overlapping events detected at {row['start']}: '{row['title']}'")
        prev_end = row["end"] if prev_end is None else max(prev_end, row["end"])

    for interval in busy:
        clash = df[(df["start"] < interval.end) & (df["end"] > interval.start)]
        if not clash.empty:
            raise ValueError(
                f"Event '{clash.iloc[0]['title']}' overlaps busy interval {interval.start} - {interval.end}"
            )

    # Work window and lunch gap
    for _, row in df.iterrows():
        start, end = row["start"].to_pydatetime(), row["end"].to_pydatetime()
        window_end = datetime.combine(start.date(), time(config.preferred_end_hour))
        if not config.preferred_start_hour <= start.hour < config.preferred_end_hour:
            raise ValueError(f"Event '{row['title']}' starts outside the work window: {start}")
        if end > window_end:
            raise ValueError(f"Event '{row['title']}' ends after the work window: {end}")
        if config.spans_lunch:
            lunch_start = datetime.combine(start.date(), time(config.lunch_start_hour))
            lunch_end = datetime.combine(start.date(), time(config.lunch_end_hour))
            if start < lunch_end and end > lunch_start:
                raise ValueError(f"Event '{row['title']}' overlaps the lunch gap: {start} - {end}")
        if not config.include_weekends and start.weekday() >= 5:
            raise ValueError(f"Event '{row['title']}' falls on a weekend: {start.date()}")

    # Budgets
    daily = df.groupby("date")["hours"].sum()
    over_daily = daily[daily > config.max_daily_hours + TOLERANCE_HOURS]
    if not over_daily.empty:
        raise ValueError(
            f"Daily hours exceed cap on {over_daily.index[0]}: {over_daily.iloc[0]:.2f} > {config.max_daily_hours}"
        )
    if config.weekly_limit_hours > 0:
        weekly = df.groupby("week_start")["hours"].sum()
        over_weekly = weekly[weekly > config.weekly_limit_hours + TOLERANCE_HOURS]
        if not over_weekly.empty:
            raise ValueError(
                f"Weekly hours exceed limit for week of {over_weekly.index[0]}: "
                f"{over_weekly.iloc[0]:.2f} > {config.weekly_limit_hours}"
            )

    # Block size and demand, when the modules are known
    if modules is None:
        if (df["hours"] > config.max_block_hours + TOLERANCE_HOURS).any():
            raise ValueError(f"Event longer than the {config.max_block_hours}h session cap")
        return

    by_id = {m.id: m for m in modules}
    for _, row in df.iterrows():
        module = by_id.get(row["module_id"])
        if module is None:
            raise ValueError(f"Event '{row['title']}' references unknown module {row['module_id']}")
        cap = difficulty_cap(module, config)
        if row["hours"] > cap + TOLERANCE_HOURS:
            raise ValueError(f"Event '{row['title']}' is {row['hours']:.2f}h, above the {cap}h block cap")

    skipped = set(infeasible_module_ids)
    placed = df.groupby("module_id")["hours"].sum()
    for module in modules:
        got = float(placed.get(module.id, 0.0))
        expected = 0.0 if module.id in skipped else demand_hours(module, config)
        if abs(got - expected) > TOLERANCE_HOURS:
            raise ValueError(f"Module {module.id} demand mismatch: expected {expected:.2f}h, got {got:.2f}h")


def summarize_events(events: Sequence[ScheduleEvent], config: SchedulingConfig) -> str:
    df = events_frame(events, config)
    if df.empty:
        return "No events."

    per_day = df.groupby("date")["hours"].sum()
    per_week = df.groupby("week_start")["hours"].sum()
    per_module = df.groupby(["module_id", "title"])["hours"].agg(["count", "sum"])

    lines: List[str] = ["Hours per day:"]
    lines.append(per_day.round(2).to_string())
    lines.append("")
    lines.append("Hours per ISO week:")
    lines.append(per_week.round(2).to_string())
    lines.append("")
    lines.append("Blocks per module:")
    lines.append(per_module.round(2).to_string())
    return "\n".join(lines)
