"""CSV import utilities to load data into database."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session

from studyplanner.domain.models import Course, CourseModule, ScheduleEvent
from studyplanner.domain.repositories import (
    CourseModuleRepository,
    CourseRepository,
    ScheduleEventRepository,
)

TRUE_VALUES = {"TRUE", "T", "1", "YES", "Y"}


def _read(csv_path: str | Path) -> pd.DataFrame:
    df = pd.read_csv(csv_path)
    # Normalize column names
    df.columns = df.columns.str.lower().str.strip()
    return df


def _flag(value, default: bool) -> bool:
    if pd.isna(value):
        return default
    return str(value).strip().upper() in TRUE_VALUES


def _optional_str(value) -> str | None:
    return str(value) if pd.notna(value) else None


def import_courses_csv(session: Session, csv_path: str | Path, user_id: int) -> int:
    """
    Import courses for one user.

    Expected columns: course_id, title, and optionally difficulty, priority,
    target_completion_date, is_active, description.

    Returns:
        Number of courses imported
    """
    df = _read(csv_path)
    if "target_completion_date" in df.columns:
        df["target_completion_date"] = pd.to_datetime(df["target_completion_date"]).dt.date

    courses = []
    for _, row in df.iterrows():
        target = row.get("target_completion_date")
        course = Course(
            id=int(row["course_id"]),
            user_id=user_id,
            title=str(row["title"]),
            description=_optional_str(row.get("description")),
            difficulty=str(row.get("difficulty")) if pd.notna(row.get("difficulty")) else "Beginner",
            priority=str(row.get("priority")) if pd.notna(row.get("priority")) else "Medium",
            target_completion_date=target if pd.notna(target) else None,
            is_active=_flag(row.get("is_active"), True),
        )
        courses.append(course)

    CourseRepository.bulk_create(session, courses)

    print(f"[INFO] Imported {len(courses)} courses from {csv_path}")
    return len(courses)


def import_modules_csv(session: Session, csv_path: str | Path) -> int:
    """
    Import course modules.

    Expected columns: module_id, course_id, title, estimated_hours, and
    optionally order_index, is_completed.

    Returns:
        Number of modules imported
    """
    df = _read(csv_path)

    modules = []
    for _, row in df.iterrows():
        module = CourseModule(
            id=int(row["module_id"]),
            course_id=int(row["course_id"]),
            title=str(row["title"]),
            estimated_hours=float(row["estimated_hours"]) if pd.notna(row.get("estimated_hours")) else 0.0,
            order_index=int(row["order_index"]) if pd.notna(row.get("order_index")) else 0,
            is_completed=_flag(row.get("is_completed"), False),
        )
        modules.append(module)

    CourseModuleRepository.bulk_create(session, modules)

    print(f"[INFO] Imported {len(modules)} modules from {csv_path}")
    return len(modules)


def import_events_csv(session: Session, csv_path: str | Path, user_id: int) -> int:
    """
    Import existing calendar events (busy time) for one user.

    Expected columns: title, start_utc, and optionally end_utc, all_day,
    course_module_id. Timestamps with an offset are converted to UTC.

    Returns:
        Number of events imported
    """
    df = _read(csv_path)
    df["start_utc"] = pd.to_datetime(df["start_utc"], utc=True).dt.tz_convert(None)
    if "end_utc" in df.columns:
        df["end_utc"] = pd.to_datetime(df["end_utc"], utc=True).dt.tz_convert(None)

    events = []
    for _, row in df.iterrows():
        end = row.get("end_utc")
        module_id = row.get("course_module_id")
        event = ScheduleEvent(
            user_id=user_id,
            title=str(row.get("title", "")) if pd.notna(row.get("title")) else "",
            start_utc=row["start_utc"].to_pydatetime(),
            end_utc=end.to_pydatetime() if pd.notna(end) else None,
            all_day=_flag(row.get("all_day"), False),
            course_module_id=int(module_id) if pd.notna(module_id) else None,
        )
        events.append(event)

    ScheduleEventRepository.bulk_create(session, events)

    print(f"[INFO] Imported {len(events)} events from {csv_path}")
    return len(events)
