"""CSV export utilities."""

from __future__ import annotations

from pathlib import Path

import pandas as pd
from sqlalchemy.orm import Session

from studyplanner.domain.repositories import ScheduleEventRepository

EVENT_EXPORT_COLUMNS = ["id", "title", "start_utc", "end_utc", "all_day", "course_module_id"]


def export_events_csv(session: Session, csv_path: str | Path, user_id: int) -> int:
    """
    Export a user's events to CSV, ordered by start time.

    Returns:
        Number of events exported
    """
    events = ScheduleEventRepository.get_by_user(session, user_id)
    df = pd.DataFrame(
        [
            {
                "id": e.id,
                "title": e.title,
                "start_utc": e.start_utc.isoformat(),
                "end_utc": e.end_utc.isoformat() if e.end_utc else None,
                "all_day": bool(e.all_day),
                "course_module_id": e.course_module_id,
            }
            for e in events
        ],
        columns=EVENT_EXPORT_COLUMNS,
    )
    df.to_csv(csv_path, index=False)

    print(f"[INFO] Exported {len(df)} events to {csv_path}")
    return len(df)
