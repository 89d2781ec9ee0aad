"""Command-line interface for the study planner."""

from __future__ import annotations

import argparse
import json
from datetime import datetime

from studyplanner.config import load_config
from studyplanner.domain.db import get_session, init_database, reset_database
from studyplanner.domain.models import User
from studyplanner.domain.repositories import (
    CourseModuleRepository,
    ScheduleEventRepository,
    UserRepository,
)
from studyplanner.engine.orchestrator import AutoScheduler, busy_intervals_from_events
from studyplanner.io.export_csv import export_events_csv
from studyplanner.io.import_csv import import_courses_csv, import_events_csv, import_modules_csv
from studyplanner.services.constraints import AutoScheduleRequest, resolve_scheduling_config
from studyplanner.services.timeline import FixedOffsetTimeline
from studyplanner.validator import summarize_events, validate_schedule


def _db_url(args: argparse.Namespace) -> str:
    if args.db:
        return args.db
    return load_config(getattr(args, "config", None)).db_url


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _request_from_args(args: argparse.Namespace) -> AutoScheduleRequest:
    return AutoScheduleRequest(
        start_datetime=_parse_dt(args.start),
        preferred_start_hour=args.start_hour,
        preferred_end_hour=args.end_hour,
        include_weekends=True if args.weekends else None,
        max_daily_hours=args.max_daily_hours,
        max_session_minutes=args.max_session_minutes,
        buffer_minutes=args.buffer_minutes,
        weekly_limit_hours=args.weekly_limit_hours,
        timezone_offset_minutes=args.tz_offset,
        course_order_ids=args.course_order,
        focus_preference=args.focus,
        study_speed=args.speed,
    )


def _cmd_init_db(args: argparse.Namespace) -> None:
    """Initialize the database."""
    db_url = _db_url(args)
    if args.reset:
        reset_database(db_url)
    else:
        init_database(db_url)
    print(f"[OK] Database initialized: {db_url}")


def _cmd_add_user(args: argparse.Namespace) -> None:
    """Create a user with study preferences."""
    session = get_session(_db_url(args))
    try:
        user = UserRepository.create(
            session,
            User(
                full_name=args.name or "",
                email=args.email,
                study_speed=args.speed,
                max_session_minutes=args.max_session_minutes,
                weekly_limit_hours=args.weekly_limit_hours,
            ),
        )
        print(f"[OK] Created user {user.id} ({user.email})")
    except Exception as e:
        session.rollback()
        print(f"[ERROR] Could not create user: {e}")
        raise
    finally:
        session.close()


def _cmd_import_csv(args: argparse.Namespace) -> None:
    """Import CSV data into database."""
    session = get_session(_db_url(args))
    try:
        if args.courses:
            count = import_courses_csv(session, args.courses, args.user)
            print(f"[OK] Imported {count} courses")

        if args.modules:
            count = import_modules_csv(session, args.modules)
            print(f"[OK] Imported {count} modules")

        if args.events:
            count = import_events_csv(session, args.events, args.user)
            print(f"[OK] Imported {count} events")

        print("[OK] CSV import complete")
    except Exception as e:
        session.rollback()
        print(f"[ERROR] Import failed: {e}")
        raise
    finally:
        session.close()


def _cmd_auto_schedule(args: argparse.Namespace) -> None:
    """Pack the user's unscheduled modules into the calendar."""
    session = get_session(_db_url(args))
    try:
        cfg = load_config(args.config)
        result = AutoScheduler(cfg).run(
            session, args.user, _request_from_args(args), persist=not args.dry_run
        )
        if args.json:
            print(json.dumps(result.to_dict(), indent=2))
        else:
            print(summarize_events(result.events, result.scheduling_config))
        if result.infeasible_module_ids:
            print(f"[WARN] Infeasible modules: {result.infeasible_module_ids}")
    except Exception as e:
        session.rollback()
        print(f"[ERROR] Auto-schedule failed: {e}")
        raise
    finally:
        session.close()


def _cmd_events(args: argparse.Namespace) -> None:
    """List events in an optional UTC range."""
    session = get_session(_db_url(args))
    try:
        events = ScheduleEventRepository.get_in_range(
            session, args.user, _parse_dt(args.start), _parse_dt(args.end)
        )
        for e in events:
            end = e.end_utc.isoformat() if e.end_utc else "-"
            print(f"{e.id:>5}  {e.start_utc.isoformat()}  {end}  {e.title}")
        print(f"[OK] {len(events)} events")
    finally:
        session.close()


def _cmd_available(args: argparse.Namespace) -> None:
    """List modules not linked to any event."""
    session = get_session(_db_url(args))
    try:
        modules = CourseModuleRepository.get_available(session, args.user)
        for m in modules:
            print(f"{m.id:>5}  {m.course.title} - {m.title}  ({m.estimated_hours}h)")
        print(f"[OK] {len(modules)} modules available")
    finally:
        session.close()


def _cmd_link(args: argparse.Namespace) -> None:
    """Link an event to a module, or unlink it."""
    session = get_session(_db_url(args))
    try:
        if args.module is None:
            event = ScheduleEventRepository.unlink_module(session, args.user, args.event)
        else:
            event = ScheduleEventRepository.link_module(session, args.user, args.event, args.module)
        print(f"[OK] Event {event.id} is now '{event.title}'")
    except Exception as e:
        session.rollback()
        print(f"[ERROR] Link failed: {e}")
        raise
    finally:
        session.close()


def _cmd_reset(args: argparse.Namespace) -> None:
    """Remove every event of a user."""
    session = get_session(_db_url(args))
    try:
        removed = ScheduleEventRepository.delete_for_user(session, args.user)
        print(f"[OK] Removed {removed} events")
    finally:
        session.close()


def _cmd_export(args: argparse.Namespace) -> None:
    """Export events to CSV."""
    session = get_session(_db_url(args))
    try:
        count = export_events_csv(session, args.events, args.user)
        print(f"[OK] Exported {count} events to {args.events}")
    finally:
        session.close()


def _cmd_validate(args: argparse.Namespace) -> None:
    """Validate the user's module-linked events against the scheduling rules."""
    session = get_session(_db_url(args))
    try:
        cfg = load_config(args.config)
        scheduling_cfg = resolve_scheduling_config(
            _request_from_args(args), cfg, user=UserRepository.get_by_id(session, args.user)
        )
        events = ScheduleEventRepository.get_by_user(session, args.user)
        planned = [e for e in events if e.course_module_id is not None and not e.all_day]
        other = [e for e in events if e.course_module_id is None or e.all_day]
        busy = busy_intervals_from_events(
            other,
            FixedOffsetTimeline(scheduling_cfg.timezone_offset_minutes),
            cfg.default_event_minutes,
        )
        validate_schedule(planned, scheduling_cfg, busy=busy)
        print(f"[OK] Validation passed for {len(planned)} events")
    except Exception as e:
        print(f"[ERROR] Validation failed: {e}")
        raise
    finally:
        session.close()


def _add_request_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", help="Path to config YAML")
    p.add_argument("--start", help="Start instant (ISO 8601, UTC if no offset)")
    p.add_argument("--start-hour", type=int)
    p.add_argument("--end-hour", type=int)
    p.add_argument("--weekends", action="store_true", help="Allow Saturday/Sunday blocks")
    p.add_argument("--max-daily-hours", type=float)
    p.add_argument("--max-session-minutes", type=int)
    p.add_argument("--buffer-minutes", type=int)
    p.add_argument("--weekly-limit-hours", type=float, help="0 = unlimited")
    p.add_argument("--tz-offset", type=int, help="Minutes, local = UTC - offset")
    p.add_argument("--course-order", type=int, nargs="*", help="Course ids, most urgent first")
    p.add_argument("--focus", choices=["morning", "evening"])
    p.add_argument("--speed", choices=["slow", "normal", "fast"])


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(prog="studyplanner", description="Study planner auto-scheduler")
    parser.add_argument("--db", help="Database URL (default: from config)")

    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser("init-db", help="Initialize database")
    init.add_argument("--config", help="Path to config YAML")
    init.add_argument("--reset", action="store_true", help="Drop and recreate all tables (deletes data)")
    init.set_defaults(func=_cmd_init_db)

    usr = sub.add_parser("add-user", help="Create a user")
    usr.add_argument("--email", required=True)
    usr.add_argument("--name")
    usr.add_argument("--speed", choices=["slow", "normal", "fast"], default="normal")
    usr.add_argument("--max-session-minutes", type=int, default=60)
    usr.add_argument("--weekly-limit-hours", type=int, default=10, help="0 = unlimited")
    usr.set_defaults(func=_cmd_add_user)

    imp = sub.add_parser("import-csv", help="Import CSV data into database")
    imp.add_argument("--user", type=int, required=True)
    imp.add_argument("--courses", help="Path to courses CSV")
    imp.add_argument("--modules", help="Path to modules CSV")
    imp.add_argument("--events", help="Path to existing events CSV")
    imp.set_defaults(func=_cmd_import_csv)

    auto = sub.add_parser("auto-schedule", help="Schedule unscheduled modules")
    auto.add_argument("--user", type=int, required=True)
    auto.add_argument("--dry-run", action="store_true", help="Do not persist events")
    auto.add_argument("--json", action="store_true", help="Print the result as JSON")
    _add_request_args(auto)
    auto.set_defaults(func=_cmd_auto_schedule)

    evt = sub.add_parser("events", help="List events")
    evt.add_argument("--user", type=int, required=True)
    evt.add_argument("--start", help="From (ISO 8601)")
    evt.add_argument("--end", help="To (ISO 8601)")
    evt.set_defaults(func=_cmd_events)

    avl = sub.add_parser("available", help="List modules without events")
    avl.add_argument("--user", type=int, required=True)
    avl.set_defaults(func=_cmd_available)

    lnk = sub.add_parser("link", help="Link an event to a module (omit --module to unlink)")
    lnk.add_argument("--user", type=int, required=True)
    lnk.add_argument("--event", type=int, required=True)
    lnk.add_argument("--module", type=int)
    lnk.set_defaults(func=_cmd_link)

    rst = sub.add_parser("reset", help="Delete all events of a user")
    rst.add_argument("--user", type=int, required=True)
    rst.set_defaults(func=_cmd_reset)

    exp = sub.add_parser("export", help="Export events to CSV")
    exp.add_argument("--user", type=int, required=True)
    exp.add_argument("--events", required=True, help="Path to export events CSV")
    exp.set_defaults(func=_cmd_export)

    val = sub.add_parser("validate", help="Validate a user's scheduled events")
    val.add_argument("--user", type=int, required=True)
    _add_request_args(val)
    val.set_defaults(func=_cmd_validate)

    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
