"""Repository classes for data access."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, joinedload

from .models import Course, CourseModule, ScheduleEvent, User

UNLINKED_EVENT_TITLE = "Study Session"


def module_event_title(module: CourseModule) -> str:
    return f"{module.course.title} - {module.title}"


class UserRepository:
    """Repository for user data access."""

    @staticmethod
    def get_by_id(session: Session, user_id: int) -> Optional[User]:
        """Get user by ID."""
        return session.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_email(session: Session, email: str) -> Optional[User]:
        return session.query(User).filter(User.email == email).first()

    @staticmethod
    def create(session: Session, user: User) -> User:
        """Create a new user."""
        session.add(user)
        session.commit()
        session.refresh(user)
        return user


class CourseRepository:
    """Repository for course data access."""

    @staticmethod
    def get_by_user(session: Session, user_id: int) -> List[Course]:
        """Get all courses owned by a user."""
        return session.query(Course).filter(Course.user_id == user_id).order_by(Course.id).all()

    @staticmethod
    def bulk_create(session: Session, courses: List[Course]) -> None:
        """Create multiple courses."""
        session.add_all(courses)
        session.commit()


class CourseModuleRepository:
    """Repository for course module data access."""

    @staticmethod
    def _scheduled_module_ids(user_id: int):
        return select(ScheduleEvent.course_module_id).where(
            ScheduleEvent.user_id == user_id,
            ScheduleEvent.course_module_id.is_not(None),
        )

    @staticmethod
    def get_unscheduled(session: Session, user_id: int) -> List[CourseModule]:
        """
        Modules eligible for auto-scheduling.

        A module qualifies when its course is active and owned by the user,
        the module is not completed, and no event links to it yet.
        """
        return (
            session.query(CourseModule)
            .join(Course)
            .options(joinedload(CourseModule.course))
            .filter(
                Course.user_id == user_id,
                Course.is_active.is_(True),
                CourseModule.is_completed.is_(False),
                CourseModule.id.not_in(CourseModuleRepository._scheduled_module_ids(user_id)),
            )
            .order_by(CourseModule.id)
            .all()
        )

    @staticmethod
    def get_available(session: Session, user_id: int) -> List[CourseModule]:
        """Modules of any of the user's courses that no event links to yet."""
        return (
            session.query(CourseModule)
            .join(Course)
            .options(joinedload(CourseModule.course))
            .filter(
                Course.user_id == user_id,
                CourseModule.id.not_in(CourseModuleRepository._scheduled_module_ids(user_id)),
            )
            .order_by(CourseModule.course_id, CourseModule.order_index, CourseModule.id)
            .all()
        )

    @staticmethod
    def get_owned(session: Session, user_id: int, module_id: int) -> Optional[CourseModule]:
        """Get a module only if its course belongs to the user."""
        return (
            session.query(CourseModule)
            .join(Course)
            .filter(CourseModule.id == module_id, Course.user_id == user_id)
            .first()
        )

    @staticmethod
    def bulk_create(session: Session, modules: List[CourseModule]) -> None:
        """Create multiple modules."""
        session.add_all(modules)
        session.commit()


class ScheduleEventRepository:
    """Repository for calendar event data access."""

    @staticmethod
    def get_by_user(session: Session, user_id: int) -> List[ScheduleEvent]:
        """All events for a user in start order, whatever created them."""
        return (
            session.query(ScheduleEvent)
            .filter(ScheduleEvent.user_id == user_id)
            .order_by(ScheduleEvent.start_utc, ScheduleEvent.id)
            .all()
        )

    @staticmethod
    def get_in_range(
        session: Session,
        user_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> List[ScheduleEvent]:
        """
        Events touching ``[start, end]``.

        Open-ended events (no end time) match on their start time.
        """
        query = session.query(ScheduleEvent).filter(ScheduleEvent.user_id == user_id)
        if start is not None:
            query = query.filter(
                or_(
                    and_(ScheduleEvent.end_utc.is_(None), ScheduleEvent.start_utc >= start),
                    ScheduleEvent.end_utc >= start,
                )
            )
        if end is not None:
            query = query.filter(ScheduleEvent.start_utc <= end)
        return query.order_by(ScheduleEvent.start_utc, ScheduleEvent.id).all()

    @staticmethod
    def bulk_create(session: Session, events: List[ScheduleEvent]) -> None:
        """Insert all events in one transaction; nothing is kept on failure."""
        if not events:
            return
        try:
            session.add_all(events)
            session.commit()
        except Exception:
            session.rollback()
            raise

    @staticmethod
    def delete_for_user(session: Session, user_id: int) -> int:
        """Delete every event of a user. Returns number of deleted rows."""
        count = (
            session.query(ScheduleEvent)
            .filter(ScheduleEvent.user_id == user_id)
            .delete(synchronize_session=False)
        )
        session.commit()
        return count

    @staticmethod
    def _get_owned_event(session: Session, user_id: int, event_id: int) -> ScheduleEvent:
        event = (
            session.query(ScheduleEvent)
            .filter(ScheduleEvent.id == event_id, ScheduleEvent.user_id == user_id)
            .first()
        )
        if event is None:
            raise ValueError(f"Event {event_id} not found for user {user_id}")
        return event

    @staticmethod
    def link_module(session: Session, user_id: int, event_id: int, module_id: int) -> ScheduleEvent:
        """Attach an event to one of the user's modules and retitle it."""
        event = ScheduleEventRepository._get_owned_event(session, user_id, event_id)
        module = CourseModuleRepository.get_owned(session, user_id, module_id)
        if module is None:
            raise ValueError(f"Module {module_id} does not belong to user {user_id}")

        event.course_module_id = module.id
        event.title = module_event_title(module)
        event.updated_at = datetime.utcnow()
        session.commit()
        return event

    @staticmethod
    def unlink_module(session: Session, user_id: int, event_id: int) -> ScheduleEvent:
        """Detach an event from its module and reset the title."""
        event = ScheduleEventRepository._get_owned_event(session, user_id, event_id)
        event.course_module_id = None
        event.title = UNLINKED_EVENT_TITLE
        event.updated_at = datetime.utcnow()
        session.commit()
        return event
