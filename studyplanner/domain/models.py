"""SQLAlchemy models for the study planner."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class User(Base):
    """Learner account with study preferences used as scheduling defaults."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(String(200), nullable=False, default="")
    email = Column(String(200), nullable=False, unique=True)
    study_speed = Column(String(20), nullable=False, default="normal")  # slow, normal, fast
    max_session_minutes = Column(Integer, nullable=False, default=60)
    weekly_limit_hours = Column(Integer, nullable=False, default=10)

    # Relationships
    courses = relationship("Course", back_populates="user")
    events = relationship("ScheduleEvent", back_populates="user")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', speed='{self.study_speed}')>"


class Course(Base):
    """Course owned by a user; its modules are the schedulable backlog."""

    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    difficulty = Column(String(20), nullable=False, default="Beginner")  # Beginner, Intermediate, Advanced
    priority = Column(String(20), nullable=False, default="Medium")  # High, Medium, Low
    target_completion_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="courses")
    modules = relationship("CourseModule", back_populates="course", order_by="CourseModule.order_index")

    def __repr__(self) -> str:
        return f"<Course(id={self.id}, title='{self.title}', priority='{self.priority}')>"


class CourseModule(Base):
    """Unit of study work with an hours estimate."""

    __tablename__ = "course_modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    title = Column(String(200), nullable=False)
    estimated_hours = Column(Float, nullable=False, default=1.0)
    order_index = Column(Integer, nullable=False, default=0)
    is_completed = Column(Boolean, nullable=False, default=False)

    # Relationships
    course = relationship("Course", back_populates="modules")
    events = relationship("ScheduleEvent", back_populates="course_module")

    def __repr__(self) -> str:
        return f"<CourseModule(id={self.id}, course={self.course_id}, title='{self.title}', hours={self.estimated_hours})>"


class ScheduleEvent(Base):
    """Calendar event; times are stored as naive UTC."""

    __tablename__ = "schedule_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    title = Column(String(300), nullable=False, default="")
    start_utc = Column(DateTime, nullable=False)
    end_utc = Column(DateTime, nullable=True)
    all_day = Column(Boolean, nullable=False, default=False)
    course_module_id = Column(Integer, ForeignKey("course_modules.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="events")
    course_module = relationship("CourseModule", back_populates="events")

    @property
    def duration_hours(self) -> float:
        if self.end_utc is None:
            return 0.0
        return (self.end_utc - self.start_utc).total_seconds() / 3600.0

    def __repr__(self) -> str:
        return f"<ScheduleEvent(id={self.id}, title='{self.title}', start={self.start_utc}, end={self.end_utc})>"
