"""Engine and session helpers for the planner database."""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

DEFAULT_DB_URL = "sqlite:///studyplanner.db"


@lru_cache(maxsize=None)
def engine_for(db_url: str = DEFAULT_DB_URL) -> Engine:
    """One shared engine (and connection pool) per database URL."""
    return create_engine(db_url)


@lru_cache(maxsize=None)
def _session_factory(db_url: str) -> sessionmaker:
    return sessionmaker(bind=engine_for(db_url))


def init_database(db_url: str = DEFAULT_DB_URL) -> None:
    """Create the planner tables that do not exist yet."""
    engine = engine_for(db_url)
    Base.metadata.create_all(engine)
    tables = sorted(inspect(engine).get_table_names())
    print(f"[INFO] Database ready at {db_url}: {', '.join(tables)}")


def get_session(db_url: str = DEFAULT_DB_URL) -> Session:
    """Open a session on the shared engine for ``db_url``."""
    return _session_factory(db_url)()


def reset_database(db_url: str = DEFAULT_DB_URL) -> None:
    """Drop and recreate all planner tables (WARNING: deletes users, courses and events!)."""
    engine = engine_for(db_url)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    print(f"[WARN] All planner data removed: {db_url}")
