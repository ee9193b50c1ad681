"""Database engine and sessions for the tracker.

The API, the scripts and the services all get their sessions from here. The
URL comes from TRACKER_DATABASE_URL, then DATABASE_URL, and defaults to a
`tracker.db` SQLite file in the working directory. Hosted Postgres URLs
(`postgres://...`) are rewritten to the psycopg driver.

Pool settings (ignored for SQLite): TRACKER_DB_POOL_SIZE, TRACKER_DB_MAX_OVERFLOW.
TRACKER_DB_ECHO turns on SQL logging.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from tracker import config

DEFAULT_URL = "sqlite:///./tracker.db"


def database_url() -> str:
    url = os.getenv("TRACKER_DATABASE_URL") or os.getenv("DATABASE_URL") or DEFAULT_URL
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


def make_engine(url: str | None = None) -> Engine:
    """Build the engine for `url` (default: database_url())."""
    url = url or database_url()
    echo = config.parse_bool(os.getenv("TRACKER_DB_ECHO"))

    if url.startswith("sqlite"):
        return create_engine(url, echo=echo, pool_pre_ping=True)
    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=int(os.getenv("TRACKER_DB_POOL_SIZE", "5")),
        max_overflow=int(os.getenv("TRACKER_DB_MAX_OVERFLOW", "10")),
    )


ENGINE: Engine = make_engine()
# Services commit explicitly; rows stay readable after commit for responses.
SessionLocal = sessionmaker(bind=ENGINE, autoflush=False, autocommit=False, expire_on_commit=False)


@contextmanager
def get_session() -> Iterator[Session]:
    """Yield a session and close it afterwards. Nothing is committed here."""
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def current_engine_url() -> str:
    """Engine URL with the password masked, for log lines."""
    return ENGINE.url.render_as_string(hide_password=True)


def test_connection() -> bool:
    """True when `SELECT 1` succeeds on the engine."""
    try:
        with ENGINE.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
