#!/usr/bin/env python3
"""
Test suite configuration and utilities.

All tests run against SQLite, so no external services are needed:

    python -m pytest tests/ -v

    # Skip the slower database-backed tests
    python -m pytest tests/ -v -m "not db"

Services take an injectable clock; tests pin "now" with FixedClock.
"""

from datetime import datetime, timedelta, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.models import Base


def utc(year, month, day, hour=0, minute=0, second=0) -> datetime:
    return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)


class FixedClock:
    """Callable clock pinned to one instant until moved."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def create_test_engine(url: str = "sqlite://"):
    """
    Engine with every table created.

    The default in-memory database is shared by all sessions through a
    StaticPool; pass a file URL when several threads need their own
    connections.
    """
    if url == "sqlite://":
        engine = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        engine = create_engine(url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(engine)
    return engine


def create_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
