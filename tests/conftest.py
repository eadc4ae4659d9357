"""
Pytest configuration and fixtures for conflict engine tests.

Provides an in-memory async database, a Resolution Store bound to it,
event factories and an in-memory event repository.
"""

from datetime import datetime, timedelta
from typing import AsyncGenerator, Callable, Optional

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from conflict_engine.config import Settings
from conflict_engine.database import make_session_factory
from conflict_engine.integrations.memory import InMemoryEventRepository
from conflict_engine.models.base import Base
from conflict_engine.models.events import Event
from conflict_engine.services.resolution_store import ResolutionStore

# Monday
BASE_DAY = datetime(2024, 1, 15)


def at(hour: int, minute: int = 0, day_offset: int = 0) -> datetime:
    """Datetime on the test base day (a Monday)."""
    return BASE_DAY + timedelta(days=day_offset, hours=hour, minutes=minute)


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only, independent of any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """
    Factory for events on the base day.

    Usage:
        make_event("e1", 10, 11, priority="urgent")
        make_event("e2", 10, 11, start_minute=30, end_minute=30)
    """

    def _make(
        event_id: Optional[str],
        start_hour: int,
        end_hour: int,
        start_minute: int = 0,
        end_minute: int = 0,
        **kwargs,
    ) -> Event:
        kwargs.setdefault("title", f"Event {event_id}")
        return Event(
            id=event_id,
            start_time=at(start_hour, start_minute),
            end_time=at(end_hour, end_minute),
            **kwargs,
        )

    return _make


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Clean in-memory SQLite database for each test.

    StaticPool keeps the single in-memory connection alive across sessions.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture
def store(session_factory, settings) -> ResolutionStore:
    """Resolution Store bound to the in-memory database."""
    return ResolutionStore(session_factory, settings=settings)


class UnavailableSessionFactory:
    """Session factory whose every call fails like an unreachable database."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1
        raise OperationalError("SELECT 1", {}, ConnectionRefusedError("database is down"))


@pytest.fixture
def unavailable_store(settings) -> ResolutionStore:
    """Resolution Store whose backend is unreachable."""
    return ResolutionStore(UnavailableSessionFactory(), settings=settings)


@pytest.fixture
def repository() -> InMemoryEventRepository:
    return InMemoryEventRepository()
