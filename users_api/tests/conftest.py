"""
Test configuration and fixtures
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio

from src.db.config import Settings
from src.db.session import create_engine_from_settings
from src.repositories.memory import InMemoryUserRepository
from src.repositories.sql import SqlUserRepository
from src.schemas.user import CustomData, User

SQLITE_MEMORY_URL = "sqlite+aiosqlite:///:memory:"


class TickingClock:
    """Deterministic clock that advances by `step` on every call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.step = step
        self.calls = 0
        self.fail_next = False

    def __call__(self):
        if self.fail_next:
            self.fail_next = False
            raise RuntimeError("clock exploded")
        value = self.now
        self.now = self.now + self.step
        self.calls += 1
        return value


def sqlite_repository(clock, url=SQLITE_MEMORY_URL):
    engine = create_engine_from_settings(Settings(DATABASE_URL=url))
    return SqlUserRepository(engine, clock=clock)


@pytest.fixture
def clock():
    """Clock starting at 2024-01-01T12:00Z, one second per call."""
    return TickingClock()


@pytest.fixture
def make_user():
    """Factory for valid users; every call gets a fresh id unless given one."""

    def _make(user_id=None, name="Rob", birth_date=date(1977, 3, 10), random=1, **extra):
        return User(
            id=user_id or uuid4(),
            name=name,
            birth_date=birth_date,
            custom_data=CustomData(random=random, **extra),
        )

    return _make


@pytest.fixture
def memory_repo(clock):
    """In-memory repository with a short lock timeout."""
    return InMemoryUserRepository(clock=clock, lock_timeout=1.0)


@pytest_asyncio.fixture
async def sql_repo(clock):
    """Relational repository over a private in-memory SQLite database."""
    repo = sqlite_repository(clock)
    await repo.create_schema()
    yield repo
    await repo.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def repository(request, clock):
    """Each contract test runs once per backend."""
    if request.param == "memory":
        yield InMemoryUserRepository(clock=clock, lock_timeout=1.0)
        return
    repo = sqlite_repository(clock)
    await repo.create_schema()
    yield repo
    await repo.close()
