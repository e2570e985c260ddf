"""Pytest configuration and fixtures."""

import os
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from skillswap.core.db import Base, build_engine, create_tables, get_db
from skillswap.core.notifier import NotificationDispatcher, TransitionEvent
from skillswap.main import create_app
from skillswap.services.booking import BookingService

# Point at a disposable Postgres database to run the suite against asyncpg
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

# Fixed "now" for every booking rule under test
NOW = datetime(2030, 1, 15, 9, 0)

REQUESTER = "alice"
PROVIDER = "bob"
OUTSIDER = "mallory"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = NOW):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingNotifier:
    """Collects published events in order."""

    def __init__(self):
        self.events: list[TransitionEvent] = []

    async def publish(self, event: TransitionEvent) -> None:
        self.events.append(event)

    @property
    def actions(self) -> list[str]:
        return [e.action for e in self.events]


class FailingNotifier:
    async def publish(self, event: TransitionEvent) -> None:
        raise ConnectionError("notification subsystem unreachable")


@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh database per test. SQLite file so separate sessions really contend."""
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'skillswap_test.db'}"
    engine = build_engine(url)
    await create_tables(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Create fresh DB session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier: RecordingNotifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier)


@pytest.fixture
def booking_service(db_session, dispatcher, clock) -> BookingService:
    return BookingService(db_session, dispatcher, clock)


@pytest_asyncio.fixture
async def client(db_session, notifier, clock):
    """Async test client with the DB dependency bound to the test session."""
    app = create_app(notifier=notifier, clock=clock)

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        ac.app = app
        yield ac


def as_user(user_id: str) -> dict[str, str]:
    """Request headers identifying the caller."""
    return {"X-User-ID": user_id}
