"""
Pytest configuration and fixtures.
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fixers.db import Database
from fixers.models import Base
from fixers.services.notifier import Notifier


# Test database URL (use SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingNotifier(Notifier):
    """Keeps every sent event for assertions."""

    def __init__(self):
        self.sent = []

    async def send(self, event, recipient_id, payload):
        self.sent.append((event, recipient_id, payload))

    def events(self):
        return [event for event, _, _ in self.sent]


class FailingNotifier(Notifier):
    """Every delivery blows up."""

    async def send(self, event, recipient_id, payload):
        raise RuntimeError("mail server unreachable")


@pytest_asyncio.fixture
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Create test database session."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:
        yield session


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return FailingNotifier()


@pytest_asyncio.fixture
async def api_client(db_engine, notifier):
    """HTTP client against the app, wired to the test database."""
    from fixers.main import app

    app.state.database = Database(TEST_DATABASE_URL, engine=db_engine)
    app.state.notifier = notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
