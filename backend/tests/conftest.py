"""
Pytest fixtures for test database, client, identities and seeded resources.

API tests run against an in-memory SQLite database (aiosqlite) with tables
created and dropped per test. Service tests use the in-memory repository
and never touch a database.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from room_booking.main import app
from room_booking.db.base import Base
from room_booking.db.session import get_db
from room_booking.models import ExternalVenue, Room, User
from room_booking.repositories.memory import InMemoryBookingRepository
from room_booking.services.notification_service import NotificationDispatcher

TEST_DATABASE_URL = "sqlite+aiosqlite://"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
@event.listens_for(test_engine.sync_engine, "connect")
def _on_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(test_engine.sync_engine, "begin")
def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "ADMIN"}
USER_HEADERS = {"X-User-Id": "user-1", "X-User-Role": "STANDARD"}
OTHER_USER_HEADERS = {"X-User-Id": "user-2", "X-User-Role": "STANDARD"}


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every message instead of delivering it."""

    def __init__(self, fail_for: tuple = ()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send(self, user, subject, body):
        if user.id in self.fail_for:
            raise ConnectionError(f"mailbox for {user.id} unreachable")
        self.sent.append((user.id, subject, body))


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Each test runs on its own event loop; never reuse the pooled connection
    await test_engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        # Same commit / rollback contract as get_db, on the shared test session
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def users(db_session: AsyncSession) -> dict:
    """Admin and two standard users matching the header fixtures."""
    seeded = {
        "admin-1": User(id="admin-1", email="admin@example.com", name="Ada Admin", role="ADMIN"),
        "user-1": User(id="user-1", email="user1@example.com", name="Uma User"),
        "user-2": User(id="user-2", email="user2@example.com", name="Otto Other"),
    }
    db_session.add_all(seeded.values())
    await db_session.commit()
    return seeded


@pytest_asyncio.fixture
async def rooms(db_session: AsyncSession) -> dict:
    """Two active rooms and one inactive room, keyed by name."""
    seeded = {
        "Lecture Hall": Room(id=1, name="Lecture Hall", capacity=120),
        "Seminar Room": Room(id=2, name="Seminar Room", capacity=20),
        "Old Lab": Room(id=3, name="Old Lab", capacity=10, is_active=False),
    }
    db_session.add_all(seeded.values())
    await db_session.commit()
    return seeded


@pytest_asyncio.fixture
async def venues(db_session: AsyncSession) -> dict:
    seeded = {
        "Town Hall": ExternalVenue(id=1, campus="City", building="Town Hall", room_name="Main Chamber"),
    }
    db_session.add_all(seeded.values())
    await db_session.commit()
    return seeded


@pytest.fixture
def memory_repo() -> InMemoryBookingRepository:
    """In-memory repository with two rooms, one inactive room and one venue."""
    repo = InMemoryBookingRepository()
    repo.add_room(Room(id=1, name="Lecture Hall", capacity=120, is_active=True))
    repo.add_room(Room(id=2, name="Seminar Room", capacity=20, is_active=True))
    repo.add_room(Room(id=3, name="Old Lab", capacity=10, is_active=False))
    repo.add_venue(ExternalVenue(id=1, campus="City", building="Town Hall", room_name="Main Chamber"))
    return repo


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()
