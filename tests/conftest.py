import os
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, timedelta
from unittest.mock import MagicMock
from uuid import UUID

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time, so the test environment goes in first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-tests-only")
os.environ["SCHEDULE_TIMEZONE"] = "UTC"
os.environ["MIN_INTERVAL_MINUTES"] = "80"
os.environ["GATE_ENTRY_WINDOW_MINUTES"] = "15"
os.environ["ALLOW_WEEKEND_SLOTS"] = "false"
os.environ["SYNC_CURSOR_SKEW_SECONDS"] = "5"

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import insert  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from coordinator.core.events import ChangePublisher  # noqa: E402
from coordinator.core.security import issue_actor_token  # noqa: E402
from coordinator.database import get_db  # noqa: E402
from coordinator.dependencies import get_redis  # noqa: E402
from coordinator.main import app  # noqa: E402
from coordinator.models import metadata, providers, requesters  # noqa: E402
from coordinator.schemas.appointments import AppointmentCreate  # noqa: E402
from coordinator.schemas.auth import Actor, ActorRole  # noqa: E402

# In-memory SQLite shared across the session's single connection
TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeClock:
    """Settable clock injected into services."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh in-memory database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def redis_mock() -> MagicMock:
    """Stand-in Redis client; nothing is cached and every counter starts empty."""
    client = MagicMock()
    client.get.return_value = None
    return client


@pytest.fixture
def publisher(redis_mock: MagicMock) -> ChangePublisher:
    return ChangePublisher(redis_mock)


@pytest.fixture
def clock() -> FakeClock:
    """Monday 2025-12-01 08:00 UTC."""
    return FakeClock(datetime(2025, 12, 1, 8, 0, tzinfo=UTC))


async def _insert(db: AsyncSession, table, **values) -> UUID:
    result = await db.execute(insert(table).values(**values).returning(table.c.id))
    row_id = result.scalar_one()
    await db.commit()
    return row_id


@pytest_asyncio.fixture
async def counselors(db_session: AsyncSession) -> dict[str, Actor]:
    """Three counselors keyed x, y, z."""
    people = {
        "x": ("Ms. Dana Reyes", "dana.reyes@example.edu"),
        "y": ("Mr. Paolo Santos", "paolo.santos@example.edu"),
        "z": ("Ms. Irene Tan", "irene.tan@example.edu"),
    }
    actors = {}
    for key, (name, email) in people.items():
        provider_id = await _insert(db_session, providers, name=name, email=email)
        actors[key] = Actor(id=provider_id, role=ActorRole.PROVIDER, name=name)
    return actors


@pytest_asyncio.fixture
async def students(db_session: AsyncSession) -> dict[str, Actor]:
    """Two students keyed a, b, each with a gate badge."""
    people = {
        "a": ("Lea Cruz", "02000000001", "STEM-101", "badge-a"),
        "b": ("Marco Villanueva", "02000000002", "ABM-202", "badge-b"),
    }
    actors = {}
    for key, (name, id_number, section, badge) in people.items():
        requester_id = await _insert(
            db_session,
            requesters,
            name=name,
            id_number=id_number,
            section=section,
            contact_phone="0917-123-4567",
            identity_token=badge,
        )
        actors[key] = Actor(id=requester_id, role=ActorRole.REQUESTER, name=name)
    return actors


def _booking(provider: Actor, on_date: date, time: str, **overrides) -> AppointmentCreate:
    data = {
        "provider_id": provider.id,
        "date": on_date,
        "time": time,
        "reason": "Academic stress",
        "description": "Exams are piling up",
        "requester_id_number": "02000000001",
        "section": "STEM-101",
        "contact_phone": "0917-123-4567",
        "has_consent": True,
    }
    data.update(overrides)
    return AppointmentCreate(**data)


def _auth_headers(actor: Actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_actor_token(actor)}"}


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    redis_mock: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: redis_mock

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_booking():
    """Factory for valid booking payloads."""
    return _booking


@pytest.fixture
def auth_headers():
    """Factory for bearer headers of a given actor."""
    return _auth_headers
