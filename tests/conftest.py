"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models carry no
PostgreSQL-only column types, so the real metadata is created as-is.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from src.infrastructure.database import Base
from src.infrastructure.notifier import Notifier
from src.infrastructure.repositories import BookingRepository, TripRepository
from src.services.reservations import ReservationService

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

SAN_FRANCISCO = (37.7749, -122.4194)
SAN_JOSE = (37.3382, -121.8863)
DEPARTURE = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent: list[tuple[int, str, str]] = []

    async def notify(self, user_id: int, title: str, message: str) -> None:
        self.sent.append((user_id, title, message))

    def recipients(self) -> list[int]:
        return [user_id for user_id, _, _ in self.sent]


class FailingNotifier(Notifier):
    async def notify(self, user_id: int, title: str, message: str) -> None:
        raise ConnectionError("push gateway down")


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def trip_repo(db_session: AsyncSession) -> TripRepository:
    return TripRepository(db_session)


@pytest.fixture
def booking_repo(db_session: AsyncSession) -> BookingRepository:
    return BookingRepository(db_session)


@pytest.fixture
def service(trip_repo, booking_repo, notifier) -> ReservationService:
    return ReservationService(trip_repo, booking_repo, notifier)


@pytest.fixture
def make_trip(trip_repo: TripRepository):
    """Factory for SF -> San Jose trips; keyword overrides apply."""

    async def _make(**overrides):
        fields = dict(
            driver_id=1,
            origin_lat=SAN_FRANCISCO[0],
            origin_lng=SAN_FRANCISCO[1],
            destination_lat=SAN_JOSE[0],
            destination_lng=SAN_JOSE[1],
            departure_time=DEPARTURE,
            total_seats=4,
        )
        fields.update(overrides)
        return await trip_repo.create(**fields)

    return _make


@pytest.fixture
def failing_notifier() -> FailingNotifier:
    return FailingNotifier()
