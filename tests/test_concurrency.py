"""
Concurrency safety tests.

Demonstrates:
1. Two riders racing for the last seat: exactly one booking, one
   ``InsufficientSeats``, seats end at 0.
2. Many riders racing for a small trip never overbook it.
3. A rider cancelling twice at once returns the seats only once.

Each simulated request runs in its own session on its own connection to a
file-backed SQLite database.  Transactions open with ``BEGIN IMMEDIATE``
so SQLite serializes writers the way row locks would on PostgreSQL.
"""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.domain.entities import Principal
from src.domain.enums import SEAT_CONSUMING_STATUSES, BookingStatus
from src.domain.exceptions import InsufficientSeats, InvalidStatusTransition
from src.infrastructure.database import Base
from src.infrastructure.repositories import BookingRepository, TripRepository
from src.services.reservations import ReservationService
from tests.conftest import DEPARTURE, SAN_FRANCISCO, SAN_JOSE, RecordingNotifier


@pytest_asyncio.fixture
async def file_sessions(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}",
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def _create_trip(factory, total_seats: int) -> int:
    async with factory() as session:
        trip = await TripRepository(session).create(
            driver_id=1,
            origin_lat=SAN_FRANCISCO[0],
            origin_lng=SAN_FRANCISCO[1],
            destination_lat=SAN_JOSE[0],
            destination_lng=SAN_JOSE[1],
            departure_time=DEPARTURE,
            total_seats=total_seats,
        )
        await session.commit()
        return trip.id


async def _in_request(factory, action):
    """Run *action(service)* as one request: commit on success, else roll back."""
    async with factory() as session:
        service = ReservationService(
            TripRepository(session), BookingRepository(session), RecordingNotifier()
        )
        try:
            result = await action(service)
            await service.commit()
            return result
        except Exception:
            await service.rollback()
            raise


async def _inventory(factory, trip_id: int) -> tuple[int, int, int]:
    async with factory() as session:
        trip = await TripRepository(session).get(trip_id)
        consumed = await BookingRepository(session).seats_held(
            trip_id, SEAT_CONSUMING_STATUSES
        )
        return trip.total_seats, trip.available_seats, consumed


class TestLastSeatRace:
    @pytest.mark.asyncio
    async def test_two_riders_one_seat(self, file_sessions):
        trip_id = await _create_trip(file_sessions, total_seats=1)

        results = await asyncio.gather(
            *(
                _in_request(
                    file_sessions,
                    lambda s, rider=rider: s.create_booking(trip_id, Principal(id=rider), 1),
                )
                for rider in (10, 11)
            ),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, Exception)]
        assert len(created) == 1
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientSeats)

        total, available, consumed = await _inventory(file_sessions, trip_id)
        assert available == 0
        assert total - available == consumed == 1

    @pytest.mark.asyncio
    async def test_many_riders_never_overbook(self, file_sessions):
        trip_id = await _create_trip(file_sessions, total_seats=3)

        results = await asyncio.gather(
            *(
                _in_request(
                    file_sessions,
                    lambda s, rider=rider: s.create_booking(trip_id, Principal(id=rider), 1),
                )
                for rider in range(20, 28)
            ),
            return_exceptions=True,
        )

        created = [r for r in results if not isinstance(r, Exception)]
        assert len(created) == 3
        assert all(isinstance(r, InsufficientSeats) for r in results if r not in created)

        total, available, consumed = await _inventory(file_sessions, trip_id)
        assert (total, available, consumed) == (3, 0, 3)


class TestDoubleCancel:
    @pytest.mark.asyncio
    async def test_seats_return_once(self, file_sessions):
        trip_id = await _create_trip(file_sessions, total_seats=4)
        rider = Principal(id=30)
        await _in_request(
            file_sessions, lambda s: s.create_booking(trip_id, Principal(id=31), 2)
        )
        booking = await _in_request(
            file_sessions, lambda s: s.create_booking(trip_id, rider, 1)
        )

        results = await asyncio.gather(
            *(
                _in_request(
                    file_sessions,
                    lambda s: s.update_booking_status(
                        booking.id, BookingStatus.CANCELLED, rider
                    ),
                )
                for _ in range(2)
            ),
            return_exceptions=True,
        )

        assert sum(not isinstance(r, Exception) for r in results) == 1
        assert sum(isinstance(r, InvalidStatusTransition) for r in results) == 1

        total, available, consumed = await _inventory(file_sessions, trip_id)
        assert available == 2
        assert total - available == consumed
