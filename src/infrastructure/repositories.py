"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Committing is the caller's job.

Seat inventory
--------------
``TripRepository.adjust_available_seats`` is the single writer of
``trips.available_seats``.  It is one conditional UPDATE guarded by the
inventory bounds, so concurrent callers on the same trip are linearized by
the database and no application-level read-then-write window exists.
"""

from __future__ import annotations

import functools
import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, TripModel
from src.domain.entities import Coordinate
from src.domain.enums import (
    SEAT_HOLDING_STATUSES,
    TRIP_TRANSITIONS,
    BookingStatus,
    TripStatus,
)
from src.domain.exceptions import (
    BookingNotFound,
    DuplicateBooking,
    InsufficientSeats,
    InvalidArgument,
    InvalidStatusTransition,
    StorageUnavailable,
    TripNotFound,
)
from src.domain.matching import as_utc

logger = logging.getLogger(__name__)


def translate_storage_errors(fn):
    """Re-raise connection-level database failures as ``StorageUnavailable``."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except (OperationalError, InterfaceError, PoolTimeoutError) as exc:
            logger.error("Storage failure in %s: %s", fn.__qualname__, exc)
            raise StorageUnavailable("Backing store unavailable") from exc

    return wrapper


class _Repository:
    def __init__(self, session: AsyncSession):
        self.session = session

    @translate_storage_errors
    async def commit(self) -> None:
        """Commit the shared session; connection failures become ``StorageUnavailable``."""
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()


class TripRepository(_Repository):

    @translate_storage_errors
    async def create(
        self,
        *,
        driver_id: int,
        origin_lat: float,
        origin_lng: float,
        destination_lat: float,
        destination_lng: float,
        departure_time: datetime,
        total_seats: int,
        origin_city: str | None = None,
        destination_city: str | None = None,
    ) -> TripModel:
        if total_seats <= 0:
            raise InvalidArgument("total_seats must be positive")
        Coordinate(origin_lat, origin_lng).validate()
        Coordinate(destination_lat, destination_lng).validate()
        trip = TripModel(
            driver_id=driver_id,
            origin_lat=origin_lat,
            origin_lng=origin_lng,
            destination_lat=destination_lat,
            destination_lng=destination_lng,
            origin_city=origin_city,
            destination_city=destination_city,
            departure_time=as_utc(departure_time),
            total_seats=total_seats,
            available_seats=total_seats,
            status=TripStatus.ACTIVE,
        )
        self.session.add(trip)
        await self.session.flush()
        return trip

    @translate_storage_errors
    async def get_by_id(
        self, trip_id: int, *, refresh: bool = False
    ) -> Optional[TripModel]:
        return await self.session.get(
            TripModel, trip_id, populate_existing=refresh
        )

    async def get(self, trip_id: int, *, refresh: bool = False) -> TripModel:
        trip = await self.get_by_id(trip_id, refresh=refresh)
        if trip is None:
            raise TripNotFound(f"Trip {trip_id} not found")
        return trip

    @translate_storage_errors
    async def list_active(self) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.status == TripStatus.ACTIVE)
            .order_by(TripModel.departure_time)
        )
        return list(result.scalars().all())

    @translate_storage_errors
    async def list_by_driver(self, driver_id: int) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel)
            .where(TripModel.driver_id == driver_id)
            .order_by(TripModel.departure_time)
        )
        return list(result.scalars().all())

    @translate_storage_errors
    async def list_by_cities(
        self, origin_city: str, destination_city: str
    ) -> list[TripModel]:
        """Active trips whose city names contain the given text (case-insensitive)."""
        result = await self.session.execute(
            select(TripModel).where(
                TripModel.status == TripStatus.ACTIVE,
                func.lower(TripModel.origin_city).contains(origin_city.lower()),
                func.lower(TripModel.destination_city).contains(
                    destination_city.lower()
                ),
            )
        )
        return list(result.scalars().all())

    @translate_storage_errors
    async def list_departing_between(
        self, start: datetime, end: datetime
    ) -> list[TripModel]:
        """Active trips with free seats departing in ``[start, end]``."""
        result = await self.session.execute(
            select(TripModel).where(
                TripModel.status == TripStatus.ACTIVE,
                TripModel.available_seats > 0,
                TripModel.departure_time.between(start, end),
            )
        )
        return list(result.scalars().all())

    @translate_storage_errors
    async def set_status(self, trip_id: int, status: TripStatus) -> TripModel:
        """Move a trip along ``TRIP_TRANSITIONS``; terminal states are final."""
        status = TripStatus(status)
        predecessors = [
            current
            for current, targets in TRIP_TRANSITIONS.items()
            if status in targets
        ]
        if predecessors:
            result = await self.session.execute(
                update(TripModel)
                .where(TripModel.id == trip_id, TripModel.status.in_(predecessors))
                .values(status=status)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return await self.get(trip_id, refresh=True)

        trip = await self.get(trip_id, refresh=True)
        raise InvalidStatusTransition(
            f"Cannot transition trip from {trip.status.value} to {status.value}"
        )

    @translate_storage_errors
    async def adjust_available_seats(
        self,
        trip_id: int,
        delta: int,
        *,
        require_status: TripStatus | None = None,
    ) -> TripModel:
        """
        Atomically add *delta* to ``available_seats``.

        Negative *delta* consumes seats, positive returns them.  Zero
        affected rows means the trip is absent, not in *require_status*,
        or the result would leave ``[0, total_seats]``; nothing is written
        in any of those cases.
        """
        new_value = TripModel.available_seats + delta
        conditions = [
            TripModel.id == trip_id,
            new_value >= 0,
            new_value <= TripModel.total_seats,
        ]
        if require_status is not None:
            conditions.append(TripModel.status == require_status)
        result = await self.session.execute(
            update(TripModel)
            .where(and_(*conditions))
            .values(available_seats=new_value)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            trip = await self.get(trip_id, refresh=True)
            if require_status is not None and trip.status != require_status:
                raise TripNotFound(
                    f"Trip {trip_id} is {trip.status.value}, not {require_status.value}"
                )
            logger.info(
                "Seat adjustment rejected: trip=%d delta=%d available=%d/%d",
                trip_id, delta, trip.available_seats, trip.total_seats,
            )
            raise InsufficientSeats(
                f"Trip {trip_id} has {trip.available_seats} seats available"
            )
        return await self.get(trip_id, refresh=True)


class BookingRepository(_Repository):

    @translate_storage_errors
    async def create(
        self,
        *,
        trip_id: int,
        rider_id: int,
        seats_requested: int,
        idempotency_key: str | None = None,
    ) -> BookingModel:
        booking = BookingModel(
            trip_id=trip_id,
            rider_id=rider_id,
            seats_requested=seats_requested,
            idempotency_key=idempotency_key,
            status=BookingStatus.PENDING,
        )
        self.session.add(booking)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            if idempotency_key is None:
                raise
            raise DuplicateBooking(
                f"Idempotency key {idempotency_key!r} already used"
            ) from exc
        return booking

    @translate_storage_errors
    async def get_by_id(
        self, booking_id: int, *, refresh: bool = False
    ) -> Optional[BookingModel]:
        return await self.session.get(
            BookingModel, booking_id, populate_existing=refresh
        )

    async def get(self, booking_id: int, *, refresh: bool = False) -> BookingModel:
        booking = await self.get_by_id(booking_id, refresh=refresh)
        if booking is None:
            raise BookingNotFound(f"Booking {booking_id} not found")
        return booking

    @translate_storage_errors
    async def get_by_idempotency_key(self, key: str) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    @translate_storage_errors
    async def list_by_trip(self, trip_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.trip_id == trip_id)
            .order_by(BookingModel.id)
        )
        return list(result.scalars().all())

    @translate_storage_errors
    async def list_by_rider(self, rider_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.rider_id == rider_id)
            .order_by(BookingModel.id)
        )
        return list(result.scalars().all())

    @translate_storage_errors
    async def set_status(
        self,
        booking_id: int,
        status: BookingStatus,
        *,
        expected: BookingStatus | None = None,
    ) -> BookingModel:
        """
        Write *status*.  Legality is enforced by ReservationService.

        With *expected*, the write only lands if the stored status still
        equals it (compare-and-set); otherwise ``InvalidStatusTransition``.
        """
        conditions = [BookingModel.id == booking_id]
        if expected is not None:
            conditions.append(BookingModel.status == expected)
        result = await self.session.execute(
            update(BookingModel)
            .where(and_(*conditions))
            .values(status=BookingStatus(status))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            current = await self.get(booking_id, refresh=True)
            raise InvalidStatusTransition(
                f"Booking {booking_id} is {current.status.value}, "
                f"not {expected.value if expected else status.value}"
            )
        return await self.get(booking_id, refresh=True)

    @translate_storage_errors
    async def seats_held(
        self,
        trip_id: int,
        statuses: Iterable[BookingStatus] = SEAT_HOLDING_STATUSES,
    ) -> int:
        """Seats of *trip_id*'s bookings in *statuses* (default PENDING, APPROVED)."""
        result = await self.session.execute(
            select(func.coalesce(func.sum(BookingModel.seats_requested), 0)).where(
                BookingModel.trip_id == trip_id,
                BookingModel.status.in_(list(statuses)),
            )
        )
        return int(result.scalar() or 0)
