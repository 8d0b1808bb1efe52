"""
Reservation Service
===================

Orchestrates booking creation and status changes on top of the trip and
booking repositories.

Seat accounting
---------------
For every trip, ``total_seats - available_seats`` equals the seats of its
bookings that are not REJECTED or CANCELLED.  Creating a booking consumes seats,
moving a booking to REJECTED or CANCELLED returns them, and every seat
change goes through ``TripRepository.adjust_available_seats``.

Transactions
------------
Operations only flush.  All writes of one call share the caller's
session, so a failure part-way (``InsufficientSeats``,
``StorageUnavailable``, ...) is undone by ``rollback``.  Notifications
are queued and go out from ``commit`` once the writes are durable.

The service keeps no trip or booking state between calls; any number of
instances may run side by side.
"""

from __future__ import annotations

import logging
from typing import Optional

from src.domain.entities import Principal
from src.domain.enums import (
    BOOKING_TRANSITIONS,
    Actor,
    BookingStatus,
    BookingTransition,
    TripStatus,
)
from src.domain.exceptions import (
    DuplicateBooking,
    InsufficientSeats,
    InvalidArgument,
    InvalidStatusTransition,
    TripNotFound,
    Unauthorized,
)
from src.infrastructure.models import BookingModel, TripModel
from src.infrastructure.notifier import Notifier
from src.infrastructure.repositories import BookingRepository, TripRepository

logger = logging.getLogger(__name__)

_STATUS_TITLES = {
    BookingStatus.APPROVED: "Booking Approved",
    BookingStatus.REJECTED: "Booking Rejected",
    BookingStatus.CANCELLED: "Booking Cancelled",
    BookingStatus.COMPLETED: "Trip Completed",
}


class ReservationService:
    def __init__(
        self,
        trips: TripRepository,
        bookings: BookingRepository,
        notifier: Notifier,
    ):
        self.trips = trips
        self.bookings = bookings
        self.notifier = notifier
        self._outbox: list[tuple[int, str, str]] = []

    # ── Bookings ──────────────────────────────────────────────────────

    async def create_booking(
        self,
        trip_id: int,
        principal: Principal,
        seats: int,
        idempotency_key: Optional[str] = None,
    ) -> BookingModel:
        """Reserve *seats* on an active trip for *principal* as rider."""
        if seats <= 0:
            raise InvalidArgument("seats must be positive")

        if idempotency_key:
            existing = await self.bookings.get_by_idempotency_key(idempotency_key)
            if existing is not None:
                if (existing.rider_id, existing.trip_id, existing.seats_requested) != (
                    principal.id, trip_id, seats
                ):
                    raise DuplicateBooking(
                        f"Idempotency key {idempotency_key!r} already used "
                        f"for a different booking"
                    )
                logger.info(
                    "Replayed booking %d for key %s", existing.id, idempotency_key
                )
                return existing

        trip = await self.trips.get_by_id(trip_id)
        if trip is None or trip.status != TripStatus.ACTIVE:
            raise TripNotFound(f"No active trip {trip_id}")
        if seats > trip.available_seats:
            raise InsufficientSeats(
                f"Trip {trip_id} has {trip.available_seats} seats available"
            )

        # Seats first: if the decrement loses a race, no booking is written.
        trip = await self.trips.adjust_available_seats(
            trip_id, -seats, require_status=TripStatus.ACTIVE
        )
        booking = await self.bookings.create(
            trip_id=trip_id,
            rider_id=principal.id,
            seats_requested=seats,
            idempotency_key=idempotency_key,
        )
        logger.info(
            "Booking %d created: trip=%d rider=%d seats=%d available=%d",
            booking.id, trip_id, principal.id, seats, trip.available_seats,
        )

        self._notify(
            trip.driver_id,
            "New Booking Request",
            f"A rider requested {seats} seat(s) on trip {trip_id}.",
        )
        return booking

    async def update_booking_status(
        self,
        booking_id: int,
        new_status: BookingStatus,
        principal: Principal,
    ) -> BookingModel:
        """Move a booking along the state machine on behalf of *principal*."""
        new_status = BookingStatus(new_status)
        booking = await self.bookings.get(booking_id)
        trip = await self.trips.get(booking.trip_id)

        rule = BOOKING_TRANSITIONS.get((booking.status, new_status))
        if rule is None:
            raise InvalidStatusTransition(
                f"Cannot transition booking from {booking.status.value} "
                f"to {new_status.value}"
            )

        acting_as = _roles(principal, booking, trip) & rule.actors
        if not acting_as:
            raise Unauthorized(
                f"User {principal.id} may not move booking {booking_id} "
                f"to {new_status.value}"
            )

        booking = await self._apply(booking, new_status, rule)

        if Actor.DRIVER in acting_as:
            counterparty = booking.rider_id
        else:
            counterparty = trip.driver_id
        self._notify(
            counterparty,
            _STATUS_TITLES[new_status],
            f"Booking {booking_id} on trip {trip.id} is now {new_status.value.lower()}.",
        )
        return booking

    async def get_booking(
        self, booking_id: int, principal: Principal
    ) -> BookingModel:
        booking = await self.bookings.get(booking_id)
        trip = await self.trips.get(booking.trip_id)
        if not _roles(principal, booking, trip):
            raise Unauthorized(f"User {principal.id} may not view booking {booking_id}")
        return booking

    async def list_bookings(
        self, principal: Principal, trip_id: Optional[int] = None
    ) -> list[BookingModel]:
        """A driver's bookings for one of their trips, else the caller's own."""
        if trip_id is None:
            return await self.bookings.list_by_rider(principal.id)

        trip = await self.trips.get(trip_id)
        if trip.driver_id != principal.id:
            raise Unauthorized("Only the trip driver can view these bookings")
        return await self.bookings.list_by_trip(trip_id)

    # ── Trips ─────────────────────────────────────────────────────────

    async def close_trip(
        self, trip_id: int, new_status: TripStatus, principal: Principal
    ) -> TripModel:
        """
        Complete or cancel a trip and settle its open bookings.

        Approved bookings follow the trip (COMPLETED or CANCELLED); pending
        ones are rejected.  Settled riders are notified.
        """
        new_status = TripStatus(new_status)
        trip = await self.trips.get(trip_id)
        if trip.driver_id != principal.id:
            raise Unauthorized("Only the trip driver can update status")

        trip = await self.trips.set_status(trip_id, new_status)
        logger.info("Trip %d marked %s", trip_id, new_status.value)

        approved_target = (
            BookingStatus.COMPLETED
            if new_status == TripStatus.COMPLETED
            else BookingStatus.CANCELLED
        )
        for booking in await self.bookings.list_by_trip(trip_id):
            target = await self._settle(booking, approved_target)
            if target is not None:
                self._notify(
                    booking.rider_id,
                    _STATUS_TITLES[target],
                    f"Trip {trip_id} was {new_status.value.lower()} by the driver.",
                )

        return await self.trips.get(trip_id, refresh=True)

    # ── Unit of work ──────────────────────────────────────────────────

    async def commit(self) -> None:
        """
        Commit the caller's session, then deliver queued notifications.

        A failed commit raises ``StorageUnavailable`` and drops the queue,
        so nobody hears about a change that was never stored.
        """
        try:
            await self.trips.commit()
        except Exception:
            self._outbox.clear()
            raise
        outbox, self._outbox = self._outbox, []
        for user_id, title, message in outbox:
            await self._deliver(user_id, title, message)

    async def rollback(self) -> None:
        self._outbox.clear()
        await self.trips.rollback()

    # ── Internals ─────────────────────────────────────────────────────

    async def _settle(
        self, booking: BookingModel, approved_target: BookingStatus
    ) -> Optional[BookingStatus]:
        """
        Move one open booking of a closing trip to its final status.

        A rider may change the booking between the listing and the write;
        it is then re-read and settled from its new status, or skipped once
        final.  Returns the status written, if any.
        """
        while True:
            if booking.status == BookingStatus.APPROVED:
                target = approved_target
            elif booking.status == BookingStatus.PENDING:
                target = BookingStatus.REJECTED
            else:
                return None
            rule = BOOKING_TRANSITIONS[(booking.status, target)]
            try:
                await self._apply(booking, target, rule)
            except InvalidStatusTransition:
                booking = await self.bookings.get(booking.id, refresh=True)
                logger.info(
                    "Booking %d moved to %s while trip %d was closing",
                    booking.id, booking.status.value, booking.trip_id,
                )
                continue
            return target

    async def _apply(
        self,
        booking: BookingModel,
        new_status: BookingStatus,
        rule: BookingTransition,
    ) -> BookingModel:
        previous = booking.status
        # Compare-and-set first so two racing requests cannot both return seats.
        updated = await self.bookings.set_status(
            booking.id, new_status, expected=previous
        )
        if rule.returns_seats:
            await self.trips.adjust_available_seats(
                booking.trip_id, booking.seats_requested
            )
        logger.info(
            "Booking %d: %s -> %s (seats returned: %s)",
            booking.id, previous.value, new_status.value,
            booking.seats_requested if rule.returns_seats else 0,
        )
        return updated

    def _notify(self, user_id: int, title: str, message: str) -> None:
        """Queue a notification; ``commit`` delivers it."""
        self._outbox.append((user_id, title, message))

    async def _deliver(self, user_id: int, title: str, message: str) -> None:
        try:
            await self.notifier.notify(user_id, title, message)
        except Exception:
            logger.warning(
                "Notification to user %d failed (%s)", user_id, title, exc_info=True
            )


def _roles(principal: Principal, booking: BookingModel, trip: TripModel) -> set[Actor]:
    roles: set[Actor] = set()
    if principal.id == booking.rider_id:
        roles.add(Actor.RIDER)
    if principal.id == trip.driver_id:
        roles.add(Actor.DRIVER)
    return roles
