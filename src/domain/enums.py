"""Domain enumerations and state-transition rules."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class TripStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Actor(str, enum.Enum):
    RIDER = "RIDER"
    DRIVER = "DRIVER"


# Bookings in these states hold seats on their trip.
SEAT_HOLDING_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.APPROVED}
)

# Completed bookings keep their seats consumed; the trip has run.
SEAT_CONSUMING_STATUSES: frozenset[BookingStatus] = SEAT_HOLDING_STATUSES | {
    BookingStatus.COMPLETED
}


# State machine: maps current status -> set of valid next statuses
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.ACTIVE: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}


@dataclass(frozen=True)
class BookingTransition:
    """
    One legal edge of the booking state machine.

    ``returns_seats`` is True when the edge hands the booking's seats back
    to the trip.  ``actors`` lists who may take the edge.
    """

    returns_seats: bool
    actors: frozenset[Actor]


_RIDER = frozenset({Actor.RIDER})
_DRIVER = frozenset({Actor.DRIVER})
_EITHER = frozenset({Actor.RIDER, Actor.DRIVER})

# Anything not listed here is illegal.  Creation (-> PENDING) consumes seats
# and is handled by ReservationService.create_booking.
BOOKING_TRANSITIONS: dict[tuple[BookingStatus, BookingStatus], BookingTransition] = {
    (BookingStatus.PENDING, BookingStatus.APPROVED): BookingTransition(False, _DRIVER),
    (BookingStatus.PENDING, BookingStatus.REJECTED): BookingTransition(True, _DRIVER),
    (BookingStatus.PENDING, BookingStatus.CANCELLED): BookingTransition(True, _RIDER),
    (BookingStatus.APPROVED, BookingStatus.CANCELLED): BookingTransition(True, _EITHER),
    (BookingStatus.APPROVED, BookingStatus.COMPLETED): BookingTransition(False, _DRIVER),
}
