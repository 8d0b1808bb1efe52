"""Typed failures raised by the reservation and matching engine."""


class ReservationError(Exception):
    """Base class for every failure the engine reports to its callers."""


class NotFound(ReservationError):
    """Raised when a trip or booking does not exist."""


class TripNotFound(NotFound):
    pass


class BookingNotFound(NotFound):
    pass


class InvalidArgument(ReservationError):
    """Raised for malformed coordinates, radius or seat counts."""


class InsufficientSeats(ReservationError):
    """Raised when a seat change would leave a trip outside ``[0, total_seats]``."""


class InvalidStatusTransition(ReservationError):
    """Raised when a status change violates the trip or booking state machine."""


class Unauthorized(ReservationError):
    """Raised when the acting principal may not perform the operation."""


class StorageUnavailable(ReservationError):
    """Raised when the backing store cannot complete an operation."""


class DuplicateBooking(ReservationError):
    """Raised when an idempotency key is already bound to another request."""
