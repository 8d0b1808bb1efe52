"""
SQLAlchemy ORM models.

Tables
------
* ``trips``     -- driver-offered journeys with a fixed seat capacity
* ``bookings``  -- rider seat reservations on a trip

Coordinates are stored as plain floats; matching filters by date and seat
availability in SQL and by haversine distance in Python, so no spatial
index is required.

Indexes
-------
* **B-Tree** on ``status``, ``departure_time``, ``driver_id`` for the
  matcher and listing queries, and on ``trip_id``, ``rider_id``,
  ``idempotency_key`` for booking look-ups.

The ``available_seats`` check constraint is the storage-level backstop for
the seat-inventory invariant.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from src.domain.entities import Coordinate
from src.domain.enums import BookingStatus, TripStatus


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    driver_id = Column(Integer, nullable=False)

    origin_lat = Column(Float, nullable=False)
    origin_lng = Column(Float, nullable=False)
    destination_lat = Column(Float, nullable=False)
    destination_lng = Column(Float, nullable=False)
    origin_city = Column(String(120), nullable=True)
    destination_city = Column(String(120), nullable=True)

    departure_time = Column(DateTime(timezone=True), nullable=False)
    total_seats = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    status = Column(Enum(TripStatus), default=TripStatus.ACTIVE, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("total_seats > 0", name="ck_trips_total_seats_positive"),
        CheckConstraint(
            "available_seats >= 0 AND available_seats <= total_seats",
            name="ck_trips_available_seats_bounds",
        ),
        Index("idx_trips_status", "status"),
        Index("idx_trips_departure", "departure_time"),
        Index("idx_trips_driver", "driver_id"),
    )

    # Load server-side timestamps at flush; async sessions cannot lazy-load.
    __mapper_args__ = {"eager_defaults": True}

    @property
    def origin(self) -> Coordinate:
        return Coordinate(self.origin_lat, self.origin_lng)

    @property
    def destination(self) -> Coordinate:
        return Coordinate(self.destination_lat, self.destination_lng)


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False)
    rider_id = Column(Integer, nullable=False)
    seats_requested = Column(Integer, nullable=False)
    status = Column(
        Enum(BookingStatus), default=BookingStatus.PENDING, nullable=False
    )
    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "seats_requested > 0", name="ck_bookings_seats_requested_positive"
        ),
        Index("idx_bookings_trip", "trip_id"),
        Index("idx_bookings_rider", "rider_id"),
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_idempotency", "idempotency_key"),
    )

    __mapper_args__ = {"eager_defaults": True}
