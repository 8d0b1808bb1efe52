"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample trips around the San Francisco Bay Area
  - 4 sample bookings (PENDING and APPROVED), created through the
    reservation service so seat counts stay consistent
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from src.domain.entities import Principal
from src.domain.enums import BookingStatus
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.notifier import LoggingNotifier
from src.infrastructure.repositories import BookingRepository, TripRepository
from src.services.reservations import ReservationService

SAN_FRANCISCO = (37.7749, -122.4194)
SAN_JOSE = (37.3382, -121.8863)
OAKLAND = (37.8044, -122.2712)
PALO_ALTO = (37.4419, -122.1430)
BERKELEY = (37.8715, -122.2730)
SACRAMENTO = (38.5816, -121.4944)

TRIPS = [
    {"driver_id": 101, "origin": SAN_FRANCISCO, "destination": SAN_JOSE,
     "origin_city": "San Francisco", "destination_city": "San Jose",
     "hours_from_now": 20, "seats": 3},
    {"driver_id": 102, "origin": (37.7790, -122.4180), "destination": (37.3350, -121.8900),
     "origin_city": "San Francisco", "destination_city": "San Jose",
     "hours_from_now": 22, "seats": 4},
    {"driver_id": 103, "origin": OAKLAND, "destination": PALO_ALTO,
     "origin_city": "Oakland", "destination_city": "Palo Alto",
     "hours_from_now": 26, "seats": 2},
    {"driver_id": 101, "origin": SAN_JOSE, "destination": SAN_FRANCISCO,
     "origin_city": "San Jose", "destination_city": "San Francisco",
     "hours_from_now": 44, "seats": 3},
    {"driver_id": 104, "origin": BERKELEY, "destination": SACRAMENTO,
     "origin_city": "Berkeley", "destination_city": "Sacramento",
     "hours_from_now": 48, "seats": 5},
    {"driver_id": 105, "origin": PALO_ALTO, "destination": OAKLAND,
     "origin_city": "Palo Alto", "destination_city": "Oakland",
     "hours_from_now": 70, "seats": 1},
]

# (trip index, rider id, seats, approve?)
BOOKINGS = [
    (0, 201, 1, True),
    (0, 202, 1, False),
    (1, 203, 2, True),
    (4, 204, 3, False),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM trips"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        trip_repo = TripRepository(session)
        service = ReservationService(
            trip_repo, BookingRepository(session), LoggingNotifier()
        )
        now = datetime.now(timezone.utc)

        # ── Trips ─────────────────────────────────────────────────────
        trips = []
        for t in TRIPS:
            trip = await trip_repo.create(
                driver_id=t["driver_id"],
                origin_lat=t["origin"][0],
                origin_lng=t["origin"][1],
                destination_lat=t["destination"][0],
                destination_lng=t["destination"][1],
                origin_city=t["origin_city"],
                destination_city=t["destination_city"],
                departure_time=now + timedelta(hours=t["hours_from_now"]),
                total_seats=t["seats"],
            )
            trips.append(trip)
        print(f"  Created {len(trips)} trips")

        # ── Bookings ──────────────────────────────────────────────────
        for trip_idx, rider_id, seats, approve in BOOKINGS:
            trip = trips[trip_idx]
            booking = await service.create_booking(
                trip.id, Principal(id=rider_id), seats
            )
            if approve:
                await service.update_booking_status(
                    booking.id,
                    BookingStatus.APPROVED,
                    Principal(id=trip.driver_id, is_driver=True),
                )
        print(f"  Created {len(BOOKINGS)} bookings")

        await service.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
