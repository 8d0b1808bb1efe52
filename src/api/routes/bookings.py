"""
Booking endpoints
=================

POST  /api/v1/bookings/search              -- trips near a pickup/dropoff on a date
POST  /api/v1/bookings                     -- reserve seats (rider = caller)
GET   /api/v1/bookings                     -- caller's bookings, or a trip's (driver)
GET   /api/v1/bookings/{booking_id}        -- one booking (rider or driver)
PATCH /api/v1/bookings/{booking_id}/status -- approve / reject / cancel / complete
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    get_current_principal,
    get_db,
    get_reservation_service,
)
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    BookingCreateRequest,
    BookingResponse,
    BookingStatusUpdateRequest,
    ErrorResponse,
    TripResponse,
    TripSearchRequest,
)
from src.config import settings
from src.domain.distance import haversine_miles
from src.domain.entities import Principal
from src.domain.matching import GeoMatcher
from src.infrastructure.repositories import TripRepository
from src.services.reservations import ReservationService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "/search",
    response_model=list[TripResponse],
    summary="Find trips for a pickup, dropoff and date",
)
@limiter.limit(RATE_LIMIT)
async def search_trips(
    request: Request,
    body: TripSearchRequest,
    db: AsyncSession = Depends(get_db),
):
    pickup = body.origin.to_coordinate()
    dropoff = body.destination.to_coordinate()

    sort_key = None
    if body.order_by == "departure_time":
        sort_key = lambda trip: trip.departure_time  # noqa: E731
    elif body.order_by == "pickup_distance":
        sort_key = lambda trip: haversine_miles(pickup, trip.origin)  # noqa: E731

    radius = body.radius_miles or settings.default_search_radius_miles
    return await GeoMatcher(TripRepository(db)).find_matches(
        pickup, dropoff, body.travel_date, radius, sort_key=sort_key
    )


@router.post(
    "",
    status_code=201,
    response_model=BookingResponse,
    summary="Book seats on a trip",
    responses={409: {"model": ErrorResponse, "description": "Not enough seats available."}},
)
@limiter.limit(RATE_LIMIT)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    principal: Principal = Depends(get_current_principal),
    service: ReservationService = Depends(get_reservation_service),
):
    booking = await service.create_booking(
        body.trip_id, principal, body.seats, idempotency_key=body.idempotency_key
    )
    await service.commit()
    return booking


@router.get(
    "",
    response_model=list[BookingResponse],
    summary="List bookings",
)
@limiter.limit(RATE_LIMIT)
async def list_bookings(
    request: Request,
    trip_id: Optional[int] = None,
    principal: Principal = Depends(get_current_principal),
    service: ReservationService = Depends(get_reservation_service),
):
    return await service.list_bookings(principal, trip_id=trip_id)


@router.get(
    "/{booking_id}",
    response_model=BookingResponse,
    summary="Get a booking",
)
@limiter.limit(RATE_LIMIT)
async def get_booking(
    request: Request,
    booking_id: int,
    principal: Principal = Depends(get_current_principal),
    service: ReservationService = Depends(get_reservation_service),
):
    return await service.get_booking(booking_id, principal)


@router.patch(
    "/{booking_id}/status",
    response_model=BookingResponse,
    summary="Change a booking's status",
    description=(
        "Drivers approve, reject, cancel approved bookings and complete "
        "them; riders cancel.  Rejecting or cancelling returns the seats."
    ),
)
@limiter.limit(RATE_LIMIT)
async def update_booking_status(
    request: Request,
    booking_id: int,
    body: BookingStatusUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: ReservationService = Depends(get_reservation_service),
):
    booking = await service.update_booking_status(booking_id, body.status, principal)
    await service.commit()
    return booking
