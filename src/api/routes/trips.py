"""
Trip endpoints
==============

POST  /api/v1/trips               -- offer a trip (drivers only)
GET   /api/v1/trips               -- active trips, or filtered by driver / cities
GET   /api/v1/trips/{trip_id}     -- trip details and seat availability
PATCH /api/v1/trips/{trip_id}/status -- complete or cancel a trip (its driver only)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    get_current_principal,
    get_db,
    get_reservation_service,
)
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import (
    TripCreateRequest,
    TripResponse,
    TripStatusUpdateRequest,
)
from src.domain.entities import Principal
from src.infrastructure.repositories import TripRepository
from src.services.reservations import ReservationService

router = APIRouter(prefix="/trips", tags=["trips"])


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Offer a trip",
)
@limiter.limit(RATE_LIMIT)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    if not principal.is_driver:
        raise HTTPException(status_code=403, detail="You must be a driver to post trips")

    repo = TripRepository(db)
    trip = await repo.create(
        driver_id=principal.id,
        origin_lat=body.origin.lat,
        origin_lng=body.origin.lng,
        destination_lat=body.destination.lat,
        destination_lng=body.destination.lng,
        origin_city=body.origin_city,
        destination_city=body.destination_city,
        departure_time=body.departure_time,
        total_seats=body.total_seats,
    )
    await repo.commit()
    return trip


@router.get(
    "",
    response_model=list[TripResponse],
    summary="List trips",
    description=(
        "Active trips by default.  ``driver_id`` lists one driver's trips in "
        "any status; ``origin_city`` with ``destination_city`` searches "
        "active trips by city name."
    ),
)
@limiter.limit(RATE_LIMIT)
async def list_trips(
    request: Request,
    driver_id: Optional[int] = None,
    origin_city: Optional[str] = None,
    destination_city: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    repo = TripRepository(db)
    if driver_id is not None:
        return await repo.list_by_driver(driver_id)
    if origin_city and destination_city:
        return await repo.list_by_cities(origin_city, destination_city)
    return await repo.list_active()


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Get a trip",
)
@limiter.limit(RATE_LIMIT)
async def get_trip(
    request: Request,
    trip_id: int,
    db: AsyncSession = Depends(get_db),
):
    return await TripRepository(db).get(trip_id)


@router.patch(
    "/{trip_id}/status",
    response_model=TripResponse,
    summary="Complete or cancel a trip",
    description=(
        "ACTIVE trips move to COMPLETED or CANCELLED.  Approved bookings "
        "follow the trip, pending bookings are rejected and their seats "
        "returned."
    ),
)
@limiter.limit(RATE_LIMIT)
async def update_trip_status(
    request: Request,
    trip_id: int,
    body: TripStatusUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    service: ReservationService = Depends(get_reservation_service),
):
    trip = await service.close_trip(trip_id, body.status, principal)
    await service.commit()
    return trip
