"""
Admin / observability endpoints
===============================

GET /api/v1/admin/trips/{trip_id}/inventory -- seat accounting audit for a trip
GET /api/v1/admin/health                    -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import RATE_LIMIT, limiter
from src.api.schemas import HealthResponse, TripInventoryResponse
from src.domain.enums import BookingStatus
from src.infrastructure.repositories import BookingRepository, TripRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/trips/{trip_id}/inventory",
    response_model=TripInventoryResponse,
    summary="Compare a trip's free seats with the seats its bookings hold",
)
@limiter.limit(RATE_LIMIT)
async def get_trip_inventory(
    request: Request,
    trip_id: int,
    db: AsyncSession = Depends(get_db),
):
    trip = await TripRepository(db).get(trip_id)
    booking_repo = BookingRepository(db)
    held = await booking_repo.seats_held(trip_id)
    completed = await booking_repo.seats_held(trip_id, [BookingStatus.COMPLETED])
    return TripInventoryResponse(
        trip_id=trip.id,
        total_seats=trip.total_seats,
        available_seats=trip.available_seats,
        seats_held=held,
        seats_completed=completed,
        consistent=(
            0 <= trip.available_seats <= trip.total_seats
            and trip.total_seats - trip.available_seats == held + completed
        ),
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
