"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from src.domain.entities import Coordinate
from src.domain.enums import BookingStatus, TripStatus


# ── Requests ──────────────────────────────────────────────────────────


class Point(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.lat, self.lng)


class TripCreateRequest(BaseModel):
    origin: Point
    destination: Point
    origin_city: Optional[str] = Field(None, max_length=120)
    destination_city: Optional[str] = Field(None, max_length=120)
    departure_time: datetime
    total_seats: int = Field(..., ge=1, le=8)


class TripStatusUpdateRequest(BaseModel):
    status: TripStatus


class TripSearchRequest(BaseModel):
    origin: Point
    destination: Point
    travel_date: date = Field(..., alias="date")
    radius_miles: Optional[float] = Field(
        None,
        gt=0,
        description="Defaults to the configured search radius.",
    )
    order_by: Optional[Literal["departure_time", "pickup_distance"]] = Field(
        None,
        description="Optional ranking; results are unordered when omitted.",
    )

    model_config = {"populate_by_name": True}


class BookingCreateRequest(BaseModel):
    trip_id: int
    seats: int = Field(1, ge=1, le=8)
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )


class BookingStatusUpdateRequest(BaseModel):
    status: BookingStatus


# ── Responses ─────────────────────────────────────────────────────────


class TripResponse(BaseModel):
    id: int
    driver_id: int
    origin_lat: float
    origin_lng: float
    destination_lat: float
    destination_lng: float
    origin_city: Optional[str] = None
    destination_city: Optional[str] = None
    departure_time: datetime
    total_seats: int
    available_seats: int
    status: TripStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    id: int
    trip_id: int
    rider_id: int
    seats_requested: int
    status: BookingStatus
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TripInventoryResponse(BaseModel):
    trip_id: int
    total_seats: int
    available_seats: int
    seats_held: int
    seats_completed: int
    consistent: bool


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
