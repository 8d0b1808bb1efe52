"""
FastAPI application factory.

* Registers routes for trips, bookings and admin.
* Maps engine failures (``ReservationError``) to HTTP status codes.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.middleware import limiter
from src.api.routes import admin, bookings, trips
from src.config import settings
from src.domain.exceptions import (
    DuplicateBooking,
    InsufficientSeats,
    InvalidArgument,
    InvalidStatusTransition,
    NotFound,
    ReservationError,
    StorageUnavailable,
    Unauthorized,
)
from src.infrastructure.database import engine
from src.infrastructure.redis_client import close_redis

logger = logging.getLogger(__name__)

# Most specific first; subclasses of NotFound share its code.
ERROR_STATUS_CODES: list[tuple[type[ReservationError], int]] = [
    (NotFound, 404),
    (InvalidArgument, 422),
    (InsufficientSeats, 409),
    (InvalidStatusTransition, 409),
    (DuplicateBooking, 409),
    (Unauthorized, 403),
    (StorageUnavailable, 503),
]


def status_code_for(exc: ReservationError) -> int:
    for exc_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return 400


async def reservation_error_handler(request: Request, exc: ReservationError):
    code = status_code_for(exc)
    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=code, content={"detail": str(exc)})


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release pooled connections on shutdown."""
    logger.info("Reservation API starting (notifier=%s)", settings.notifier_backend)
    yield
    if settings.notifier_backend == "redis":
        await close_redis()
    await engine.dispose()
    logger.info("Reservation API stopped")


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Ride Share Reservation API",
        description=(
            "Drivers offer trips with a fixed number of seats; riders search "
            "trips near their pickup and dropoff and book seats.  Seat "
            "counts stay consistent under concurrent bookings."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Engine failures
    app.add_exception_handler(ReservationError, reservation_error_handler)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
