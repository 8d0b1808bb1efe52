"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import Principal
from src.infrastructure.database import async_session_factory
from src.infrastructure.notifier import LoggingNotifier, Notifier, RedisNotifier
from src.infrastructure.redis_client import get_redis
from src.infrastructure.repositories import BookingRepository, TripRepository
from src.services.reservations import ReservationService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """
    Yield an async DB session; commit on success, rollback on error.

    This exit code runs after the response is built, so routes that write
    commit explicitly before returning.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_notifier() -> Notifier:
    if settings.notifier_backend == "redis":
        return RedisNotifier(
            await get_redis(), prefix=settings.notification_channel_prefix
        )
    return LoggingNotifier()


async def get_current_principal(
    x_user_id: Optional[str] = Header(None),
    x_user_is_driver: bool = Header(False),
) -> Principal:
    """
    Build the caller's principal from gateway-supplied headers.

    Authentication happens upstream; this only refuses requests that
    arrive without an identity.
    """
    if x_user_id is None or not x_user_id.isdigit():
        raise HTTPException(status_code=401, detail="Missing or invalid X-User-Id")
    return Principal(id=int(x_user_id), is_driver=x_user_is_driver)


async def get_reservation_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ReservationService:
    return ReservationService(TripRepository(db), BookingRepository(db), notifier)
