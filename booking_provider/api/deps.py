"""Common API dependencies."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from booking_provider.db.session import get_session
from booking_provider.services.booking_service import (
    BookingService,
    build_booking_service,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async database session."""
    async for session in get_session():
        yield session


def get_booking_service() -> BookingService:
    """Build the booking service from current settings."""
    return build_booking_service()
