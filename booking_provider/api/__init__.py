"""API router modules."""

from fastapi import APIRouter

from booking_provider.core.config import get_settings

from . import booking, health

settings = get_settings()

api_router = APIRouter(prefix=settings.api_prefix)
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(booking.router)

__all__ = ["api_router"]
