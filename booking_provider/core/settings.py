"""Specialized settings adapters for the booking services."""

from __future__ import annotations

from datetime import timedelta

from pydantic import BaseModel

from booking_provider.core.config import get_settings


class BookingSettings(BaseModel):
    """Slim view of quote-token and payment configuration."""

    token_secret: str
    token_algorithm: str = "HS256"
    token_ttl: timedelta = timedelta(minutes=15)
    payment_credential_prefix: str = "pm_mock_"
    payment_decline_modulus: int = 20


def get_booking_settings() -> BookingSettings:
    """Return booking-specific configuration."""

    settings = get_settings()
    return BookingSettings(
        token_secret=settings.quote_token_secret,
        token_algorithm=settings.quote_token_algorithm,
        token_ttl=timedelta(minutes=settings.quote_token_ttl_minutes),
        payment_credential_prefix=settings.payment_credential_prefix,
        payment_decline_modulus=settings.payment_decline_modulus,
    )
