"""Quote and confirmation orchestration."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from booking_provider.core.settings import BookingSettings, get_booking_settings
from booking_provider.integrations import MockPaymentGateway
from booking_provider.models import Order
from booking_provider.models.order import IDEMPOTENCY_KEY_MAX_LENGTH
from booking_provider.services import order_service, pricing
from booking_provider.services.errors import BookingValidationError
from booking_provider.services.itinerary_service import ItineraryQuote, ItineraryService
from booking_provider.services.pricing import QuoteItem, QuoteRequest
from booking_provider.services.quote_token_service import (
    ItineraryQuotePayload,
    ItineraryQuoteRequest,
    QuoteTokenService,
)


@dataclass(frozen=True, slots=True)
class SingleQuote:
    token: str
    expires_at: datetime
    currency: str
    items: tuple[QuoteItem, ...]
    total: Decimal
    fees: Decimal


@dataclass(frozen=True, slots=True)
class ConfirmRequest:
    quote_token: str
    payment_token: str | None
    item_refs: Sequence[str] = field(default_factory=tuple)


class BookingService:
    """Wires pricing, quote tokens, itinerary re-pricing, payment and orders."""

    def __init__(
        self,
        *,
        token_service: QuoteTokenService,
        payment_gateway: MockPaymentGateway,
    ) -> None:
        self.tokens = token_service
        self.itineraries = ItineraryService(token_service)
        self.payments = payment_gateway

    def quote(
        self, request: QuoteRequest, *, now: datetime | None = None
    ) -> SingleQuote:
        result = pricing.calculate_request(request)
        token, expires_at = self.tokens.sign_quote(request, result, now=now)
        return SingleQuote(
            token=token,
            expires_at=expires_at,
            currency=result.currency,
            items=result.items,
            total=result.total(),
            fees=result.fees(),
        )

    def quote_itinerary(
        self, request: ItineraryQuoteRequest, *, now: datetime | None = None
    ) -> ItineraryQuote:
        return self.itineraries.prepare_itinerary(request, now=now)

    async def confirm(
        self,
        session: AsyncSession,
        request: ConfirmRequest,
        *,
        idempotency_key: str | None = None,
        now: datetime | None = None,
    ) -> Order:
        """Verify, re-price (itineraries), charge, then persist the order."""
        idempotency_key = (idempotency_key or "").strip() or None
        if idempotency_key and len(idempotency_key) > IDEMPOTENCY_KEY_MAX_LENGTH:
            raise BookingValidationError(
                "Idempotency-Key must be at most "
                f"{IDEMPOTENCY_KEY_MAX_LENGTH} characters"
            )
        payload = self.tokens.verify_quote(request.quote_token, now=now)
        raw_token = request.quote_token.strip()

        selected_refs: tuple[str, ...] | None = None
        if isinstance(payload, ItineraryQuotePayload):
            repriced = self.itineraries.reprice(payload, request.item_refs)
            total, fees, selected_refs = repriced.total, repriced.fees, repriced.refs
        else:
            if request.item_refs:
                raise BookingValidationError(
                    "Item selection is only supported for itinerary quotes"
                )
            total, fees = payload.total, payload.fees

        replay = await order_service.find_replay(
            session,
            payload=payload,
            raw_token=raw_token,
            idempotency_key=idempotency_key,
            selected_refs=selected_refs,
        )
        if replay is not None:
            return replay

        authorization = self.payments.charge(request.payment_token, total)
        return await order_service.confirm_order(
            session,
            payload=payload,
            raw_token=raw_token,
            idempotency_key=idempotency_key,
            payment_id=authorization.payment_id,
            total=total,
            fees=fees,
            selected_refs=selected_refs,
        )


def build_booking_service(settings: BookingSettings | None = None) -> BookingService:
    settings = settings or get_booking_settings()
    return BookingService(
        token_service=QuoteTokenService(settings),
        payment_gateway=MockPaymentGateway(
            credential_prefix=settings.payment_credential_prefix,
            decline_modulus=settings.payment_decline_modulus,
        ),
    )
