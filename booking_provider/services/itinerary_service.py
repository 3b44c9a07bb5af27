"""Itinerary bundling and confirmation-time re-pricing."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from booking_provider.services import pricing
from booking_provider.services.errors import BookingValidationError, QuoteExpiredError
from booking_provider.services.money import money_sum, normalize_currency
from booking_provider.services.pricing import QuoteItem
from booking_provider.services.quote_token_service import (
    ItineraryItemSnapshot,
    ItineraryQuotePayload,
    ItineraryQuoteRequest,
    QuoteTokenService,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ItineraryItemQuote:
    """Per-item slice of an itinerary quote response."""

    ref: str
    entity_id: str | None
    product_type: str
    items: tuple[QuoteItem, ...]
    total: Decimal
    fees: Decimal


@dataclass(frozen=True, slots=True)
class ItineraryQuote:
    token: str
    expires_at: datetime
    itinerary_id: str
    currency: str
    items: tuple[ItineraryItemQuote, ...]
    bundle_total: Decimal
    bundle_fees: Decimal


@dataclass(frozen=True, slots=True)
class RepriceResult:
    total: Decimal
    fees: Decimal
    refs: tuple[str, ...]


class ItineraryService:
    """Prices bundles and re-verifies the selected items before confirmation."""

    def __init__(self, token_service: QuoteTokenService) -> None:
        self._tokens = token_service

    def prepare_itinerary(
        self, request: ItineraryQuoteRequest, *, now: datetime | None = None
    ) -> ItineraryQuote:
        currency = normalize_currency(request.currency)
        if not request.items:
            raise BookingValidationError("Itinerary requires at least one item")

        snapshots: list[ItineraryItemSnapshot] = []
        responses: list[ItineraryItemQuote] = []
        seen: set[str] = set()
        for entry in request.items:
            ref = (entry.ref or "").strip()
            if not ref:
                raise BookingValidationError("Itinerary item reference is required")
            if "," in ref:
                raise BookingValidationError(
                    "Itinerary item reference cannot contain ','"
                )
            if ref in seen:
                raise BookingValidationError(f"Duplicate itinerary reference {ref!r}")
            seen.add(ref)

            product_type = (entry.product_type or "").strip().lower()
            party_size = max(1, int(entry.party_size))
            result = pricing.calculate(
                product_type, currency, party_size, entry.params
            )
            snapshot = ItineraryItemSnapshot(
                ref=ref,
                product_type=product_type,
                party_size=party_size,
                params=dict(entry.params),
                items=result.items,
                fees=result.fees(),
                total=result.total(),
            )
            snapshots.append(snapshot)
            responses.append(
                ItineraryItemQuote(
                    ref=ref,
                    entity_id=entry.entity_id,
                    product_type=product_type,
                    items=result.items,
                    total=snapshot.total,
                    fees=snapshot.fees,
                )
            )

        itinerary_id = (request.itinerary_id or "").strip()
        itinerary_id = itinerary_id or f"itn_{uuid.uuid4().hex}"
        token, expires_at = self._tokens.sign_itinerary_quote(
            request, snapshots, itinerary_id=itinerary_id, now=now
        )
        return ItineraryQuote(
            token=token,
            expires_at=expires_at,
            itinerary_id=itinerary_id,
            currency=currency,
            items=tuple(responses),
            bundle_total=money_sum((s.total for s in snapshots), currency),
            bundle_fees=money_sum((s.fees for s in snapshots), currency),
        )

    def reprice(
        self, payload: ItineraryQuotePayload, selection: Sequence[str] | None = None
    ) -> RepriceResult:
        return reprice(payload, selection)


def reprice(
    payload: ItineraryQuotePayload, selection: Sequence[str] | None = None
) -> RepriceResult:
    """Re-derive totals for the selected items from their embedded parameters.

    An empty selection confirms the whole itinerary. Any item whose fresh
    price differs from the signed one raises ``QuoteExpiredError``.
    """
    requested = [str(ref).strip() for ref in selection or ()]
    refs = requested or [item.ref for item in payload.items]
    if not refs:
        raise BookingValidationError("Itinerary selection is empty")
    if len(set(refs)) != len(refs):
        raise BookingValidationError(
            "Itinerary selection contains duplicate references"
        )

    currency = payload.currency
    totals: list[Decimal] = []
    fees: list[Decimal] = []
    for ref in refs:
        item = payload.find(ref)
        if item is None:
            raise BookingValidationError(f"Unknown itinerary reference {ref!r}")
        fresh = pricing.calculate(
            item.product_type, currency, item.party_size, item.params
        )
        if fresh.total() != item.total or fresh.fees() != item.fees:
            logger.warning(
                "Itinerary %s item %s re-priced to %s (signed %s)",
                payload.itinerary_id,
                ref,
                fresh.total(),
                item.total,
            )
            raise QuoteExpiredError(
                f"Price for itinerary item {ref!r} changed; request a new quote"
            )
        totals.append(item.total)
        fees.append(item.fees)

    return RepriceResult(
        total=money_sum(totals, currency),
        fees=money_sum(fees, currency),
        refs=tuple(refs),
    )
