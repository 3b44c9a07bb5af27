"""Signed, self-contained quote tokens.

A quote token is the only record of a quote: it embeds the canonical pricing
parameters, every computed line item and the totals, sealed with an HMAC
(JWS ``HS256`` by default) and an expiry. Verification never consults a store.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Sequence, Union

from jose import JWTError

from booking_provider.core.security import (
    canonical_json,
    create_signed_token,
    decode_signed_token,
)
from booking_provider.core.settings import BookingSettings
from booking_provider.services.errors import (
    BookingValidationError,
    QuoteExpiredError,
    QuoteTokenInvalidError,
)
from booking_provider.services.money import (
    format_amount,
    money_sum,
    normalize_currency,
    to_decimal,
)
from booking_provider.services.pricing import PricingResult, QuoteItem, QuoteRequest

logger = logging.getLogger(__name__)

SINGLE = "single"
ITINERARY = "itinerary"


@dataclass(frozen=True, slots=True)
class ItineraryItemSnapshot:
    """One priced item of an itinerary bundle."""

    ref: str
    product_type: str
    party_size: int
    params: dict[str, Any]
    items: tuple[QuoteItem, ...]
    fees: Decimal
    total: Decimal

    @property
    def params_json(self) -> str:
        return canonical_json(self.params)


# Decoded from a token rather than freshly priced; same shape.
ItineraryItemPayload = ItineraryItemSnapshot


@dataclass(frozen=True, slots=True)
class ItineraryQuoteRequest:
    """Bundle-level quote input; ``items`` carry their own ``ref``."""

    currency: str
    items: Sequence["ItineraryQuoteRequestItem"]
    itinerary_id: str | None = None


@dataclass(frozen=True, slots=True)
class ItineraryQuoteRequestItem:
    ref: str
    product_type: str
    party_size: int = 1
    params: dict[str, Any] = field(default_factory=dict)
    entity_id: str | None = None


@dataclass(frozen=True, slots=True)
class SingleQuotePayload:
    """Verified contents of a single-product quote token."""

    product_type: str
    currency: str
    party_size: int
    params: dict[str, Any]
    items: tuple[QuoteItem, ...]
    total: Decimal
    fees: Decimal
    unit_price: Decimal
    quantity: int
    expires_at: datetime
    kind: Literal["single"] = SINGLE

    @property
    def params_json(self) -> str:
        return canonical_json(self.params)


@dataclass(frozen=True, slots=True)
class ItineraryQuotePayload:
    """Verified contents of an itinerary-scoped quote token."""

    itinerary_id: str
    currency: str
    items: tuple[ItineraryItemPayload, ...]
    bundle_total: Decimal
    bundle_fees: Decimal
    expires_at: datetime
    kind: Literal["itinerary"] = ITINERARY

    def find(self, ref: str) -> ItineraryItemPayload | None:
        for item in self.items:
            if item.ref == ref:
                return item
        return None


QuoteTokenPayload = Union[SingleQuotePayload, ItineraryQuotePayload]


class QuoteTokenService:
    """Sign and verify quote tokens."""

    def __init__(self, settings: BookingSettings) -> None:
        self._settings = settings

    def sign_quote(
        self,
        request: QuoteRequest,
        result: PricingResult,
        *,
        now: datetime | None = None,
    ) -> tuple[str, datetime]:
        primary = result.primary_item()
        claims = {
            "kind": SINGLE,
            "pt": request.product_type.strip().lower(),
            "ccy": primary.currency,
            "ps": max(1, int(request.party_size)),
            "params": canonical_json(request.params),
            "items": canonical_json([item.to_dict() for item in result.items]),
            "total": format_amount(result.total()),
            "fees": format_amount(result.fees()),
            "unit": format_amount(primary.unit_price),
            "qty": primary.quantity,
        }
        token, expires_at = self._sign(claims, now)
        logger.info(
            "Issued %s quote %s total=%s %s expires_at=%s",
            claims["pt"],
            primary.sku,
            claims["total"],
            primary.currency,
            expires_at.isoformat(),
        )
        return token, expires_at

    def sign_itinerary_quote(
        self,
        request: ItineraryQuoteRequest,
        snapshots: Sequence[ItineraryItemSnapshot],
        *,
        itinerary_id: str,
        now: datetime | None = None,
    ) -> tuple[str, datetime]:
        currency = normalize_currency(request.currency)
        refs = [snapshot.ref for snapshot in snapshots]
        if len(set(refs)) != len(refs):
            raise BookingValidationError("Itinerary item references must be unique")
        entries = [
            {
                "ref": snapshot.ref,
                "pt": snapshot.product_type,
                "ps": snapshot.party_size,
                "params": snapshot.params_json,
                "items": [item.to_dict() for item in snapshot.items],
                "total": format_amount(snapshot.total),
                "fees": format_amount(snapshot.fees),
            }
            for snapshot in snapshots
        ]
        claims = {
            "kind": ITINERARY,
            "itinerary_id": itinerary_id,
            "currency": currency,
            "bundle_total": format_amount(
                money_sum((s.total for s in snapshots), currency)
            ),
            "bundle_fees": format_amount(
                money_sum((s.fees for s in snapshots), currency)
            ),
            "items": canonical_json(entries),
        }
        token, expires_at = self._sign(claims, now)
        logger.info(
            "Issued itinerary quote %s items=%d total=%s %s expires_at=%s",
            itinerary_id,
            len(entries),
            claims["bundle_total"],
            currency,
            expires_at.isoformat(),
        )
        return token, expires_at

    def verify_quote(
        self, token: str, *, now: datetime | None = None
    ) -> QuoteTokenPayload:
        """Return the embedded payload or raise token-invalid / quote-expired."""
        if not token or not token.strip():
            raise QuoteTokenInvalidError("Quote token is required")
        try:
            claims = decode_signed_token(
                token.strip(),
                secret=self._settings.token_secret,
                algorithm=self._settings.token_algorithm,
                verify_exp=False,
            )
        except JWTError as exc:
            logger.warning("Rejected quote token: %s", exc)
            raise QuoteTokenInvalidError("Quote token is invalid") from exc

        try:
            expires_at = datetime.fromtimestamp(int(claims["exp"]), UTC)
        except (KeyError, TypeError, ValueError, OverflowError) as exc:
            raise QuoteTokenInvalidError("Quote token has no valid expiry") from exc
        current = now or datetime.now(UTC)
        if current >= expires_at:
            logger.warning("Rejected expired quote token (expired %s)", expires_at)
            raise QuoteExpiredError("Quote has expired; request a new quote")

        try:
            kind = claims["kind"]
            if kind == SINGLE:
                return _decode_single(claims, expires_at)
            if kind == ITINERARY:
                return _decode_itinerary(claims, expires_at)
            raise ValueError(f"unknown quote kind {kind!r}")
        except (
            KeyError,
            TypeError,
            ValueError,
            InvalidOperation,
            AttributeError,
        ) as exc:
            logger.warning("Rejected malformed quote token payload: %s", exc)
            raise QuoteTokenInvalidError("Quote token payload is invalid") from exc

    def _sign(
        self, claims: dict[str, Any], now: datetime | None
    ) -> tuple[str, datetime]:
        return create_signed_token(
            claims,
            secret=self._settings.token_secret,
            algorithm=self._settings.token_algorithm,
            expires_delta=self._settings.token_ttl,
            now=now,
        )


def _decode_items(raw: Any, currency: str) -> tuple[QuoteItem, ...]:
    if isinstance(raw, str):
        raw = json.loads(raw)
    if not isinstance(raw, list):
        raise ValueError("line items must be a list")
    items = []
    for entry in raw:
        item = QuoteItem(
            sku=str(entry["sku"]),
            unit_price=to_decimal(entry["unit_price"]),
            quantity=int(entry["quantity"]),
            fees=to_decimal(entry["fees"]),
            total=to_decimal(entry["total"]),
            currency=str(entry["currency"]),
            meta=dict(entry.get("meta") or {}),
            cancellation_policy=str(entry.get("cancellation_policy") or ""),
        )
        if item.currency != currency:
            raise ValueError("line item currency does not match quote currency")
        items.append(item)
    return tuple(items)


def _decode_params(raw: Any) -> dict[str, Any]:
    params = json.loads(raw) if isinstance(raw, str) else raw
    if not isinstance(params, dict):
        raise ValueError("params must be an object")
    return params


def _check_sums(
    items: Sequence[QuoteItem], total: Decimal, fees: Decimal, currency: str
) -> None:
    if money_sum((item.total for item in items), currency) != total:
        raise ValueError("total does not match line items")
    if money_sum((item.fees for item in items), currency) != fees:
        raise ValueError("fees do not match line items")


def _decode_single(claims: dict[str, Any], expires_at: datetime) -> SingleQuotePayload:
    currency = str(claims["ccy"])
    items = _decode_items(claims["items"], currency)
    if not items:
        raise ValueError("quote has no line items")
    total = to_decimal(claims["total"])
    fees = to_decimal(claims["fees"])
    _check_sums(items, total, fees, currency)
    return SingleQuotePayload(
        product_type=str(claims["pt"]),
        currency=currency,
        party_size=int(claims["ps"]),
        params=_decode_params(claims["params"]),
        items=items,
        total=total,
        fees=fees,
        unit_price=to_decimal(claims["unit"]),
        quantity=int(claims["qty"]),
        expires_at=expires_at,
    )


def _decode_itinerary(
    claims: dict[str, Any], expires_at: datetime
) -> ItineraryQuotePayload:
    currency = str(claims["currency"])
    entries = json.loads(claims["items"])
    if not isinstance(entries, list):
        raise ValueError("itinerary items must be a list")

    decoded: list[ItineraryItemPayload] = []
    seen: set[str] = set()
    for entry in entries:
        ref = str(entry["ref"])
        if ref in seen:
            raise ValueError(f"duplicate itinerary reference {ref!r}")
        seen.add(ref)
        items = _decode_items(entry["items"], currency)
        total = to_decimal(entry["total"])
        fees = to_decimal(entry["fees"])
        _check_sums(items, total, fees, currency)
        decoded.append(
            ItineraryItemPayload(
                ref=ref,
                product_type=str(entry["pt"]),
                party_size=int(entry["ps"]),
                params=_decode_params(entry["params"]),
                items=items,
                fees=fees,
                total=total,
            )
        )

    bundle_total = to_decimal(claims["bundle_total"])
    bundle_fees = to_decimal(claims["bundle_fees"])
    if money_sum((item.total for item in decoded), currency) != bundle_total:
        raise ValueError("bundle total does not match items")
    if money_sum((item.fees for item in decoded), currency) != bundle_fees:
        raise ValueError("bundle fees do not match items")
    return ItineraryQuotePayload(
        itinerary_id=str(claims["itinerary_id"]),
        currency=currency,
        items=tuple(decoded),
        bundle_total=bundle_total,
        bundle_fees=bundle_fees,
        expires_at=expires_at,
    )


def payload_to_dict(payload: QuoteTokenPayload) -> dict[str, Any]:
    """Audit view of a verified payload (never includes the raw token)."""
    if isinstance(payload, SingleQuotePayload):
        return {
            "kind": payload.kind,
            "product_type": payload.product_type,
            "currency": payload.currency,
            "party_size": payload.party_size,
            "params": payload.params,
            "items": [item.to_dict() for item in payload.items],
            "total": payload.total,
            "fees": payload.fees,
            "unit_price": payload.unit_price,
            "quantity": payload.quantity,
            "expires_at": payload.expires_at,
        }
    return {
        "kind": payload.kind,
        "itinerary_id": payload.itinerary_id,
        "currency": payload.currency,
        "items": [
            {
                "ref": item.ref,
                "product_type": item.product_type,
                "party_size": item.party_size,
                "params": item.params,
                "items": [line.to_dict() for line in item.items],
                "total": item.total,
                "fees": item.fees,
            }
            for item in payload.items
        ],
        "bundle_total": payload.bundle_total,
        "bundle_fees": payload.bundle_fees,
        "expires_at": payload.expires_at,
    }


def payload_to_json(payload: QuoteTokenPayload) -> str:
    return canonical_json(payload_to_dict(payload))


__all__ = [
    "ITINERARY",
    "SINGLE",
    "ItineraryItemPayload",
    "ItineraryItemSnapshot",
    "ItineraryQuotePayload",
    "ItineraryQuoteRequest",
    "ItineraryQuoteRequestItem",
    "QuoteTokenPayload",
    "QuoteTokenService",
    "SingleQuotePayload",
    "payload_to_dict",
    "payload_to_json",
]
