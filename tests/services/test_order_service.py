"""Tests for idempotent order persistence."""

from __future__ import annotations

import json
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from booking_provider.core.security import sha256_hex
from booking_provider.db.session import get_sessionmaker
from booking_provider.models import Order, OrderStatus
from booking_provider.services import order_service, pricing
from booking_provider.services.errors import IdempotencyConflictError
from booking_provider.services.itinerary_service import ItineraryService
from booking_provider.services.pricing import QuoteRequest
from booking_provider.services.quote_token_service import (
    ItineraryQuotePayload,
    ItineraryQuoteRequest,
    ItineraryQuoteRequestItem,
    QuoteTokenService,
)

pytestmark = pytest.mark.asyncio

HOTEL = QuoteRequest(
    product_type="hotel",
    currency="USD",
    party_size=2,
    params={"city": "Tokyo", "room_type": "suite", "nights": 3, "stars": 4},
)


def _single(token_service: QuoteTokenService, **params) -> tuple[str, object]:
    request = QuoteRequest(
        product_type=HOTEL.product_type,
        currency=HOTEL.currency,
        party_size=HOTEL.party_size,
        params={**HOTEL.params, **params},
    )
    token, _ = token_service.sign_quote(request, pricing.calculate_request(request))
    return token, token_service.verify_quote(token)


async def _confirm(session, token: str, payload, key: str | None, refs=None) -> Order:
    if isinstance(payload, ItineraryQuotePayload):
        total, fees = payload.bundle_total, payload.bundle_fees
    else:
        total, fees = payload.total, payload.fees
    return await order_service.confirm_order(
        session,
        payload=payload,
        raw_token=token,
        idempotency_key=key,
        payment_id="pay_TEST",
        total=total,
        fees=fees,
        selected_refs=refs,
    )


async def _order_count(session) -> int:
    return (await session.execute(select(func.count(Order.id)))).scalar_one()


async def test_confirm_order_persists_hashed_token(
    reset_database, db_url: str, token_service: QuoteTokenService
) -> None:
    token, payload = _single(token_service)
    async with get_sessionmaker(db_url)() as session:
        order = await _confirm(session, token, payload, "key-1")

    assert order.status == OrderStatus.CONFIRMED
    assert order.product_type == "hotel"
    assert order.amount == payload.total
    assert order.fees == payload.fees
    assert order.voucher_code.startswith("VCH-")
    assert order.invoice_id.startswith("INV_")
    assert order.payment_id == "pay_TEST"
    assert order.quote_token_hash == sha256_hex(token)
    assert token not in order.quote_claims
    assert json.loads(order.quote_claims)["product_type"] == "hotel"
    assert order.itinerary_id is None
    assert order.selection_refs is None


async def test_same_key_same_token_replays(
    reset_database, db_url: str, token_service: QuoteTokenService
) -> None:
    token, payload = _single(token_service)
    async with get_sessionmaker(db_url)() as session:
        first = await _confirm(session, token, payload, "key-replay")
        second = await _confirm(session, token, payload, "key-replay")
        assert await _order_count(session) == 1

    assert second.id == first.id
    assert second.voucher_code == first.voucher_code
    assert second.invoice_id == first.invoice_id


async def test_same_key_different_token_conflicts(
    reset_database, db_url: str, token_service: QuoteTokenService
) -> None:
    token, payload = _single(token_service)
    other_token, other_payload = _single(token_service, nights=2)
    async with get_sessionmaker(db_url)() as session:
        await _confirm(session, token, payload, "key-conflict")
        with pytest.raises(IdempotencyConflictError):
            await _confirm(session, other_token, other_payload, "key-conflict")
        assert await _order_count(session) == 1


async def test_without_key_each_confirmation_is_new(
    reset_database, db_url: str, token_service: QuoteTokenService
) -> None:
    token, payload = _single(token_service)
    async with get_sessionmaker(db_url)() as session:
        first = await _confirm(session, token, payload, None)
        second = await _confirm(session, token, payload, None)
        assert await _order_count(session) == 2
    assert first.voucher_code != second.voucher_code


async def test_itinerary_selection_is_part_of_identity(
    reset_database, db_url: str, token_service: QuoteTokenService
) -> None:
    quote = ItineraryService(token_service).prepare_itinerary(
        ItineraryQuoteRequest(
            currency="USD",
            itinerary_id="trip-9",
            items=[
                ItineraryQuoteRequestItem(ref="H1", product_type="hotel"),
                ItineraryQuoteRequestItem(ref="A1", product_type="attraction"),
            ],
        )
    )
    payload = token_service.verify_quote(quote.token)
    async with get_sessionmaker(db_url)() as session:
        order = await _confirm(session, quote.token, payload, "trip-key", ["H1", "A1"])
        replay = await _confirm(session, quote.token, payload, "trip-key", ["H1", "A1"])
        with pytest.raises(IdempotencyConflictError):
            await _confirm(session, quote.token, payload, "trip-key", ["H1"])

    assert order.product_type == "itinerary"
    assert order.itinerary_id == "trip-9"
    assert order.selection_refs == "H1,A1"
    assert order.selected_refs == ["H1", "A1"]
    assert replay.voucher_code == order.voucher_code


async def test_losing_writer_observes_winner(
    reset_database, db_url: str, token_service: QuoteTokenService, monkeypatch
) -> None:
    token, payload = _single(token_service)
    sessionmaker = get_sessionmaker(db_url)
    async with sessionmaker() as session:
        winner = await _confirm(session, token, payload, "race-key")

    real_lookup = order_service.get_order_by_idempotency_key
    calls = {"count": 0}

    async def stale_lookup(session, key):
        # The first lookup misses, as if the winner committed just after it.
        calls["count"] += 1
        if calls["count"] == 1:
            return None
        return await real_lookup(session, key)

    monkeypatch.setattr(order_service, "get_order_by_idempotency_key", stale_lookup)
    async with sessionmaker() as session:
        loser = await _confirm(session, token, payload, "race-key")
        assert await _order_count(session) == 1

    assert loser.voucher_code == winner.voucher_code

    other_token, other_payload = _single(token_service, nights=5)
    calls["count"] = 0
    async with sessionmaker() as session:
        with pytest.raises(IdempotencyConflictError):
            await _confirm(session, other_token, other_payload, "race-key")


async def test_lookup_by_voucher(
    reset_database, db_url: str, token_service: QuoteTokenService
) -> None:
    token, payload = _single(token_service)
    async with get_sessionmaker(db_url)() as session:
        order = await _confirm(session, token, payload, None)
        found = await order_service.get_order_by_voucher(session, order.voucher_code)
        missing = await order_service.get_order_by_voucher(session, "VCH-0000-0000")
    assert found is not None and found.id == order.id
    assert missing is None
    assert isinstance(order.amount, Decimal)
