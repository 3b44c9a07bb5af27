"""Idempotent persistence of confirmed orders."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_provider.core.security import sha256_hex
from booking_provider.models import Order, OrderStatus
from booking_provider.services import reference_service
from booking_provider.services.errors import IdempotencyConflictError
from booking_provider.services.money import quantize
from booking_provider.services.quote_token_service import (
    ItineraryQuotePayload,
    QuoteTokenPayload,
    payload_to_json,
)

logger = logging.getLogger(__name__)

_MAX_INSERT_ATTEMPTS = 3


async def get_order_by_idempotency_key(
    session: AsyncSession, idempotency_key: str
) -> Order | None:
    result = await session.execute(
        select(Order).where(Order.idempotency_key == idempotency_key)
    )
    return result.scalar_one_or_none()


async def get_order_by_voucher(
    session: AsyncSession, voucher_code: str
) -> Order | None:
    result = await session.execute(
        select(Order).where(Order.voucher_code == voucher_code)
    )
    return result.scalar_one_or_none()


def _selection_value(
    payload: QuoteTokenPayload, selected_refs: Sequence[str] | None
) -> str | None:
    if not isinstance(payload, ItineraryQuotePayload):
        return None
    return ",".join(selected_refs or ())


def _replay_or_conflict(
    existing: Order, *, token_hash: str, selection: str | None
) -> Order:
    same_selection = (existing.selection_refs or None) == (selection or None)
    if existing.quote_token_hash == token_hash and same_selection:
        logger.debug(
            "Idempotent replay for key %s -> order %s",
            existing.idempotency_key,
            existing.voucher_code,
        )
        return existing
    logger.warning(
        "Idempotency key %s reused for a different confirmation",
        existing.idempotency_key,
    )
    raise IdempotencyConflictError(
        "Idempotency key was already used for a different confirmation"
    )


async def find_replay(
    session: AsyncSession,
    *,
    payload: QuoteTokenPayload,
    raw_token: str,
    idempotency_key: str | None,
    selected_refs: Sequence[str] | None = None,
) -> Order | None:
    """Return the order already created for this key, if it matches the request."""
    if not idempotency_key:
        return None
    existing = await get_order_by_idempotency_key(session, idempotency_key)
    if existing is None:
        return None
    return _replay_or_conflict(
        existing,
        token_hash=sha256_hex(raw_token),
        selection=_selection_value(payload, selected_refs),
    )


async def confirm_order(
    session: AsyncSession,
    *,
    payload: QuoteTokenPayload,
    raw_token: str,
    idempotency_key: str | None,
    payment_id: str,
    total: Decimal,
    fees: Decimal,
    selected_refs: Sequence[str] | None = None,
) -> Order:
    """Persist a confirmed order once per idempotency key.

    The unique index on ``idempotency_key`` arbitrates concurrent writers: the
    loser rolls back, reloads the winner and applies the same replay rule.
    """
    token_hash = sha256_hex(raw_token)
    selection = _selection_value(payload, selected_refs)

    if idempotency_key:
        existing = await get_order_by_idempotency_key(session, idempotency_key)
        if existing is not None:
            return _replay_or_conflict(
                existing, token_hash=token_hash, selection=selection
            )

    is_itinerary = isinstance(payload, ItineraryQuotePayload)
    for _ in range(_MAX_INSERT_ATTEMPTS):
        order = Order(
            product_type="itinerary" if is_itinerary else payload.product_type,
            currency=payload.currency,
            amount=quantize(total, payload.currency),
            fees=quantize(fees, payload.currency),
            status=OrderStatus.CONFIRMED,
            voucher_code=reference_service.generate_voucher_code(),
            invoice_id=reference_service.generate_invoice_id(),
            payment_id=payment_id,
            idempotency_key=idempotency_key or None,
            quote_token_hash=token_hash,
            quote_claims=payload_to_json(payload),
            itinerary_id=payload.itinerary_id if is_itinerary else None,
            selection_refs=selection,
        )
        session.add(order)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            if idempotency_key:
                winner = await get_order_by_idempotency_key(session, idempotency_key)
                if winner is not None:
                    return _replay_or_conflict(
                        winner, token_hash=token_hash, selection=selection
                    )
            # Voucher or invoice collision; draw new references.
            continue
        await session.refresh(order)
        logger.info(
            "Confirmed %s order %s invoice=%s amount=%s %s",
            order.product_type,
            order.voucher_code,
            order.invoice_id,
            order.amount,
            order.currency,
        )
        return order
    raise RuntimeError("Failed to generate unique order references")
