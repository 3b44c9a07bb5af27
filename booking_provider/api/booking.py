"""Quote, confirmation and order read-back endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_provider.api import deps
from booking_provider.schemas.booking import (
    ConfirmRequestSchema,
    ConfirmResponse,
    ItineraryQuoteItemRead,
    ItineraryQuoteRequestSchema,
    ItineraryQuoteResponse,
    OrderRead,
    QuoteItemRead,
    QuoteRequestSchema,
    QuoteResponse,
)
from booking_provider.services import order_service
from booking_provider.services.booking_service import BookingService, ConfirmRequest
from booking_provider.services.errors import BookingError
from booking_provider.services.pricing import QuoteRequest
from booking_provider.services.quote_token_service import (
    ItineraryQuoteRequest,
    ItineraryQuoteRequestItem,
)

router = APIRouter(prefix="/booking", tags=["booking"])


def _http_error(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.as_detail())


@router.get("/ping", summary="Booking provider liveness")
async def ping() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/quote", response_model=QuoteResponse)
async def create_quote(
    payload: QuoteRequestSchema,
    service: Annotated[BookingService, Depends(deps.get_booking_service)],
) -> QuoteResponse:
    try:
        quote = service.quote(
            QuoteRequest(
                product_type=payload.product_type,
                currency=payload.currency,
                party_size=payload.party_size,
                params=payload.params,
            )
        )
    except BookingError as exc:
        raise _http_error(exc) from exc
    return QuoteResponse(
        quote_token=quote.token,
        expires_at=quote.expires_at,
        currency=quote.currency,
        items=[QuoteItemRead.from_item(item) for item in quote.items],
    )


@router.post("/itinerary/quote", response_model=ItineraryQuoteResponse)
async def create_itinerary_quote(
    payload: ItineraryQuoteRequestSchema,
    service: Annotated[BookingService, Depends(deps.get_booking_service)],
) -> ItineraryQuoteResponse:
    request = ItineraryQuoteRequest(
        itinerary_id=payload.itinerary_id,
        currency=payload.currency,
        items=[
            ItineraryQuoteRequestItem(
                ref=item.reference,
                entity_id=item.entity_id,
                product_type=item.product_type,
                party_size=item.party_size,
                params=item.params,
            )
            for item in payload.items
        ],
    )
    try:
        quote = service.quote_itinerary(request)
    except BookingError as exc:
        raise _http_error(exc) from exc
    return ItineraryQuoteResponse(
        quote_token=quote.token,
        expires_at=quote.expires_at,
        itinerary_id=quote.itinerary_id,
        currency=quote.currency,
        items=[
            ItineraryQuoteItemRead(
                reference=item.ref,
                entity_id=item.entity_id,
                product_type=item.product_type,
                items=[QuoteItemRead.from_item(line) for line in item.items],
                total=item.total,
                fees=item.fees,
            )
            for item in quote.items
        ],
        bundle_total=quote.bundle_total,
        bundle_fees=quote.bundle_fees,
    )


@router.post("/confirm", response_model=ConfirmResponse)
async def confirm_booking(
    payload: ConfirmRequestSchema,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
    service: Annotated[BookingService, Depends(deps.get_booking_service)],
    idempotency_key: Annotated[str | None, Header(alias="Idempotency-Key")] = None,
) -> ConfirmResponse:
    try:
        order = await service.confirm(
            session,
            ConfirmRequest(
                quote_token=payload.quote_token,
                payment_token=payload.payment_token,
                item_refs=tuple(payload.item_refs),
            ),
            idempotency_key=idempotency_key,
        )
    except BookingError as exc:
        raise _http_error(exc) from exc
    return ConfirmResponse(
        status=order.status,
        voucher_code=order.voucher_code,
        invoice_id=order.invoice_id,
    )


@router.get("/orders/{voucher_code}", response_model=OrderRead)
async def read_order(
    voucher_code: str,
    session: Annotated[AsyncSession, Depends(deps.get_db_session)],
) -> OrderRead:
    order = await order_service.get_order_by_voucher(session, voucher_code)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Order not found"
        )
    return OrderRead.model_validate(order)
