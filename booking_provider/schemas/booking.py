"""Schemas for quote and confirmation endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from booking_provider.models import OrderStatus
from booking_provider.services.pricing import QuoteItem


class QuoteRequestSchema(BaseModel):
    """Single-product quote input."""

    product_type: str = Field(..., min_length=1, max_length=32)
    currency: str = Field(..., min_length=3, max_length=3)
    party_size: int = 1
    params: dict[str, Any] = Field(default_factory=dict)


class QuoteItemRead(BaseModel):
    sku: str
    unit_price: Decimal
    quantity: int
    fees: Decimal
    total: Decimal
    currency: str
    meta: dict[str, Any] = Field(default_factory=dict)
    cancellation_policy: str = ""

    @classmethod
    def from_item(cls, item: QuoteItem) -> "QuoteItemRead":
        return cls(**item.to_dict())


class QuoteResponse(BaseModel):
    quote_token: str
    expires_at: datetime
    currency: str
    items: list[QuoteItemRead]


class ItineraryQuoteItemSchema(QuoteRequestSchema):
    """Bundle entry; ``currency`` is taken from the bundle."""

    reference: str = Field(..., min_length=1, max_length=64)
    entity_id: str | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)


class ItineraryQuoteRequestSchema(BaseModel):
    itinerary_id: str | None = Field(default=None, max_length=64)
    currency: str = Field(..., min_length=3, max_length=3)
    items: list[ItineraryQuoteItemSchema] = Field(..., min_length=1)


class ItineraryQuoteItemRead(BaseModel):
    reference: str
    entity_id: str | None = None
    product_type: str
    items: list[QuoteItemRead]
    total: Decimal
    fees: Decimal


class ItineraryQuoteResponse(BaseModel):
    quote_token: str
    expires_at: datetime
    itinerary_id: str
    currency: str
    items: list[ItineraryQuoteItemRead]
    bundle_total: Decimal
    bundle_fees: Decimal


class ConfirmRequestSchema(BaseModel):
    quote_token: str = Field(..., min_length=1)
    payment_token: str | None = None
    item_refs: list[str] = Field(default_factory=list)


class ConfirmResponse(BaseModel):
    status: OrderStatus
    voucher_code: str
    invoice_id: str


class OrderRead(BaseModel):
    """Audit view of a confirmed order."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    product_type: str
    currency: str
    amount: Decimal
    fees: Decimal
    status: OrderStatus
    voucher_code: str
    invoice_id: str
    payment_id: str
    itinerary_id: str | None = None
    selected_refs: list[str] = Field(default_factory=list)
    created_at: datetime
