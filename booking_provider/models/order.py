"""Confirmed booking orders."""

from __future__ import annotations

import enum
import uuid
from decimal import Decimal

from sqlalchemy import Enum, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from booking_provider.db.base import Base
from booking_provider.models.mixins import TimestampMixin

IDEMPOTENCY_KEY_MAX_LENGTH = 255


class OrderStatus(str, enum.Enum):
    """Order lifecycle states produced by confirmation."""

    CONFIRMED = "CONFIRMED"


class Order(TimestampMixin, Base):
    """Append-only record of a redeemed quote."""

    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_quote_token_hash", "quote_token_hash"),
        Index("ix_orders_itinerary_id", "itinerary_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    product_type: Mapped[str] = mapped_column(String(32), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False)
    fees: Mapped[Decimal] = mapped_column(
        Numeric(16, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus, name="order_status"),
        nullable=False,
        default=OrderStatus.CONFIRMED,
    )
    voucher_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    invoice_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    payment_id: Mapped[str] = mapped_column(String(64), nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(
        String(IDEMPOTENCY_KEY_MAX_LENGTH), unique=True
    )
    quote_token_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    quote_claims: Mapped[str] = mapped_column(Text, nullable=False)
    itinerary_id: Mapped[str | None] = mapped_column(String(64))
    selection_refs: Mapped[str | None] = mapped_column(Text)

    @property
    def selected_refs(self) -> list[str]:
        if not self.selection_refs:
            return []
        return self.selection_refs.split(",")
