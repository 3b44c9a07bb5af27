"""ORM models package export."""

from booking_provider.models.order import Order, OrderStatus

__all__ = ["Order", "OrderStatus"]
