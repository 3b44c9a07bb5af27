"""Integration shortcuts."""

from .mock_payment import MockPaymentGateway, PaymentAuthorization

__all__ = ["MockPaymentGateway", "PaymentAuthorization"]
