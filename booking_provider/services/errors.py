"""Error taxonomy for quoting, confirmation and payment."""

from __future__ import annotations


class BookingError(RuntimeError):
    """Base class for booking-provider failures."""

    code = "ERR_BOOKING"
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def as_detail(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class BookingValidationError(BookingError, ValueError):
    """Malformed, missing or duplicate input."""

    code = "ERR_VALIDATION"


class UnsupportedProductTypeError(BookingValidationError):
    """No pricing calculator is registered for the product type."""

    code = "ERR_UNSUPPORTED_PRODUCT"


class QuoteTokenInvalidError(BookingError):
    """The quote token is forged, corrupted or structurally inconsistent."""

    code = "ERR_QUOTE_TOKEN_INVALID"


class QuoteExpiredError(BookingError):
    """The quote is stale or no longer reproduces; the caller must re-quote."""

    code = "ERR_QUOTE_EXPIRED"
    status_code = 410


class PaymentCredentialError(BookingError):
    """The payment credential cannot be used."""

    code = "ERR_PAYMENT_TOKEN"


class MissingPaymentCredentialError(PaymentCredentialError):
    """No payment credential was supplied."""


class UnsupportedPaymentCredentialError(PaymentCredentialError):
    """The payment credential is not a supported mock credential."""


class PaymentDeclinedError(BookingError):
    """The simulated gateway declined the charge."""

    code = "ERR_PAYMENT_DECLINED"
    status_code = 402


class IdempotencyConflictError(BookingError):
    """An idempotency key was reused for a different confirmation."""

    code = "ERR_IDEMPOTENCY_MISMATCH"
    status_code = 409


__all__ = [
    "BookingError",
    "BookingValidationError",
    "IdempotencyConflictError",
    "MissingPaymentCredentialError",
    "PaymentCredentialError",
    "PaymentDeclinedError",
    "QuoteExpiredError",
    "QuoteTokenInvalidError",
    "UnsupportedPaymentCredentialError",
    "UnsupportedProductTypeError",
]
