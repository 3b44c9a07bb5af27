"""Currency-aware rounding helpers."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from booking_provider.services.errors import BookingValidationError

ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF", "CLP", "DJF", "GNF", "HUF", "ISK", "JPY", "KMF", "KRW",
        "PYG", "RWF", "UGX", "VND", "VUV", "XAF", "XOF", "XPF",
    }
)

_TWO_PLACES = Decimal("0.01")
_WHOLE = Decimal("1")


def normalize_currency(currency: str | None) -> str:
    """Return an upper-case ISO-4217 style code or raise a validation error."""
    code = (currency or "").strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise BookingValidationError("currency must be a three-letter code")
    return code


def minor_unit(currency: str) -> Decimal:
    if currency.upper() in ZERO_DECIMAL_CURRENCIES:
        return _WHOLE
    return _TWO_PLACES


def quantize(amount: Decimal, currency: str) -> Decimal:
    """Round ``amount`` half-up to the currency's minor unit."""
    return amount.quantize(minor_unit(currency), rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """Parse a decimal from a string, int or Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidOperation(f"not a decimal: {value!r}")
    return Decimal(str(value))


def money_sum(amounts: Iterable[Decimal], currency: str) -> Decimal:
    return quantize(sum(amounts, Decimal("0")), currency)


def format_amount(amount: Decimal) -> str:
    """Plain (non-exponent) string form used inside tokens."""
    return format(amount, "f")
