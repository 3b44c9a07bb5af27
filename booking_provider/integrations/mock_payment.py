"""Deterministic mock payment gateway."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from decimal import Decimal

from booking_provider.services.errors import (
    MissingPaymentCredentialError,
    PaymentDeclinedError,
    UnsupportedPaymentCredentialError,
)
from booking_provider.services.money import format_amount

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class PaymentAuthorization:
    """Outcome of a successful mock charge."""

    payment_id: str
    amount: Decimal
    status: str = "succeeded"


class MockPaymentGateway:
    """Charges mock credentials with a repeatable decline rate.

    A charge is declined when ``checksum % decline_modulus == 0`` where the
    checksum is derived from ``credential:amount``; a modulus of 0 disables
    declines.
    """

    def __init__(
        self, *, credential_prefix: str = "pm_mock_", decline_modulus: int = 20
    ) -> None:
        self._credential_prefix = credential_prefix
        self._decline_modulus = max(0, decline_modulus)

    @staticmethod
    def checksum(credential: str, amount: Decimal) -> int:
        material = f"{credential}:{format_amount(amount)}".encode("utf-8")
        return int.from_bytes(hashlib.sha256(material).digest()[:4], "big")

    def charge(self, credential: str | None, amount: Decimal) -> PaymentAuthorization:
        credential = (credential or "").strip()
        if not credential:
            raise MissingPaymentCredentialError("Missing payment token")
        if not credential.startswith(self._credential_prefix):
            raise UnsupportedPaymentCredentialError("Unsupported payment token")

        checksum = self.checksum(credential, amount)
        if self._decline_modulus and checksum % self._decline_modulus == 0:
            logger.warning("Mock payment declined for amount %s", amount)
            raise PaymentDeclinedError("Payment authorization declined")

        payment_id = f"pay_{checksum:X}"
        logger.info("Mock payment %s authorized for %s", payment_id, amount)
        return PaymentAuthorization(payment_id=payment_id, amount=amount)
