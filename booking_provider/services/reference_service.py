"""Human-shareable voucher and invoice identifiers."""

from __future__ import annotations

import secrets


def generate_voucher_code() -> str:
    return "VCH-{:04X}-{:04X}".format(
        secrets.randbelow(0x10000), secrets.randbelow(0x10000)
    )


def generate_invoice_id() -> str:
    return f"INV_{secrets.randbelow(10**8):08d}"
