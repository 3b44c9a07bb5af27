"""Signing and hashing primitives for quote tokens."""

from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from jose import jwt
from jose.exceptions import JWTError
from jose.utils import base64url_decode, base64url_encode


def canonical_json(value: Any) -> str:
    """Serialize ``value`` with sorted keys and no insignificant whitespace."""
    return json.dumps(
        value,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, datetime):
        return value.isoformat()
    if hasattr(value, "isoformat"):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def sha256_hex(value: str) -> str:
    """Return the hex SHA-256 digest of a string."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def create_signed_token(
    claims: dict[str, Any],
    *,
    secret: str,
    algorithm: str,
    expires_delta: timedelta,
    now: datetime | None = None,
) -> tuple[str, datetime]:
    """Sign ``claims`` as a JWS and return the token with its expiry."""
    issued_at = (now or datetime.now(UTC)).replace(microsecond=0)
    expires_at = issued_at + expires_delta
    to_encode = dict(claims)
    to_encode["iat"] = int(issued_at.timestamp())
    to_encode["exp"] = int(expires_at.timestamp())
    return jwt.encode(to_encode, secret, algorithm=algorithm), expires_at


def decode_signed_token(
    token: str, *, secret: str, algorithm: str, verify_exp: bool = True
) -> dict[str, Any]:
    """Decode a JWS, raising ``jose.JWTError`` (or a subclass) on failure."""
    _ensure_canonical_segments(token)
    return jwt.decode(
        token, secret, algorithms=[algorithm], options={"verify_exp": verify_exp}
    )


def _ensure_canonical_segments(token: str) -> None:
    """Reject segments whose base64url text is not the canonical encoding.

    The decoder ignores the unused low bits of a segment's last character, so
    several spellings decode to the same bytes. Only the one the signer
    produced is accepted.
    """
    segments = token.split(".")
    if len(segments) != 3:
        raise JWTError("Token must have three segments")
    for segment in segments:
        try:
            raw = base64url_decode(segment.encode("ascii"))
        except ValueError as exc:
            raise JWTError("Invalid segment encoding") from exc
        if base64url_encode(raw).decode("ascii") != segment:
            raise JWTError("Segment is not canonically encoded")
