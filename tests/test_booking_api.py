"""API tests for quote and confirmation endpoints."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

HOTEL_QUOTE = {
    "product_type": "hotel",
    "currency": "USD",
    "party_size": 2,
    "params": {
        "hotel_name": "Park Hyatt",
        "city": "Tokyo",
        "room_type": "suite",
        "nights": 3,
        "stars": 4,
        "check_in": "2025-11-03",
    },
}


async def _quote(client: AsyncClient, body: dict[str, Any] | None = None) -> dict:
    response = await client.post("/api/booking/quote", json=body or HOTEL_QUOTE)
    assert response.status_code == 200, response.text
    return response.json()


async def _confirm(
    client: AsyncClient,
    token: str,
    *,
    key: str | None = None,
    payment_token: str | None = "pm_mock_visa",
    item_refs: list[str] | None = None,
):
    headers = {"Idempotency-Key": key} if key else {}
    body: dict[str, Any] = {"quote_token": token, "payment_token": payment_token}
    if item_refs is not None:
        body["item_refs"] = item_refs
    return await client.post("/api/booking/confirm", json=body, headers=headers)


async def test_quote_returns_signed_token(client: AsyncClient) -> None:
    payload = await _quote(client)

    assert payload["quote_token"].count(".") == 2
    assert payload["currency"] == "USD"
    assert payload["expires_at"]
    item = payload["items"][0]
    assert item["sku"] == "HTL_PARK_HYATT_SUITE_2025-11-03_3N"
    assert item["quantity"] == 3
    assert Decimal(item["total"]) == Decimal(item["unit_price"]) * 3 + Decimal(
        item["fees"]
    )
    assert item["cancellation_policy"] == "48h prior: full refund"


async def test_quote_is_reproducible(client: AsyncClient) -> None:
    first = await _quote(client)
    second = await _quote(client)
    assert first["items"] == second["items"]


async def test_unsupported_product_type(client: AsyncClient) -> None:
    response = await client.post(
        "/api/booking/quote",
        json={**HOTEL_QUOTE, "product_type": "cruise"},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "ERR_UNSUPPORTED_PRODUCT"


async def test_confirm_and_read_back_order(client: AsyncClient) -> None:
    quote = await _quote(client)
    response = await _confirm(client, quote["quote_token"], key="api-key-1")
    assert response.status_code == 200, response.text
    confirmation = response.json()
    assert confirmation["status"] == "CONFIRMED"
    assert confirmation["voucher_code"].startswith("VCH-")
    assert confirmation["invoice_id"].startswith("INV_")

    order_resp = await client.get(
        f"/api/booking/orders/{confirmation['voucher_code']}"
    )
    assert order_resp.status_code == 200
    order = order_resp.json()
    assert order["product_type"] == "hotel"
    assert order["invoice_id"] == confirmation["invoice_id"]
    assert Decimal(order["amount"]) == Decimal(quote["items"][0]["total"])

    missing = await client.get("/api/booking/orders/VCH-0000-0000")
    assert missing.status_code == 404


async def test_idempotent_replay_and_conflict(client: AsyncClient) -> None:
    quote = await _quote(client)
    first = await _confirm(client, quote["quote_token"], key="same-key")
    second = await _confirm(client, quote["quote_token"], key="same-key")
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()

    other = await _quote(
        client, {**HOTEL_QUOTE, "params": {**HOTEL_QUOTE["params"], "nights": 2}}
    )
    conflict = await _confirm(client, other["quote_token"], key="same-key")
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "ERR_IDEMPOTENCY_MISMATCH"


async def test_tampered_token_is_rejected(client: AsyncClient) -> None:
    quote = await _quote(client)
    header, body, signature = quote["quote_token"].split(".")
    index = len(body) // 2
    flipped = "A" if body[index] != "A" else "B"
    tampered = ".".join([header, body[:index] + flipped + body[index + 1 :], signature])

    response = await _confirm(client, tampered)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "ERR_QUOTE_TOKEN_INVALID"


async def test_oversized_idempotency_key_is_a_validation_error(
    client: AsyncClient,
) -> None:
    quote = await _quote(client)
    response = await _confirm(client, quote["quote_token"], key="x" * 300)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "ERR_VALIDATION"


async def test_payment_credential_errors(client: AsyncClient) -> None:
    quote = await _quote(client)
    missing = await _confirm(client, quote["quote_token"], payment_token=None)
    assert missing.status_code == 400
    assert missing.json()["detail"]["code"] == "ERR_PAYMENT_TOKEN"

    unsupported = await _confirm(client, quote["quote_token"], payment_token="tok_1")
    assert unsupported.status_code == 400
    assert unsupported.json()["detail"]["code"] == "ERR_PAYMENT_TOKEN"


async def test_itinerary_quote_and_partial_confirm(client: AsyncClient) -> None:
    response = await client.post(
        "/api/booking/itinerary/quote",
        json={
            "itinerary_id": "trip-100",
            "currency": "USD",
            "items": [
                {
                    "reference": "flight-out",
                    "entity_id": "transport-1",
                    "product_type": "transport",
                    "party_size": 2,
                    "params": {"mode": "flight", "from": "SFO", "to": "NRT"},
                },
                {
                    "reference": "hotel-1",
                    "entity_id": "hotel-1",
                    "product_type": "hotel",
                    "party_size": 2,
                    "params": {"city": "Tokyo", "nights": 2},
                },
            ],
        },
    )
    assert response.status_code == 200, response.text
    quote = response.json()
    assert quote["itinerary_id"] == "trip-100"
    items = {item["reference"]: item for item in quote["items"]}
    assert items["flight-out"]["entity_id"] == "transport-1"
    assert Decimal(quote["bundle_total"]) == sum(
        Decimal(item["total"]) for item in quote["items"]
    )

    unknown = await _confirm(client, quote["quote_token"], item_refs=["ghost"])
    assert unknown.status_code == 400
    assert unknown.json()["detail"]["code"] == "ERR_VALIDATION"

    confirmed = await _confirm(
        client, quote["quote_token"], key="trip-100-hotel", item_refs=["hotel-1"]
    )
    assert confirmed.status_code == 200, confirmed.text
    order = (
        await client.get(f"/api/booking/orders/{confirmed.json()['voucher_code']}")
    ).json()
    assert order["product_type"] == "itinerary"
    assert order["selected_refs"] == ["hotel-1"]
    assert Decimal(order["amount"]) == Decimal(items["hotel-1"]["total"])


async def test_request_shape_errors_use_422(client: AsyncClient) -> None:
    response = await client.post("/api/booking/quote", json={"currency": "USD"})
    assert response.status_code == 422
