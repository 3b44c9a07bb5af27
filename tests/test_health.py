"""Health endpoint smoke test."""

import pytest
from httpx import ASGITransport, AsyncClient

from booking_provider.main import app


@pytest.mark.asyncio
async def test_healthcheck_returns_ok() -> None:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/health")
        ping = await client.get("/api/booking/ping")
    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "Mock Booking Provider API"
    assert ping.json() == {"status": "ok"}
