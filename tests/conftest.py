"""Test fixtures for the booking provider."""
from __future__ import annotations

import os
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine

os.environ.setdefault("QUOTE_TOKEN_SECRET", "test-quote-secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ["PAYMENT_DECLINE_MODULUS"] = "0"

import booking_provider.models  # noqa: E402,F401
from booking_provider.core.config import get_settings  # noqa: E402
from booking_provider.core.settings import BookingSettings  # noqa: E402
from booking_provider.db.base import Base  # noqa: E402
from booking_provider.db.session import dispose_engine  # noqa: E402
from booking_provider.main import app  # noqa: E402
from booking_provider.services.booking_service import (  # noqa: E402
    BookingService,
    build_booking_service,
)
from booking_provider.services.quote_token_service import (  # noqa: E402
    QuoteTokenService,
)

TEST_SECRET = "test-quote-secret"


@pytest.fixture(scope="session")
def db_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a temporary SQLite database URL for the test session."""
    db_path = tmp_path_factory.mktemp("db") / "test.db"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest_asyncio.fixture()
async def reset_database(db_url: str) -> AsyncIterator[None]:
    """Drop and recreate the database schema for an isolated test."""
    os.environ["DATABASE_URL"] = db_url
    get_settings.cache_clear()
    get_settings()

    await dispose_engine(db_url)
    engine = create_async_engine(db_url, future=True)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.drop_all)
        await connection.run_sync(Base.metadata.create_all)
    await engine.dispose()
    yield
    await dispose_engine(db_url)


@pytest.fixture()
def booking_settings() -> BookingSettings:
    return BookingSettings(token_secret=TEST_SECRET, payment_decline_modulus=0)


@pytest.fixture()
def token_service(booking_settings: BookingSettings) -> QuoteTokenService:
    return QuoteTokenService(booking_settings)


@pytest.fixture()
def booking_service(booking_settings: BookingSettings) -> BookingService:
    return build_booking_service(booking_settings)


@pytest_asyncio.fixture()
async def client(reset_database: None) -> AsyncIterator[AsyncClient]:
    """Yield an async client bound to a fresh order store."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
