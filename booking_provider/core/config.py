"""Application configuration via pydantic settings."""

from functools import lru_cache
from pathlib import Path

from typing import Any

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed application configuration."""

    app_env: str = Field("local", alias="APP_ENV")
    app_name: str = Field("Mock Booking Provider API", alias="APP_NAME")
    api_prefix: str = "/api"

    database_url: str = Field(..., alias="DATABASE_URL")
    sync_database_url: str | None = Field(default=None, alias="SYNC_DATABASE_URL")

    quote_token_secret: str = Field(..., alias="QUOTE_TOKEN_SECRET")
    quote_token_algorithm: str = Field("HS256", alias="QUOTE_TOKEN_ALGORITHM")
    quote_token_ttl_minutes: int = Field(15, alias="QUOTE_TOKEN_TTL_MINUTES")

    payment_credential_prefix: str = Field(
        "pm_mock_", alias="PAYMENT_CREDENTIAL_PREFIX"
    )
    payment_decline_modulus: int = Field(20, alias="PAYMENT_DECLINE_MODULUS")

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"],
        alias="CORS_ALLOW_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=False, alias="CORS_ALLOW_CREDENTIALS")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[2] / ".env",
        case_sensitive=False,
    )

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("quote_token_ttl_minutes")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("QUOTE_TOKEN_TTL_MINUTES must be positive")
        return value


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()  # type: ignore[call-arg]
