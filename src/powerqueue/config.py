"""
Application configuration with environment-driven settings.
"""

from functools import lru_cache
import os
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "powerqueue"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # Persistence
    database_url: str = Field(
        default="sqlite+aiosqlite:///./powerqueue.db",
        description="SQLAlchemy async connection URL",
    )
    store_backend: Literal["memory", "sql"] = Field(
        default="sql",
        description="Document store adapter backing contacts and call logs",
    )

    # Operator scope
    default_operator_id: str = Field(
        default="local",
        description="User scope used when a caller does not send one",
    )

    # Queue behaviour
    default_timezone: str = Field(
        default="America/New_York",
        description="IANA zone for contacts without a timezone or mappable region",
    )
    queue_refresh_seconds: int = Field(
        default=60,
        ge=5,
        le=3600,
        description="Coarse timer for re-evaluating wall-clock dependent queue state.",
    )
    block_tick_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Cadence of the call block elapsed-time display.",
    )
    order_key_min_gap: float = Field(
        default=1e-6,
        gt=0,
        description="Smallest neighbor gap accepted before order keys are renumbered.",
    )
    order_key_step: float = Field(
        default=1024.0,
        gt=0,
        description="Spacing between order keys after a renumbering pass.",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    @field_validator("default_timezone", mode="before")
    @classmethod
    def validate_default_timezone(cls, v: str) -> str:
        """Blank values fall back to Eastern time."""
        v = (v or "").strip() if isinstance(v, str) else v
        return v or "America/New_York"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def _get_settings_cached() -> Settings:
    return Settings()


def get_settings() -> Settings:
    # Under pytest, env vars change between tests (monkeypatch); don't freeze them.
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return Settings()
    return _get_settings_cached()
