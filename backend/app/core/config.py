# backend/app/core/config.py
import logging
import os
from pathlib import Path
from typing import Set

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME, DEFAULT_SCHOOL_TIMEZONE


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug("[CONFIG] Looking for .env at: %s (exists=%s)", env_path, env_path.exists())
    load_dotenv(env_path)


PROD_ENVIRONMENTS: Set[str] = {"prod", "production", "live"}


class Settings(BaseSettings):
    app_name: str = Field(default=BRAND_NAME, description="Display name used in logs and docs")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    is_testing: bool = Field(default=False, alias="is_testing")

    # Database
    database_url: str = Field(
        default="sqlite+pysqlite:///./autoecole.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL of the ledger store",
    )
    database_pool_size: int = Field(default=5, description="Persistent pooled connections")
    database_max_overflow: int = Field(default=5, description="Extra connections under burst")

    # Auth provider (issues HS256 JWTs; we only verify them)
    auth_jwt_secret: SecretStr = Field(
        default=SecretStr("dev-only-auth-secret"),
        alias="AUTH_JWT_SECRET",
        description="Shared secret used to verify access tokens from the auth provider",
    )
    auth_jwt_algorithm: str = "HS256"
    auth_jwt_audience: str | None = Field(default="authenticated", alias="AUTH_JWT_AUDIENCE")

    # Stripe Configuration
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Signing secret of the checkout webhook endpoint",
    )
    stripe_receipt_max_attempts: int = Field(
        default=3, description="Attempts when fetching a receipt URL from Stripe"
    )
    stripe_receipt_backoff_seconds: float = Field(
        default=0.5, description="Base delay for receipt lookup backoff (doubles per attempt)"
    )

    # Slots
    slot_duration_minutes: int = Field(default=60, description="Length of a bookable lesson slot")
    default_school_timezone: str = Field(default=DEFAULT_SCHOOL_TIMEZONE)

    # Periodic sweep
    sweep_trigger_token: SecretStr = Field(
        default=SecretStr(""),
        alias="SWEEP_TRIGGER_TOKEN",
        description="Bearer credential expected by the internal sweep endpoint",
    )
    sweep_endpoint_url: str = Field(
        default="http://localhost:8000/internal/slots/sweep",
        alias="SWEEP_ENDPOINT_URL",
    )
    sweep_trigger_max_retries: int = Field(default=3, description="Retries after the first call")
    sweep_trigger_backoff_seconds: float = Field(
        default=1.0, description="First retry delay; doubles on each retry (1s, 2s, 4s)"
    )
    sweep_trigger_timeout_seconds: float = Field(default=10.0)
    sweep_interval_minutes: int = Field(default=15)

    # Redis / Celery / change notification
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    outbox_batch_size: int = Field(default=200)
    outbox_max_attempts: int = Field(default=5)

    metrics_enabled: bool = Field(default=True, alias="METRICS_ENABLED")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    # Use ConfigDict instead of Config class (Pydantic V2 style)
    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("environment")
    @classmethod
    def _normalize_environment(cls, v: str) -> str:
        return (v or "development").strip().lower()

    @field_validator("slot_duration_minutes")
    @classmethod
    def _validate_slot_duration(cls, v: int) -> int:
        if v <= 0 or v > 240:
            raise ValueError("slot_duration_minutes must be between 1 and 240")
        return v

    @property
    def is_production(self) -> bool:
        return self.environment in PROD_ENVIRONMENTS

    def get_database_url(self) -> str:
        """Return the database URL, refusing SQLite outside of dev/test."""
        url = self.database_url
        if self.is_production and url.startswith("sqlite"):
            raise ValueError("SQLite is not supported in production; set DATABASE_URL")
        return url


settings = Settings()

