# backend/charterbook/core/config.py
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DEFAULT_TIMEZONE


logger = logging.getLogger(__name__)

# Load .env file only if not in CI
if not os.getenv("CI"):
    env_path = Path(__file__).parent.parent.parent / ".env"  # Goes up to backend/.env
    logger.debug(f"[CONFIG] Looking for .env at: {env_path}")
    load_dotenv(env_path)


class Settings(BaseSettings):
    environment: Literal["development", "testing", "staging", "production"] = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Deployment environment name",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Persistence
    database_url: str = Field(
        default="sqlite:///./charterbook.db",
        alias="DATABASE_URL",
        description="SQLAlchemy URL; PostgreSQL in deployed environments",
    )
    database_pool_size: int = Field(default=20, alias="DATABASE_POOL_SIZE")
    database_max_overflow: int = Field(default=10, alias="DATABASE_MAX_OVERFLOW")

    # Redis / Celery
    redis_url: str = "redis://localhost:6379"
    job_lock_namespace: str = Field(default="charterbook", alias="JOB_LOCK_NAMESPACE")

    # Scheduled trigger authentication
    cron_secret: SecretStr = Field(
        default=SecretStr(""),
        alias="CRON_SECRET",
        description="Shared secret expected as 'Authorization: Bearer <secret>' on cron calls",
    )

    # Stripe Configuration
    payment_gateway: Literal["stripe", "fake"] = Field(
        default="fake",
        alias="PAYMENT_GATEWAY",
        description="Which payment gateway implementation to use",
    )
    stripe_secret_key: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret key for backend API calls",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook signing secret",
    )
    stripe_currency: str = Field(default="usd", description="Default currency for payments")
    stripe_max_network_retries: int = Field(default=2, ge=0)

    # Notifications
    email_provider: Literal["console", "resend"] = Field(
        default="console",
        alias="EMAIL_PROVIDER",
        description="Email provider name",
    )
    resend_api_key: Optional[str] = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="API key for Resend provider (optional)",
    )
    notification_from_email: str = Field(
        default="bookings@charterbook.local",
        alias="NOTIFICATION_FROM_EMAIL",
    )
    public_app_url: str = Field(default="http://localhost:3000", alias="PUBLIC_APP_URL")

    # Weather
    weather_provider: Literal["noaa", "fake"] = Field(default="noaa", alias="WEATHER_PROVIDER")
    weather_base_url: str = Field(default="https://api.weather.gov", alias="WEATHER_BASE_URL")
    weather_user_agent: str = Field(
        default="charterbook (ops@charterbook.local)",
        alias="WEATHER_USER_AGENT",
        description="api.weather.gov requires an identifying User-Agent",
    )
    weather_timeout_seconds: float = Field(default=10.0, gt=0)

    # Captain defaults
    default_timezone: str = Field(default=DEFAULT_TIMEZONE, alias="DEFAULT_TIMEZONE")

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> str:
        if value is None:
            return "INFO"
        return str(value).strip().upper() or "INFO"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def get_database_url(self) -> str:
        """Return the database URL, normalising legacy postgres:// schemes."""
        url = self.database_url
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://") :]
        return url


settings = Settings()
