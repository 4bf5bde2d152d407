# backend/mystery_events/core/config.py
import logging
import os
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    BRAND_NAME,
    MAX_TICKETS_PER_BOOKING,
    VOUCHER_MAX_AMOUNT,
    VOUCHER_MESSAGE_MAX_LENGTH,
    VOUCHER_MIN_AMOUNT,
)

logger = logging.getLogger(__name__)

load_dotenv()


def is_running_tests() -> bool:
    """PYTEST_CURRENT_TEST is set by pytest for the duration of each test."""
    return os.getenv("PYTEST_CURRENT_TEST") is not None


class Settings(BaseSettings):
    """Runtime configuration, read from the environment and ``.env``."""

    app_name: str = BRAND_NAME
    environment: str = Field(default="development", description="development|staging|production")

    # Database
    database_url: str = Field(
        default="sqlite:///./mystery_events.db",
        description="SQLAlchemy URL of the primary store",
    )
    database_echo: bool = False
    event_data_source: Literal["database", "fixture"] = Field(
        default="database",
        description="Source for public event listings; 'fixture' serves the packaged demo catalog",
    )

    # Celery / Redis
    redis_url: str = "redis://localhost:6379/0"

    # Stripe
    stripe_secret_key: Optional[SecretStr] = None
    stripe_webhook_secret: Optional[SecretStr] = None
    currency: str = "eur"
    checkout_session_ttl_minutes: int = Field(default=30, ge=30, le=1440)

    # Email
    email_provider: Literal["console", "resend"] = "console"
    resend_api_key: Optional[SecretStr] = None
    from_email: str = "reservas@mysteryevents.example"
    from_name: str = BRAND_NAME
    admin_email: Optional[str] = None

    # Public site used in payment redirects and email links
    frontend_url: str = "http://localhost:3000"

    # Google Calendar
    google_calendar_client_id: Optional[str] = None
    google_calendar_client_secret: Optional[SecretStr] = None
    google_calendar_refresh_token: Optional[SecretStr] = None
    google_calendar_id: str = "primary"
    google_calendar_timeout_seconds: float = 10.0
    business_timezone: str = "Europe/Madrid"

    # Shared secrets for machine callers
    cron_secret: Optional[SecretStr] = None
    admin_api_token: Optional[SecretStr] = None

    # Bookings
    max_tickets_per_booking: int = MAX_TICKETS_PER_BOOKING
    pending_booking_ttl_minutes: int = Field(
        default=60,
        description="Pending bookings older than this are released by the abandoned-checkout sweep",
    )

    # Inventory alerts
    low_inventory_occupancy: float = Field(default=0.8, ge=0, le=1)
    low_inventory_remaining: int = Field(default=5, ge=0)

    # Gift vouchers
    voucher_min_amount: float = VOUCHER_MIN_AMOUNT
    voucher_max_amount: float = VOUCHER_MAX_AMOUNT
    voucher_validity_days: int = 365
    voucher_expiry_reminder_days: int = 30
    voucher_message_max_length: int = VOUCHER_MESSAGE_MAX_LENGTH

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("frontend_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_secret_key.get_secret_value())

    @property
    def calendar_configured(self) -> bool:
        return bool(
            self.google_calendar_client_id
            and self.google_calendar_client_secret
            and self.google_calendar_refresh_token
        )

    @property
    def sender(self) -> str:
        return f"{self.from_name} <{self.from_email}>"


settings = Settings()
