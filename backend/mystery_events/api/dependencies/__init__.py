# backend/mystery_events/api/dependencies/__init__.py
"""
Central export point for all dependencies.
"""

from .auth import require_admin, require_cron_secret
from .database import get_database, get_db
from .services import (
    get_booking_service,
    get_confirmation_service,
    get_event_catalog,
    get_notification_service,
    get_settings,
    get_voucher_service,
)

__all__ = [
    # Auth
    "require_admin",
    "require_cron_secret",
    # Database
    "get_database",
    "get_db",
    # Services
    "get_booking_service",
    "get_confirmation_service",
    "get_event_catalog",
    "get_notification_service",
    "get_settings",
    "get_voucher_service",
]
