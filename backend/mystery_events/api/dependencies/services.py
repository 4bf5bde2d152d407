# backend/mystery_events/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request builds its services around one session. The outbound clients
(email, Stripe, calendar) are separate dependencies so tests can override
them with fakes.
"""

import logging
from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ...core.config import Settings, settings
from ...services.booking_service import BookingService
from ...services.calendar_service import CalendarService
from ...services.confirmation_service import ConfirmationService
from ...services.customer_service import CustomerService
from ...services.dashboard_service import DashboardService
from ...services.email import EmailService
from ...services.email_template_service import EmailTemplateService
from ...services.event_catalog import EventCatalog, create_event_source
from ...services.event_service import EventService
from ...services.notification_service import NotificationService
from ...services.setting_service import SettingService
from ...services.stripe_service import StripeService
from ...services.stripe_webhook_service import StripeWebhookService
from ...services.template_service import TemplateService
from ...services.voucher_service import VoucherService
from .database import get_database, get_db

logger = logging.getLogger(__name__)


def get_settings() -> Settings:
    return settings


# Outbound clients


def get_email_service(db: Session = Depends(get_db), config: Settings = Depends(get_settings)) -> EmailService:
    return EmailService(db, config)


def get_stripe_service(db: Session = Depends(get_db), config: Settings = Depends(get_settings)) -> StripeService:
    return StripeService(db, config)


def get_calendar_service(config: Settings = Depends(get_settings)) -> Generator[CalendarService, None, None]:
    service = CalendarService(config)
    try:
        yield service
    finally:
        service.close()


def get_template_service(db: Session = Depends(get_db), config: Settings = Depends(get_settings)) -> TemplateService:
    return TemplateService(db, config)


# Workflow services


def get_voucher_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    template_service: TemplateService = Depends(get_template_service),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> VoucherService:
    return VoucherService(
        db,
        config,
        email_service=email_service,
        template_service=template_service,
        stripe_service=stripe_service,
    )


def get_confirmation_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    template_service: TemplateService = Depends(get_template_service),
    calendar_service: CalendarService = Depends(get_calendar_service),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> ConfirmationService:
    return ConfirmationService(
        db,
        config,
        email_service=email_service,
        template_service=template_service,
        calendar_service=calendar_service,
        stripe_service=stripe_service,
    )


def get_booking_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    stripe_service: StripeService = Depends(get_stripe_service),
    voucher_service: VoucherService = Depends(get_voucher_service),
    confirmation_service: ConfirmationService = Depends(get_confirmation_service),
) -> BookingService:
    return BookingService(
        db,
        config,
        stripe_service=stripe_service,
        voucher_service=voucher_service,
        confirmation_service=confirmation_service,
    )


def get_stripe_webhook_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    stripe_service: StripeService = Depends(get_stripe_service),
    booking_service: BookingService = Depends(get_booking_service),
    confirmation_service: ConfirmationService = Depends(get_confirmation_service),
    voucher_service: VoucherService = Depends(get_voucher_service),
) -> StripeWebhookService:
    return StripeWebhookService(
        db,
        config,
        stripe_service=stripe_service,
        booking_service=booking_service,
        confirmation_service=confirmation_service,
        voucher_service=voucher_service,
    )


def get_notification_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    email_service: EmailService = Depends(get_email_service),
    template_service: TemplateService = Depends(get_template_service),
    voucher_service: VoucherService = Depends(get_voucher_service),
) -> NotificationService:
    return NotificationService(
        db,
        config,
        email_service=email_service,
        template_service=template_service,
        voucher_service=voucher_service,
    )


# Catalog and admin


def get_event_catalog(
    request: Request, config: Settings = Depends(get_settings)
) -> Generator[EventCatalog, None, None]:
    """The fixture catalog never touches the database, so it works while the store is down."""
    if config.event_data_source == "fixture":
        yield EventCatalog(create_event_source(None, config))
        return
    session = get_database(request).session()
    try:
        yield EventCatalog(create_event_source(session, config))
    finally:
        session.close()


def get_event_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> EventService:
    return EventService(db, config, calendar_service=calendar_service)


def get_email_template_service(
    db: Session = Depends(get_db),
    config: Settings = Depends(get_settings),
    template_service: TemplateService = Depends(get_template_service),
) -> EmailTemplateService:
    return EmailTemplateService(db, config, template_service=template_service)


def get_customer_service(db: Session = Depends(get_db)) -> CustomerService:
    return CustomerService(db)


def get_setting_service(db: Session = Depends(get_db)) -> SettingService:
    return SettingService(db)


def get_dashboard_service(db: Session = Depends(get_db), config: Settings = Depends(get_settings)) -> DashboardService:
    return DashboardService(db, config)
