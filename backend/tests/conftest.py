# backend/tests/conftest.py
"""
Shared fixtures.

Every test gets its own SQLite file database, settings that never reach a
real provider, and fake email, Stripe and calendar clients. Route tests use
an app built by ``create_app`` around the same database, with the outbound
client dependencies overridden by the fakes.
"""

import os

# Keep a developer's .env out of the test settings
os.environ.setdefault("CI", "true")

from typing import Dict, Generator

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session

from mystery_events.api.dependencies.services import (
    get_calendar_service,
    get_email_service,
    get_stripe_service,
)
from mystery_events.core.config import Settings
from mystery_events.database import Database
from mystery_events.main import create_app
from mystery_events.services.booking_service import BookingService
from mystery_events.services.confirmation_service import ConfirmationService
from mystery_events.services.template_service import TemplateService
from mystery_events.services.voucher_service import VoucherService

from tests.helpers.fakes import FakeCalendarService, FakeEmailService, FakeStripeService

CRON_SECRET = "cron-secret-for-tests"
ADMIN_TOKEN = "admin-token-for-tests"


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'mystery_events_test.db'}",
        email_provider="console",
        stripe_secret_key=None,
        stripe_webhook_secret="whsec_test",
        cron_secret=CRON_SECRET,
        admin_api_token=ADMIN_TOKEN,
        frontend_url="https://mystery.example",
        event_data_source="database",
        business_timezone="Europe/Madrid",
    )


@pytest.fixture
def database(test_settings: Settings) -> Generator[Database, None, None]:
    db = Database(test_settings.database_url).init()
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def db(database: Database) -> Generator[Session, None, None]:
    session = database.session()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def fake_email() -> FakeEmailService:
    return FakeEmailService()


@pytest.fixture
def fake_stripe() -> FakeStripeService:
    return FakeStripeService()


@pytest.fixture
def fake_calendar() -> FakeCalendarService:
    return FakeCalendarService()


@pytest.fixture
def template_service(db: Session, test_settings: Settings) -> TemplateService:
    return TemplateService(db, test_settings)


@pytest.fixture
def voucher_service(db, test_settings, fake_email, template_service, fake_stripe) -> VoucherService:
    return VoucherService(
        db,
        test_settings,
        email_service=fake_email,
        template_service=template_service,
        stripe_service=fake_stripe,
    )


@pytest.fixture
def confirmation_service(
    db, test_settings, fake_email, template_service, fake_calendar, fake_stripe
) -> ConfirmationService:
    return ConfirmationService(
        db,
        test_settings,
        email_service=fake_email,
        template_service=template_service,
        calendar_service=fake_calendar,
        stripe_service=fake_stripe,
    )


@pytest.fixture
def booking_service(db, test_settings, fake_stripe, voucher_service, confirmation_service) -> BookingService:
    return BookingService(
        db,
        test_settings,
        stripe_service=fake_stripe,
        voucher_service=voucher_service,
        confirmation_service=confirmation_service,
    )


@pytest.fixture
def app(test_settings, database, fake_email, fake_stripe, fake_calendar):
    application = create_app(test_settings, database)
    application.dependency_overrides[get_email_service] = lambda: fake_email
    application.dependency_overrides[get_stripe_service] = lambda: fake_stripe
    application.dependency_overrides[get_calendar_service] = lambda: fake_calendar
    return application


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def cron_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}
