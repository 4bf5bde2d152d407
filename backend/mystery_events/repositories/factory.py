# backend/mystery_events/repositories/factory.py
"""
Repository Factory for the Mystery Events platform

Services obtain repositories through this factory so tests can patch a
single construction point.
"""

from sqlalchemy.orm import Session

from .booking_repository import BookingRepository
from .customer_repository import CustomerRepository
from .email_template_repository import EmailTemplateRepository
from .event_repository import EventRepository
from .setting_repository import SettingRepository
from .voucher_repository import VoucherRepository


class RepositoryFactory:
    @staticmethod
    def create_event_repository(db: Session) -> EventRepository:
        return EventRepository(db)

    @staticmethod
    def create_customer_repository(db: Session) -> CustomerRepository:
        return CustomerRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> BookingRepository:
        return BookingRepository(db)

    @staticmethod
    def create_voucher_repository(db: Session) -> VoucherRepository:
        return VoucherRepository(db)

    @staticmethod
    def create_email_template_repository(db: Session) -> EmailTemplateRepository:
        return EmailTemplateRepository(db)

    @staticmethod
    def create_setting_repository(db: Session) -> SettingRepository:
        return SettingRepository(db)
