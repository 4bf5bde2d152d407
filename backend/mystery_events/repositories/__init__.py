from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .customer_repository import CustomerRepository
from .email_template_repository import EmailTemplateRepository
from .event_repository import EventRepository
from .factory import RepositoryFactory
from .setting_repository import SettingRepository
from .voucher_repository import VoucherRepository

__all__ = [
    "BaseRepository",
    "BookingRepository",
    "CustomerRepository",
    "EmailTemplateRepository",
    "EventRepository",
    "RepositoryFactory",
    "SettingRepository",
    "VoucherRepository",
]
