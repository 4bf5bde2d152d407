# backend/mystery_events/models/__init__.py
"""
SQLAlchemy models.

Importing this package registers every mapper on ``Base.metadata``.
"""

from .booking import Booking, FormFieldResponse, Ticket
from .customer import Customer
from .email_template import EmailTemplate
from .event import Event, EventFormField
from .setting import AppSetting
from .types import Base
from .voucher import GiftVoucher, VoucherRedemption

__all__ = [
    "AppSetting",
    "Base",
    "Booking",
    "Customer",
    "EmailTemplate",
    "Event",
    "EventFormField",
    "FormFieldResponse",
    "GiftVoucher",
    "Ticket",
    "VoucherRedemption",
]
