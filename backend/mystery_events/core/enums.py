# backend/mystery_events/core/enums.py
"""
Core enums for the Mystery Events platform.

Values are persisted as plain strings, so renaming a member's value
requires a data migration.
"""

from enum import Enum


class EventCategory(str, Enum):
    MURDER = "murder"
    ESCAPE = "escape"
    DETECTIVE = "detective"
    HORROR = "horror"


class EventStatus(str, Enum):
    """Lifecycle of an event. Only ``active`` events accept bookings."""

    DRAFT = "draft"
    ACTIVE = "active"
    SOLDOUT = "soldout"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    CARD = "card"
    VOUCHER = "voucher"
    MIXED = "mixed"


class TicketStatus(str, Enum):
    VALID = "valid"
    USED = "used"
    CANCELLED = "cancelled"


class VoucherStatus(str, Enum):
    """
    Stored voucher status.

    ``expired`` is never written by the ledger; expiry is evaluated against
    ``expiry_date`` at use time and reported as an effective status.
    """

    ACTIVE = "active"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class VoucherType(str, Enum):
    AMOUNT = "amount"
    EVENT = "event"


class FormFieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"


class SettingType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"
    TEMPLATE = "template"


class VoucherEmailTarget(str, Enum):
    RECIPIENT = "recipient"
    PURCHASER = "purchaser"
