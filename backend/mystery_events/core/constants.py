# backend/mystery_events/core/constants.py
"""
Application-wide constants for the Mystery Events platform.

Business limits that are not environment specific live here; anything an
operator may want to tune per deployment belongs in ``core.config``.
"""

BRAND_NAME = "Mystery Events"

# Booking limits
MIN_TICKETS_PER_BOOKING = 1
MAX_TICKETS_PER_BOOKING = 8

# Event validation
EVENT_TITLE_MAX_LENGTH = 200
EVENT_MIN_DURATION_MINUTES = 30
EVENT_MAX_DURATION_MINUTES = 480
EVENT_MIN_CAPACITY = 1
EVENT_MAX_CAPACITY = 100
EVENT_MIN_PRICE = 0
EVENT_MAX_PRICE = 1000
EVENT_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

# Gift vouchers
VOUCHER_CODE_PREFIX = "GIFT"
VOUCHER_CODE_PATTERN = r"^GIFT-[A-Z0-9]{4}-[A-Z0-9]{4}$"
VOUCHER_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
VOUCHER_CODE_MAX_ATTEMPTS = 10
VOUCHER_MIN_AMOUNT = 25
VOUCHER_MAX_AMOUNT = 500
VOUCHER_DEFAULT_AMOUNT = 50
VOUCHER_DEFAULT_TICKET_QUANTITY = 2
VOUCHER_MESSAGE_MAX_LENGTH = 500

# Email template names
TEMPLATE_BOOKING_CONFIRMATION = "booking_confirmation"
TEMPLATE_BOOKING_REMINDER = "booking_reminder"
TEMPLATE_VOUCHER_GIFT = "voucher_gift"
TEMPLATE_VOUCHER_PURCHASE_CONFIRMATION = "voucher_purchase_confirmation"
TEMPLATE_VOUCHER_EXPIRATION_REMINDER = "voucher_expiration_reminder"
GENERIC_VOUCHER_TEMPLATE_MARKER = "voucher"

# Pagination
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Stripe amounts are expressed in the smallest currency unit
CENTS_PER_UNIT = 100

# API metadata
API_TITLE = f"{BRAND_NAME} API"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Event ticketing, gift vouchers and back-office management for immersive mystery events."
