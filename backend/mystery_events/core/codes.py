"""Identifier and human-facing code generation."""

import re
import secrets
import time
from typing import Optional

import ulid

from .constants import VOUCHER_CODE_ALPHABET, VOUCHER_CODE_PATTERN, VOUCHER_CODE_PREFIX

_BASE36 = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_VOUCHER_CODE_RE = re.compile(VOUCHER_CODE_PATTERN)


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ulid.ULID())


def is_valid_ulid(value: str) -> bool:
    try:
        ulid.ULID.from_str(value)
        return True
    except (ValueError, TypeError):
        return False


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_booking_code(now_ms: Optional[int] = None) -> str:
    """
    Booking reference: base36 millisecond timestamp plus four random characters.

    Sorting codes lexically roughly follows creation order.
    """
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{_to_base36(timestamp)}{suffix}"


def generate_ticket_code(booking_code: str, ordinal: int) -> str:
    """Ticket codes are ``<booking code>-T<ordinal>``, ordinals starting at 1."""
    if ordinal < 1:
        raise ValueError("ticket ordinal starts at 1")
    return f"{booking_code}-T{ordinal:02d}"


def generate_voucher_code() -> str:
    """Voucher code in the ``GIFT-XXXX-XXXX`` format."""
    first = "".join(secrets.choice(VOUCHER_CODE_ALPHABET) for _ in range(4))
    second = "".join(secrets.choice(VOUCHER_CODE_ALPHABET) for _ in range(4))
    return f"{VOUCHER_CODE_PREFIX}-{first}-{second}"


def normalize_voucher_code(code: str) -> str:
    return (code or "").strip().upper()


def is_valid_voucher_code(code: str) -> bool:
    return bool(_VOUCHER_CODE_RE.match(normalize_voucher_code(code)))
