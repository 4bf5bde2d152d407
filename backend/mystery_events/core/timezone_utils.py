"""
Business-timezone helpers.

Events are scheduled in local venue time (``settings.business_timezone``);
timestamps are stored in UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple

import pytz


def get_business_timezone(tz_name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(tz_name)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def business_today(tz_name: str, now: Optional[datetime] = None) -> date:
    current = ensure_utc(now) if now else utc_now()
    return current.astimezone(get_business_timezone(tz_name)).date()


def tomorrow_window(tz_name: str, now: Optional[datetime] = None) -> Tuple[date, date]:
    """
    Return ``(start, end)`` dates of the half-open window [tomorrow, day after).

    Both are calendar dates in the business timezone.
    """
    today = business_today(tz_name, now)
    return today + timedelta(days=1), today + timedelta(days=2)


def event_start(event_date: date, event_time: str, tz_name: str) -> datetime:
    """Combine a local event date and ``HH:MM`` time into an aware datetime."""
    hours, minutes = (int(part) for part in event_time.split(":", 1))
    tz = get_business_timezone(tz_name)
    return tz.localize(datetime.combine(event_date, time(hours, minutes)))


def month_start_utc(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """First instant of the current business-timezone month, in UTC."""
    today = business_today(tz_name, now)
    tz = get_business_timezone(tz_name)
    return tz.localize(datetime.combine(today.replace(day=1), time.min)).astimezone(timezone.utc)
