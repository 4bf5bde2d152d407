# backend/mystery_events/tasks/beat_schedule.py
"""
Celery Beat schedule for Mystery Events.

Crontab hours are in the Celery timezone, which is the business timezone.
"""

from typing import Any, Dict

from celery.schedules import crontab

CELERYBEAT_SCHEDULE: Dict[str, Dict[str, Any]] = {
    # Reminders for events happening tomorrow
    "send-booking-reminders": {
        "task": "mystery_events.tasks.notification_tasks.send_booking_reminders",
        "schedule": crontab(hour=10, minute=0),
        "options": {"queue": "notifications"},
    },
    "report-low-inventory": {
        "task": "mystery_events.tasks.notification_tasks.report_low_inventory",
        "schedule": crontab(minute=0),
        "options": {"queue": "notifications"},
    },
    "deliver-scheduled-vouchers": {
        "task": "mystery_events.tasks.notification_tasks.deliver_scheduled_vouchers",
        "schedule": crontab(minute="*/15"),
        "options": {"queue": "notifications"},
    },
    "send-voucher-expiration-reminders": {
        "task": "mystery_events.tasks.notification_tasks.send_voucher_expiration_reminders",
        "schedule": crontab(hour=9, minute=0),
        "options": {"queue": "notifications"},
    },
    # Pending checkouts older than PENDING_BOOKING_TTL_MINUTES
    "release-abandoned-bookings": {
        "task": "mystery_events.tasks.booking_tasks.release_abandoned_bookings",
        "schedule": crontab(minute="*/10"),
        "options": {"queue": "bookings"},
    },
}


def get_beat_schedule() -> Dict[str, Dict[str, Any]]:
    return dict(CELERYBEAT_SCHEDULE)
