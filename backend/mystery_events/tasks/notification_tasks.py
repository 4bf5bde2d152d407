# backend/mystery_events/tasks/notification_tasks.py
"""
Periodic notification sweeps.

Each task opens its own session and delegates to ``NotificationService``;
the service's persisted send flags make overlapping runs safe.
"""

from dataclasses import asdict
from typing import Any, Dict, List

from celery.utils.log import get_task_logger

from ..services.notification_service import NotificationService
from .celery_app import celery_app, task_session

logger = get_task_logger(__name__)


@celery_app.task(name="mystery_events.tasks.notification_tasks.send_booking_reminders")
def send_booking_reminders() -> Dict[str, int]:
    with task_session() as session:
        result = NotificationService(session).send_booking_reminders()
    logger.info("Booking reminders: %s", result.to_dict())
    return result.to_dict()


@celery_app.task(name="mystery_events.tasks.notification_tasks.report_low_inventory")
def report_low_inventory() -> List[Dict[str, Any]]:
    with task_session() as session:
        flagged = NotificationService(session).low_inventory_report()
    return [asdict(item) for item in flagged]


@celery_app.task(name="mystery_events.tasks.notification_tasks.deliver_scheduled_vouchers")
def deliver_scheduled_vouchers() -> Dict[str, int]:
    with task_session() as session:
        result = NotificationService(session).deliver_scheduled_vouchers()
    if result.total:
        logger.info("Scheduled vouchers: %s", result.to_dict())
    return result.to_dict()


@celery_app.task(name="mystery_events.tasks.notification_tasks.send_voucher_expiration_reminders")
def send_voucher_expiration_reminders() -> Dict[str, int]:
    with task_session() as session:
        result = NotificationService(session).send_expiration_reminders()
    logger.info("Voucher expiry reminders: %s", result.to_dict())
    return result.to_dict()
