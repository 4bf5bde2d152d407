# backend/mystery_events/tasks/booking_tasks.py
"""Booking housekeeping tasks."""

from typing import Dict

from celery.utils.log import get_task_logger

from ..services.booking_service import BookingService
from .celery_app import celery_app, task_session

logger = get_task_logger(__name__)


@celery_app.task(name="mystery_events.tasks.booking_tasks.release_abandoned_bookings")
def release_abandoned_bookings() -> Dict[str, int]:
    """Fail stale pending bookings and return their tickets to inventory."""
    with task_session() as session:
        result = BookingService(session).release_abandoned_bookings()
    if result["released"]:
        logger.info("Released %d abandoned bookings", result["released"])
    return result
