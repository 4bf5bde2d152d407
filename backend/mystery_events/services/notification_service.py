# backend/mystery_events/services/notification_service.py
"""
Periodic sweeps: booking reminders, low-inventory report, and voucher
delivery and expiry emails.

Sweeps may overlap (Celery beat plus a manual cron call). Every send is
guarded by a persisted flag claimed right before sending, so a booking or
voucher is emailed at most once no matter how many sweeps see it. A failure
for one item is counted and the sweep moves on.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.constants import TEMPLATE_BOOKING_REMINDER
from ..core.exceptions import DomainException
from ..core.timezone_utils import business_today, tomorrow_window, utc_now
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .confirmation_service import booking_email_context
from .email import EmailService
from .inventory_service import InventoryService
from .template_service import TemplateService
from .voucher_service import VoucherService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    sent: int
    failed: int
    total: int

    def to_dict(self) -> Dict[str, int]:
        return {"sent": self.sent, "failed": self.failed, "total": self.total}


@dataclass(frozen=True)
class LowInventoryEvent:
    event_id: str
    title: str
    event_date: str
    capacity: int
    available_tickets: int
    booked_quantity: int
    occupancy: float


class NotificationService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
        voucher_service: Optional[VoucherService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.event_repository = RepositoryFactory.create_event_repository(db)
        self.voucher_repository = RepositoryFactory.create_voucher_repository(db)
        self.inventory_service = InventoryService(db, self.config)
        self.email_service = email_service or EmailService(db, self.config)
        self.template_service = template_service or TemplateService(db, self.config)
        self.voucher_service = voucher_service or VoucherService(
            db, self.config, email_service=self.email_service, template_service=self.template_service
        )

    # Booking reminders

    def _send_reminder(self, booking: Booking) -> Optional[bool]:
        """True sent, False failed, None when another sweep already claimed it."""
        with self.transaction():
            claimed = self.booking_repository.claim_flag(booking.id, "reminder_sent")
        if not claimed:
            return None
        try:
            rendered = self.template_service.render(
                TEMPLATE_BOOKING_REMINDER,
                booking_email_context(booking),
                template_id=booking.event.reminder_template_id,
            )
            self.email_service.send_email(booking.customer_email, rendered.subject, rendered.html, rendered.text)
        except DomainException as e:
            self.logger.error("Reminder for booking %s failed: %s", booking.booking_code, e.message)
            with self.transaction():
                self.booking_repository.release_flag(booking.id, "reminder_sent")
            prometheus_metrics.record_notification(TEMPLATE_BOOKING_REMINDER, False)
            return False
        prometheus_metrics.record_notification(TEMPLATE_BOOKING_REMINDER, True)
        return True

    @BaseService.measure_operation("send_booking_reminders")
    def send_booking_reminders(self, now: Optional[datetime] = None) -> SweepResult:
        """Remind completed bookings whose event is tomorrow (business timezone)."""
        start, end = tomorrow_window(self.config.business_timezone, now)
        candidates = self.booking_repository.find_reminder_candidates(start, end)
        sent = failed = 0
        for booking in candidates:
            try:
                outcome = self._send_reminder(booking)
            except DomainException as e:
                self.logger.error("Reminder sweep error for booking %s: %s", booking.booking_code, e.message)
                outcome = False
            if outcome is True:
                sent += 1
            elif outcome is False:
                failed += 1
        self.logger.info("Reminder sweep for %s: %d sent, %d failed of %d", start, sent, failed, len(candidates))
        return SweepResult(sent=sent, failed=failed, total=len(candidates))

    # Inventory and status reports

    @BaseService.measure_operation("low_inventory_report")
    def low_inventory_report(self, now: Optional[datetime] = None) -> List[LowInventoryEvent]:
        today = business_today(self.config.business_timezone, now)
        events = self.event_repository.get_active_future_events(today)
        booked = self.event_repository.booked_quantities([event.id for event in events])
        flagged: List[LowInventoryEvent] = []
        for event in events:
            quantity = booked.get(event.id, 0)
            if self.inventory_service.is_low_inventory(event, quantity):
                flagged.append(
                    LowInventoryEvent(
                        event_id=event.id,
                        title=event.title,
                        event_date=event.event_date.isoformat(),
                        capacity=event.capacity,
                        available_tickets=event.available_tickets,
                        booked_quantity=quantity,
                        occupancy=round(self.inventory_service.occupancy(event, quantity), 4),
                    )
                )
        if flagged:
            self.logger.warning("%d events are running low on tickets", len(flagged))
        return flagged

    def pending_status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        start, end = tomorrow_window(self.config.business_timezone, now)
        today = business_today(self.config.business_timezone, now)
        return {
            "pending_reminders": self.booking_repository.count_reminder_candidates(start, end),
            "upcoming_events": self.event_repository.count_upcoming(today),
            "reminder_date": start.isoformat(),
        }

    # Voucher sweeps

    @BaseService.measure_operation("deliver_scheduled_vouchers")
    def deliver_scheduled_vouchers(self, now: Optional[datetime] = None) -> SweepResult:
        current = now or utc_now()
        due = self.voucher_repository.find_scheduled_due(current)
        sent = failed = 0
        for voucher in due:
            try:
                outcome = self.voucher_service.send_recipient_email(voucher, current)
            except DomainException as e:
                self.logger.error("Scheduled delivery of voucher %s failed: %s", voucher.code, e.message)
                outcome = False
            if outcome is True:
                sent += 1
            elif outcome is False:
                failed += 1
        self.logger.info("Scheduled voucher delivery: %d sent, %d failed of %d", sent, failed, len(due))
        return SweepResult(sent=sent, failed=failed, total=len(due))

    @BaseService.measure_operation("send_voucher_expiration_reminders")
    def send_expiration_reminders(self, now: Optional[datetime] = None) -> SweepResult:
        current = now or utc_now()
        until = current + timedelta(days=self.config.voucher_expiry_reminder_days)
        expiring = self.voucher_repository.find_expiring(current, until)
        sent = failed = 0
        for voucher in expiring:
            try:
                outcome = self.voucher_service.send_expiration_reminder(voucher, current)
            except DomainException as e:
                self.logger.error("Expiry reminder for voucher %s failed: %s", voucher.code, e.message)
                outcome = False
            if outcome is True:
                sent += 1
            elif outcome is False:
                failed += 1
        self.logger.info("Voucher expiry reminders: %d sent, %d failed of %d", sent, failed, len(expiring))
        return SweepResult(sent=sent, failed=failed, total=len(expiring))
