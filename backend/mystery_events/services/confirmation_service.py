# backend/mystery_events/services/confirmation_service.py
"""
Post-payment confirmation of a booking.

Steps, each committed on its own so a later failure never undoes an earlier one:
1. ``pending -> completed`` (the only path to ``completed``)
2. customer aggregates and sold-out marking, only on that first transition
3. confirmation email, gated by the ``confirmation_sent`` flag
4. Google Calendar upsert

Steps 2-4 are fail-soft: problems are logged and reported as ``False`` flags
in the result, never raised.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.constants import TEMPLATE_BOOKING_CONFIRMATION
from ..core.enums import PaymentStatus
from ..core.exceptions import ConflictException, DomainException, NotFoundException
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .calendar_service import CalendarService
from .email import EmailService
from .inventory_service import InventoryService
from .stripe_service import StripeService
from .template_service import TemplateService, format_currency, format_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConfirmationResult:
    email_sent: bool
    calendar_updated: bool
    already_confirmed: bool = False


def booking_email_context(booking: Booking) -> Dict[str, Any]:
    """Variables available to booking confirmation and reminder templates."""
    event = booking.event
    return {
        "customer_name": booking.customer_name,
        "booking_code": booking.booking_code,
        "event_title": event.title,
        "event_date": format_date(event.event_date),
        "event_time": event.start_time,
        "event_location": event.location,
        "quantity": booking.quantity,
        "total_amount": format_currency(booking.total_amount),
        "ticket_codes": [ticket.ticket_code for ticket in booking.tickets],
    }


class ConfirmationService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
        calendar_service: Optional[CalendarService] = None,
        stripe_service: Optional[StripeService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.customer_repository = RepositoryFactory.create_customer_repository(db)
        self.event_repository = RepositoryFactory.create_event_repository(db)
        self.inventory_service = InventoryService(db, self.config)
        self.email_service = email_service or EmailService(db, self.config)
        self.template_service = template_service or TemplateService(db, self.config)
        self.calendar_service = calendar_service or CalendarService(self.config)
        self._stripe_service = stripe_service

    @property
    def stripe_service(self) -> StripeService:
        if self._stripe_service is None:
            self._stripe_service = StripeService(self.db, self.config)
        return self._stripe_service

    def _get_booking(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND", details={"booking_id": booking_id})
        # Status and flags are written by bulk UPDATEs that bypass the identity map
        self.booking_repository.refresh(booking)
        return booking

    def _verify_paid(self, booking: Booking) -> Optional[str]:
        """
        Check the booking's Checkout session before a client-triggered confirmation.

        Returns the payment intent id. Raises ``ConflictException`` when the
        session has not been paid.
        """
        if not booking.stripe_session_id:
            raise ConflictException(
                "Booking has no payment session", code="PAYMENT_NOT_COMPLETED", details={"booking_id": booking.id}
            )
        session = self.stripe_service.retrieve_checkout_session(booking.stripe_session_id)
        if not session.is_paid:
            raise ConflictException(
                "Payment has not been completed",
                code="PAYMENT_NOT_COMPLETED",
                details={"booking_id": booking.id, "payment_status": session.payment_status},
            )
        return session.payment_intent_id

    @BaseService.measure_operation("confirm_booking")
    def confirm(
        self,
        booking_id: str,
        payment_intent_id: Optional[str] = None,
        verify_payment: bool = False,
    ) -> ConfirmationResult:
        """
        Finalize a paid booking.

        Args:
            booking_id: Booking to confirm
            payment_intent_id: Stripe payment intent, stored on the booking
            verify_payment: Ask Stripe whether the session was paid before
                completing a pending booking (used when a browser, not the
                webhook, triggers confirmation)

        Raises:
            NotFoundException: Unknown booking
            ConflictException: Booking has failed, or its payment is not complete
        """
        booking = self._get_booking(booking_id)
        if booking.payment_status == PaymentStatus.FAILED.value:
            raise ConflictException(
                "Cannot confirm a failed booking",
                code="BOOKING_FAILED",
                details={"booking_id": booking_id, "reason": booking.failure_reason},
            )
        if booking.confirmation_sent:
            self.logger.info("Booking %s already confirmed; nothing to do", booking.booking_code)
            return ConfirmationResult(email_sent=False, calendar_updated=False, already_confirmed=True)

        if (
            verify_payment
            and booking.payment_status == PaymentStatus.PENDING.value
            and booking.stripe_amount > 0
        ):
            payment_intent_id = self._verify_paid(booking) or payment_intent_id

        with self.transaction():
            first_completion = self.booking_repository.mark_completed(booking.id, payment_intent_id)
        if first_completion:
            self._record_completion(booking)

        self.booking_repository.refresh(booking)
        email_sent = self._send_confirmation_email(booking)
        calendar_updated = self._sync_calendar(booking.event_id)

        self.log_operation(
            "booking_confirmed",
            booking_id=booking.id,
            booking_code=booking.booking_code,
            email_sent=email_sent,
            calendar_updated=calendar_updated,
        )
        return ConfirmationResult(email_sent=email_sent, calendar_updated=calendar_updated)

    def _record_completion(self, booking: Booking) -> None:
        try:
            with self.transaction():
                self.customer_repository.add_to_aggregates(booking.customer_id, 1, booking.total_amount)
                if self.inventory_service.mark_soldout_if_exhausted(booking.event_id):
                    self.logger.info("Event %s is now sold out", booking.event_id)
        except DomainException as e:
            self.logger.error("Failed to update aggregates for booking %s: %s", booking.booking_code, e.message)

    def _send_confirmation_email(self, booking: Booking) -> bool:
        try:
            with self.transaction():
                claimed = self.booking_repository.claim_flag(booking.id, "confirmation_sent")
        except DomainException as e:
            self.logger.error("Could not claim confirmation for %s: %s", booking.booking_code, e.message)
            return False
        if not claimed:
            self.logger.info("Confirmation email for %s already sent by another worker", booking.booking_code)
            return False
        self.booking_repository.refresh(booking)

        try:
            rendered = self.template_service.render(
                TEMPLATE_BOOKING_CONFIRMATION,
                booking_email_context(booking),
                template_id=booking.event.confirmation_template_id,
            )
            self.email_service.send_email(booking.customer_email, rendered.subject, rendered.html, rendered.text)
        except DomainException as e:
            self.logger.error("Confirmation email for %s failed: %s", booking.booking_code, e.message)
            try:
                with self.transaction():
                    self.booking_repository.release_flag(booking.id, "confirmation_sent")
            except DomainException as release_error:
                self.logger.error(
                    "Could not release confirmation flag for %s: %s", booking.booking_code, release_error.message
                )
            prometheus_metrics.record_notification(TEMPLATE_BOOKING_CONFIRMATION, False)
            return False

        prometheus_metrics.record_notification(TEMPLATE_BOOKING_CONFIRMATION, True)
        return True

    def _sync_calendar(self, event_id: str) -> bool:
        """Create the event's calendar entry on its first booking, refresh totals afterwards."""
        event = self.event_repository.get_by_id(event_id, load_relationships=False)
        if event is None:
            return False
        self.event_repository.refresh(event)
        result = self.calendar_service.upsert_event(event)
        if result.created:
            try:
                with self.transaction():
                    event.calendar_event_id = result.calendar_event_id
            except DomainException as e:
                self.logger.error("Could not store calendar id for event %s: %s", event_id, e.message)
        return result.updated

    def sync_event(self, event_id: str) -> bool:
        """Force a calendar upsert for one event (admin action)."""
        return self._sync_calendar(event_id)
