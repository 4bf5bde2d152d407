# backend/mystery_events/services/stripe_webhook_service.py
"""
Routes verified Stripe webhook events to the booking and voucher workflows.

Kept apart from ``StripeService`` so the payment client has no dependency on
the services that consume its events.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import NotFoundException
from .base import BaseService
from .booking_service import BookingService
from .confirmation_service import ConfirmationService
from .stripe_service import StripeService
from .voucher_service import VoucherService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookOutcome:
    event_type: str
    handled: bool
    action: Optional[str] = None


class StripeWebhookService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        stripe_service: Optional[StripeService] = None,
        booking_service: Optional[BookingService] = None,
        confirmation_service: Optional[ConfirmationService] = None,
        voucher_service: Optional[VoucherService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.stripe_service = stripe_service or StripeService(db, self.config)
        self.booking_service = booking_service or BookingService(db, self.config, stripe_service=self.stripe_service)
        self.confirmation_service = confirmation_service or self.booking_service.confirmation_service
        self.voucher_service = voucher_service or VoucherService(db, self.config, stripe_service=self.stripe_service)

    def process(self, payload: bytes, signature: Optional[str]) -> WebhookOutcome:
        """Verify the signature, then dispatch."""
        event = self.stripe_service.construct_event(payload, signature)
        return self.handle_event(event)

    @BaseService.measure_operation("handle_stripe_webhook")
    def handle_event(self, event: Dict[str, Any]) -> WebhookOutcome:
        event_type = event.get("type", "")
        self.logger.info("Processing Stripe webhook: %s (%s)", event_type, event.get("id"))

        if event_type.startswith("checkout.session."):
            session = event.get("data", {}).get("object", {}) or {}
            if event_type == "checkout.session.completed":
                return self._handle_session_completed(event_type, session)
            if event_type in ("checkout.session.expired", "checkout.session.async_payment_failed"):
                return self._handle_session_failed(event_type, session)

        self.logger.debug("Unhandled Stripe event type: %s", event_type)
        return WebhookOutcome(event_type=event_type, handled=False)

    def _handle_session_completed(self, event_type: str, session: Dict[str, Any]) -> WebhookOutcome:
        metadata = session.get("metadata") or {}
        payment_intent = session.get("payment_intent")
        if session.get("payment_status") not in (None, "paid", "no_payment_required"):
            # Delayed payment methods report completion before the money arrives
            self.logger.info("Checkout session %s completed but unpaid", session.get("id"))
            return WebhookOutcome(event_type=event_type, handled=False)

        if metadata.get("booking_id"):
            try:
                if not self._is_current_session(metadata["booking_id"], session):
                    if session.get("payment_status") == "paid":
                        self.logger.error(
                            "Superseded checkout session %s for booking %s was paid; refund it manually",
                            session.get("id"),
                            metadata["booking_id"],
                        )
                    return WebhookOutcome(event_type=event_type, handled=False, action="session_superseded")
                result = self.confirmation_service.confirm(metadata["booking_id"], payment_intent_id=payment_intent)
            except NotFoundException:
                self.logger.warning("Webhook for unknown booking %s", metadata["booking_id"])
                return WebhookOutcome(event_type=event_type, handled=False)
            action = "booking_already_confirmed" if result.already_confirmed else "booking_confirmed"
            return WebhookOutcome(event_type=event_type, handled=True, action=action)

        if metadata.get("voucher_id"):
            activated = self.voucher_service.mark_paid(metadata["voucher_id"], payment_intent)
            action = "voucher_activated" if activated else "voucher_already_paid"
            return WebhookOutcome(event_type=event_type, handled=True, action=action)

        self.logger.warning("Checkout session %s has no booking or voucher metadata", session.get("id"))
        return WebhookOutcome(event_type=event_type, handled=False)

    def _is_current_session(self, booking_id: str, session: Dict[str, Any]) -> bool:
        """Whether ``session`` is the Checkout session the booking is waiting on."""
        booking = self.booking_service.get_booking(booking_id)
        return booking.stripe_session_id is not None and booking.stripe_session_id == session.get("id")

    def _handle_session_failed(self, event_type: str, session: Dict[str, Any]) -> WebhookOutcome:
        metadata = session.get("metadata") or {}
        if metadata.get("booking_id"):
            try:
                if not self._is_current_session(metadata["booking_id"], session):
                    return WebhookOutcome(event_type=event_type, handled=False, action="session_superseded")
                released = self.booking_service.fail_booking(metadata["booking_id"], event_type)
            except NotFoundException:
                self.logger.warning("Webhook for unknown booking %s", metadata["booking_id"])
                return WebhookOutcome(event_type=event_type, handled=False)
            return WebhookOutcome(
                event_type=event_type, handled=True, action="booking_failed" if released else "booking_unchanged"
            )
        if metadata.get("voucher_id"):
            changed = self.voucher_service.mark_payment_failed(metadata["voucher_id"])
            return WebhookOutcome(
                event_type=event_type,
                handled=True,
                action="voucher_payment_failed" if changed else "voucher_unchanged",
            )
        return WebhookOutcome(event_type=event_type, handled=False)
