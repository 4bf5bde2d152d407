# backend/mystery_events/services/stripe_service.py
"""
Stripe Service for the Mystery Events platform

Wraps the Stripe SDK calls the platform needs: hosted Checkout sessions for
bookings and gift vouchers, and webhook signature verification.

When no secret key is configured the service reports ``is_configured = False``
and every call that would reach Stripe raises
``PaymentGatewayUnavailableException``; callers decide how to degrade.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session
import stripe

from ..core.config import Settings, settings as default_settings
from ..core.constants import CENTS_PER_UNIT
from ..core.exceptions import (
    PaymentGatewayUnavailableException,
    ServiceException,
    ValidationException,
)
from ..core.timezone_utils import utc_now
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: Optional[str]


@dataclass(frozen=True)
class CheckoutSessionStatus:
    id: str
    payment_status: str
    payment_intent_id: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status in ("paid", "no_payment_required")


@dataclass(frozen=True)
class LineItem:
    name: str
    unit_amount: Decimal
    quantity: int = 1
    description: Optional[str] = None


def to_minor_units(amount: Decimal) -> int:
    """Euros to cents, rounding half up."""
    return int((Decimal(amount) * CENTS_PER_UNIT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class StripeService(BaseService):
    def __init__(self, db: Optional[Session] = None, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or default_settings
        self.is_configured = False
        if self.config.stripe_configured:
            stripe.api_key = self.config.stripe_secret_key.get_secret_value()
            stripe.max_network_retries = 1
            self.is_configured = True
        else:
            self.logger.warning("Stripe secret key not configured - payments are unavailable")

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise PaymentGatewayUnavailableException("Payment gateway is not configured")

    @BaseService.measure_operation("stripe_create_checkout_session")
    def create_checkout_session(
        self,
        *,
        line_items: List[LineItem],
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_email: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> CheckoutSession:
        """
        Open a hosted Checkout session.

        Raises:
            PaymentGatewayUnavailableException: Stripe not configured or the API call failed
        """
        self._require_configured()
        expires = expires_at or utc_now() + timedelta(minutes=self.config.checkout_session_ttl_minutes)
        params: Dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": self.config.currency,
                        "product_data": {
                            "name": item.name,
                            **({"description": item.description} if item.description else {}),
                        },
                        "unit_amount": to_minor_units(item.unit_amount),
                    },
                    "quantity": item.quantity,
                }
                for item in line_items
            ],
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "expires_at": int(expires.timestamp()),
        }
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            self.logger.error("Stripe checkout session creation failed: %s", e)
            raise PaymentGatewayUnavailableException(f"Payment gateway error: {e.user_message or e}") from e

        self.log_operation("checkout_session_created", session_id=session.id, metadata=metadata)
        return CheckoutSession(id=session.id, url=session.url)

    @BaseService.measure_operation("stripe_retrieve_checkout_session")
    def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionStatus:
        """Current payment state of a Checkout session."""
        self._require_configured()
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            self.logger.error("Stripe checkout session lookup failed for %s: %s", session_id, e)
            raise PaymentGatewayUnavailableException(f"Payment gateway error: {e.user_message or e}") from e
        payment_intent = session.payment_intent
        if payment_intent is not None and not isinstance(payment_intent, str):
            payment_intent = payment_intent.id
        return CheckoutSessionStatus(
            id=session.id,
            payment_status=session.payment_status,
            payment_intent_id=payment_intent,
        )

    @BaseService.measure_operation("stripe_expire_checkout_session")
    def expire_checkout_session(self, session_id: str) -> bool:
        """
        Close a Checkout session so it can no longer be paid.

        Returns False when Stripe refuses (already paid or expired) or cannot
        be reached; the session is then left to expire on its own.
        """
        if not self.is_configured:
            return False
        try:
            stripe.checkout.Session.expire(session_id)
        except stripe.StripeError as e:
            self.logger.warning("Could not expire checkout session %s: %s", session_id, e)
            return False
        self.log_operation("checkout_session_expired", session_id=session_id)
        return True

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify the ``Stripe-Signature`` header and decode the event.

        Raises:
            ServiceException: Webhook secret not configured
            ValidationException: Missing or invalid signature, or malformed payload
        """
        secret = self.config.stripe_webhook_secret
        if not secret or not secret.get_secret_value():
            raise ServiceException("Webhook secret not configured")
        if not signature:
            raise ValidationException("Missing Stripe signature", code="INVALID_SIGNATURE")
        try:
            event = stripe.Webhook.construct_event(payload, signature, secret.get_secret_value())
        except stripe.SignatureVerificationError as e:
            self.logger.warning("Invalid webhook signature")
            raise ValidationException("Invalid Stripe signature", code="INVALID_SIGNATURE") from e
        except ValueError as e:
            raise ValidationException("Malformed webhook payload", code="INVALID_PAYLOAD") from e
        return event.to_dict() if hasattr(event, "to_dict") else dict(event)
