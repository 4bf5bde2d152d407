# backend/tests/helpers/fakes.py
"""
In-memory stand-ins for the outbound clients (email, Stripe, Google Calendar).

They expose the same methods the services call, record what was asked of
them, and can be switched into failure modes.
"""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from mystery_events.core.exceptions import (
    PaymentGatewayUnavailableException,
    ServiceException,
    ValidationException,
)
from mystery_events.services.calendar_service import CalendarSyncResult
from mystery_events.services.stripe_service import CheckoutSession, CheckoutSessionStatus

VALID_SIGNATURE = "t=1,v1=valid-signature"
WEBHOOK_SESSION_ID = "cs_test_webhook"


class FakeEmailService:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[SimpleNamespace] = []

    def send_email(
        self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None
    ) -> Dict[str, Any]:
        if self.fail:
            raise ServiceException("Email sending failed: provider unreachable")
        self.sent.append(SimpleNamespace(to=to_email, subject=subject, html=html_content, text=text_content))
        return {"id": f"fake-{len(self.sent)}"}

    def try_send(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> bool:
        try:
            self.send_email(to_email, subject, html_content, text_content)
            return True
        except ServiceException:
            return False

    def sent_to(self, email: str) -> List[SimpleNamespace]:
        return [message for message in self.sent if message.to == email]


class FakeStripeService:
    is_configured = True

    def __init__(
        self,
        unavailable: bool = False,
        payment_status: str = "paid",
        payment_intent_id: Optional[str] = "pi_test_123",
    ):
        self.unavailable = unavailable
        self.payment_status = payment_status
        self.payment_intent_id = payment_intent_id
        self.sessions: List[SimpleNamespace] = []
        self.expired: List[str] = []

    def create_checkout_session(
        self,
        *,
        line_items,
        metadata,
        success_url,
        cancel_url,
        customer_email=None,
        expires_at=None,
    ) -> CheckoutSession:
        if self.unavailable:
            raise PaymentGatewayUnavailableException("Payment gateway error: connection refused")
        session_id = f"cs_test_{len(self.sessions) + 1}"
        self.sessions.append(
            SimpleNamespace(
                id=session_id,
                line_items=line_items,
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=customer_email,
            )
        )
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/pay/{session_id}")

    def retrieve_checkout_session(self, session_id: str) -> CheckoutSessionStatus:
        if self.unavailable:
            raise PaymentGatewayUnavailableException("Payment gateway error: connection refused")
        return CheckoutSessionStatus(
            id=session_id, payment_status=self.payment_status, payment_intent_id=self.payment_intent_id
        )

    def expire_checkout_session(self, session_id: str) -> bool:
        if self.unavailable:
            return False
        self.expired.append(session_id)
        return True

    def construct_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        if signature != VALID_SIGNATURE:
            raise ValidationException("Invalid Stripe signature", code="INVALID_SIGNATURE")
        return json.loads(payload)


class FakeCalendarService:
    is_configured = True

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.upserts: List[str] = []
        self.updates: List[str] = []
        self.deletes: List[str] = []

    def upsert_event(self, event) -> CalendarSyncResult:
        if self.fail:
            return CalendarSyncResult(updated=False, calendar_event_id=event.calendar_event_id)
        self.upserts.append(event.id)
        if event.calendar_event_id:
            return CalendarSyncResult(updated=True, calendar_event_id=event.calendar_event_id)
        return CalendarSyncResult(updated=True, calendar_event_id=f"gcal-{event.id}", created=True)

    def update_event(self, calendar_event_id: str, event) -> bool:
        self.updates.append(calendar_event_id)
        return not self.fail

    def delete_event(self, calendar_event_id: str) -> bool:
        self.deletes.append(calendar_event_id)
        return not self.fail

    def close(self) -> None:
        pass


def checkout_event(event_type: str, metadata: Dict[str, str], **session: Any) -> Dict[str, Any]:
    """Minimal Stripe webhook event wrapping a Checkout session."""
    body = {"id": session.pop("id", WEBHOOK_SESSION_ID), "metadata": metadata}
    body.update(session)
    return {"id": "evt_test_1", "type": event_type, "data": {"object": body}}
