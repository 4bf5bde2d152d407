# backend/mystery_events/routes/v1/stripe_webhooks.py
"""
Stripe webhook endpoint (v1).

Mounted at /api/v1/stripe/webhook. The raw body is needed for signature
verification, so the payload is read from the request rather than parsed
by FastAPI. Any non-2xx answer makes Stripe retry the delivery; every
handler is idempotent, so retries are safe.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Request

from ...api.dependencies.services import get_stripe_webhook_service
from ...core.exceptions import DomainException
from ...services.stripe_webhook_service import StripeWebhookService
from .common import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    webhook_service: StripeWebhookService = Depends(get_stripe_webhook_service),
) -> Dict[str, Any]:
    payload = await request.body()
    try:
        outcome = await asyncio.to_thread(webhook_service.process, payload, stripe_signature)
    except DomainException as e:
        logger.error("Stripe webhook rejected: %s (%s)", e.message, e.code)
        handle_domain_exception(e)
    return {"received": True, "type": outcome.event_type, "handled": outcome.handled, "action": outcome.action}
