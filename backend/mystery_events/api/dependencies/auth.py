# backend/mystery_events/api/dependencies/auth.py
"""
Shared-secret bearer authentication for machine callers.

Cron jobs present ``CRON_SECRET``; the admin console presents
``ADMIN_API_TOKEN``. A missing or unconfigured secret always fails closed.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Request
from pydantic import SecretStr

from ...core.config import Settings
from ...core.exceptions import UnauthorizedException
from .services import get_settings

logger = logging.getLogger(__name__)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _check_secret(request: Request, secret: Optional[SecretStr], realm: str) -> None:
    expected = secret.get_secret_value() if secret else ""
    provided = _bearer_token(request)
    if not expected:
        logger.error("%s secret is not configured; rejecting request to %s", realm, request.url.path)
        raise UnauthorizedException("Unauthorized", code="UNAUTHORIZED")
    if provided is None or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Rejected %s request to %s", realm, request.url.path)
        raise UnauthorizedException("Unauthorized", code="UNAUTHORIZED")


def require_cron_secret(request: Request, config: Settings = Depends(get_settings)) -> None:
    _check_secret(request, config.cron_secret, "cron")


def require_admin(request: Request, config: Settings = Depends(get_settings)) -> None:
    _check_secret(request, config.admin_api_token, "admin")
