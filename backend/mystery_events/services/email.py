# backend/mystery_events/services/email.py
"""
Email Service for the Mystery Events platform

Sends transactional email through Resend, or logs it when the console
provider is configured (local development, tests).

``send_email`` raises ``ServiceException`` on failure. Workflow code that
must keep going when email is down calls ``try_send`` and gets a bool back.
"""

import logging
import re
from typing import Any, Dict, Optional

import resend
from sqlalchemy.orm import Session

from ..core.codes import generate_ulid
from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ServiceException
from .base import BaseService

logger = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


class EmailService(BaseService):
    def __init__(self, db: Optional[Session] = None, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or default_settings
        self.provider = self.config.email_provider
        if self.provider == "resend":
            api_key = self.config.resend_api_key.get_secret_value() if self.config.resend_api_key else ""
            if not api_key:
                raise ServiceException("Resend API key not configured")
            resend.api_key = api_key
        self.sender = self.config.sender

    @staticmethod
    def html_to_text(html_content: str) -> str:
        """Plain-text alternative for clients that don't render HTML."""
        text = _TAG_RE.sub(" ", html_content)
        return _SPACE_RE.sub(" ", text).strip()

    @BaseService.measure_operation("send_email")
    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Send one email.

        Returns:
            Provider response (contains the message id)

        Raises:
            ServiceException: If the provider rejects or cannot be reached
        """
        email_data = {
            "from": self.sender,
            "to": to_email,
            "subject": subject,
            "html": html_content,
            "text": text_content or self.html_to_text(html_content),
        }
        if self.provider == "console":
            message_id = f"console-{generate_ulid()}"
            self.logger.info("[console email] to=%s subject=%r id=%s", to_email, subject, message_id)
            return {"id": message_id}

        try:
            response = resend.Emails.send(email_data)
        except Exception as e:
            self.logger.error("Failed to send email to %s: %s (%s)", to_email, e, type(e).__name__)
            raise ServiceException(f"Email sending failed: {e}") from e

        self.log_operation("email_sent", to_email=to_email, subject=subject)
        return response

    def try_send(self, to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> bool:
        """``send_email`` that reports failure as False instead of raising."""
        try:
            self.send_email(to_email, subject, html_content, text_content)
            return True
        except ServiceException:
            return False
