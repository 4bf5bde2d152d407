# backend/mystery_events/services/template_service.py
"""
Email template rendering.

Templates authored by admins live in the ``email_templates`` table and use
``{{variable}}`` placeholders. They are rendered with a sandboxed Jinja2
environment, so a template can never reach Python objects beyond the
context it is given. Missing variables render as empty strings.

When no usable database template exists, the packaged file templates under
``templates/email`` are used instead.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, TemplateNotFound
from jinja2.sandbox import SandboxedEnvironment
from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.constants import (
    BRAND_NAME,
    GENERIC_VOUCHER_TEMPLATE_MARKER,
    TEMPLATE_BOOKING_CONFIRMATION,
    TEMPLATE_BOOKING_REMINDER,
    TEMPLATE_VOUCHER_EXPIRATION_REMINDER,
    TEMPLATE_VOUCHER_GIFT,
    TEMPLATE_VOUCHER_PURCHASE_CONFIRMATION,
)
from ..core.exceptions import ServiceException
from ..models.email_template import EmailTemplate
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

DEFAULT_SUBJECTS: Dict[str, str] = {
    TEMPLATE_BOOKING_CONFIRMATION: "Booking confirmed: {{event_title}} ({{booking_code}})",
    TEMPLATE_BOOKING_REMINDER: "Tomorrow: {{event_title}} at {{event_time}}",
    TEMPLATE_VOUCHER_GIFT: "{{purchaser_name}} has sent you a gift voucher",
    TEMPLATE_VOUCHER_PURCHASE_CONFIRMATION: "Your gift voucher {{voucher_code}} is ready",
    TEMPLATE_VOUCHER_EXPIRATION_REMINDER: "Your gift voucher {{voucher_code}} expires soon",
}


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str
    text: Optional[str]
    template_name: str


def format_currency(value: Any) -> str:
    amount = Decimal(str(value or 0)).quantize(Decimal("0.01"))
    return f"{amount:,.2f} €"


def format_date(value: Any, fmt: str = "%d/%m/%Y") -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime(fmt)
    return str(value or "")


class TemplateService(BaseService):
    def __init__(self, db: Session, config: Optional[Settings] = None):
        super().__init__(db)
        self.config = config or default_settings
        self.repository = RepositoryFactory.create_email_template_repository(db)
        self.sandbox = SandboxedEnvironment(autoescape=True)
        self.subject_sandbox = SandboxedEnvironment(autoescape=False)
        self.file_env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        for env in (self.sandbox, self.subject_sandbox, self.file_env):
            env.filters["currency"] = format_currency
            env.filters["format_date"] = format_date

    def get_common_context(self) -> Dict[str, Any]:
        return {
            "brand_name": BRAND_NAME,
            "current_year": datetime.now().year,
            "frontend_url": self.config.frontend_url,
            "support_email": self.config.from_email,
        }

    def render_string(self, template_string: str, context: Dict[str, Any], *, html: bool = True) -> str:
        env = self.sandbox if html else self.subject_sandbox
        full_context = self.get_common_context()
        full_context.update(context)
        try:
            return env.from_string(template_string).render(full_context)
        except TemplateError as e:
            self.logger.error("Error rendering template string: %s", e)
            raise ServiceException(f"Template rendering failed: {e}") from e

    def render_stored(self, template: EmailTemplate, context: Dict[str, Any]) -> RenderedEmail:
        return RenderedEmail(
            subject=self.render_string(template.subject, context, html=False),
            html=self.render_string(template.html_content, context),
            text=self.render_string(template.text_content, context, html=False)
            if template.text_content
            else None,
            template_name=template.name,
        )

    def render_file(self, name: str, context: Dict[str, Any]) -> RenderedEmail:
        full_context = self.get_common_context()
        full_context.update(context)
        try:
            html = self.file_env.get_template(f"email/{name}.html").render(full_context)
        except TemplateNotFound as e:
            self.logger.error("No stored or packaged template named %s", name)
            raise ServiceException(f"Email template not found: {name}") from e
        subject = self.render_string(DEFAULT_SUBJECTS.get(name, BRAND_NAME), context, html=False)
        return RenderedEmail(subject=subject, html=html, text=None, template_name=f"file:{name}")

    @BaseService.measure_operation("render_email")
    def render(self, name: str, context: Dict[str, Any], template_id: Optional[str] = None) -> RenderedEmail:
        """
        Render an email by name.

        Lookup order: the active template ``template_id`` (an event override),
        the active stored template called ``name``, the packaged file template.
        """
        template = None
        if template_id:
            template = self.repository.get_active_by_id(template_id)
        if template is None:
            template = self.repository.get_active_by_name(name)
        if template is not None:
            return self.render_stored(template, context)
        return self.render_file(name, context)

    @BaseService.measure_operation("render_voucher_email")
    def render_voucher(
        self, name: str, context: Dict[str, Any], event_template_id: Optional[str] = None
    ) -> RenderedEmail:
        """
        Voucher emails fall back one step further than ``render``: to the newest
        active stored template whose name mentions ``voucher``.
        """
        template = None
        if event_template_id:
            template = self.repository.get_active_by_id(event_template_id)
        if template is None:
            template = self.repository.get_active_by_name(name)
        if template is None:
            template = self.repository.find_latest_active_containing(GENERIC_VOUCHER_TEMPLATE_MARKER)
        if template is not None:
            return self.render_stored(template, context)
        return self.render_file(name, context)
