# backend/mystery_events/services/email_template_service.py
"""
Admin management of stored email templates.

Rendering lives in ``TemplateService``; this service only edits the rows
and builds previews with sample data.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import Settings, settings as default_settings
from ..core.exceptions import ConflictException, NotFoundException
from ..models.email_template import EmailTemplate
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .template_service import RenderedEmail, TemplateService

logger = logging.getLogger(__name__)

COPY_SUFFIX = " (copy)"
EDITABLE_FIELDS = ("name", "subject", "html_content", "text_content", "description", "variables", "active")

SAMPLE_CONTEXTS: Dict[str, Dict[str, Any]] = {
    "booking": {
        "customer_name": "Ana García",
        "booking_code": "BK-M5X2K9-AB12",
        "event_title": "Murder Mystery: The Lost Will",
        "event_date": "15/02/2026",
        "event_time": "20:30",
        "event_location": "Teatro Principal, Madrid",
        "quantity": 2,
        "total_amount": "90.00 €",
        "ticket_codes": ["BK-M5X2K9-AB12-T01", "BK-M5X2K9-AB12-T02"],
    },
    "voucher": {
        "voucher_code": "GIFT-DEMO-2026",
        "recipient_name": "Carlos Martín",
        "purchaser_name": "María López",
        "amount": "100.00 €",
        "balance": "100.00 €",
        "personal_message": "Happy birthday! Enjoy the mystery.",
        "expiry_date": "31/12/2026",
        "delivery_date": "",
        "event_title": "",
    },
}


class EmailTemplateService(BaseService):
    def __init__(
        self,
        db: Session,
        config: Optional[Settings] = None,
        template_service: Optional[TemplateService] = None,
    ):
        super().__init__(db)
        self.config = config or default_settings
        self.repository = RepositoryFactory.create_email_template_repository(db)
        self.template_service = template_service or TemplateService(db, self.config)

    def list_templates(self) -> List[EmailTemplate]:
        return self.repository.list_all()

    def get_template(self, template_id: str) -> EmailTemplate:
        template = self.repository.get_by_id(template_id, load_relationships=False)
        if template is None:
            raise NotFoundException("Email template not found", code="TEMPLATE_NOT_FOUND")
        return template

    def _ensure_name_free(self, name: str, exclude_id: Optional[str] = None) -> None:
        existing = self.repository.get_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise ConflictException(
                "A template with this name already exists", code="TEMPLATE_NAME_TAKEN", details={"name": name}
            )

    @BaseService.measure_operation("create_email_template")
    def create_template(self, data: Dict[str, Any]) -> EmailTemplate:
        self._ensure_name_free(data["name"])
        with self.transaction():
            template = self.repository.create(**{k: v for k, v in data.items() if k in EDITABLE_FIELDS})
        self.log_operation("template_created", template_id=template.id, template_name=template.name)
        return template

    @BaseService.measure_operation("update_email_template")
    def update_template(self, template_id: str, data: Dict[str, Any]) -> EmailTemplate:
        template = self.get_template(template_id)
        if data.get("name") and data["name"] != template.name:
            self._ensure_name_free(data["name"], exclude_id=template.id)
        with self.transaction():
            for key, value in data.items():
                if key in EDITABLE_FIELDS:
                    setattr(template, key, value)
        self.log_operation("template_updated", template_id=template.id, fields=sorted(data))
        return template

    @BaseService.measure_operation("delete_email_template")
    def delete_template(self, template_id: str) -> None:
        """Events pointing at the template fall back to the named default (FK is SET NULL)."""
        template = self.get_template(template_id)
        with self.transaction():
            self.db.delete(template)
        self.log_operation("template_deleted", template_id=template_id)

    def _copy_name(self, name: str) -> str:
        candidate = f"{name}{COPY_SUFFIX}"
        counter = 1
        while self.repository.get_by_name(candidate) is not None:
            counter += 1
            candidate = f"{name} (copy {counter})"
        return candidate

    @BaseService.measure_operation("duplicate_email_template")
    def duplicate_template(self, template_id: str) -> EmailTemplate:
        """Copy a template under a free ``(copy)`` name; copies start inactive."""
        original = self.get_template(template_id)
        with self.transaction():
            copy = self.repository.create(
                name=self._copy_name(original.name),
                subject=original.subject,
                html_content=original.html_content,
                text_content=original.text_content,
                description=original.description,
                variables=original.variable_names,
                active=False,
            )
        self.log_operation("template_duplicated", source_id=original.id, template_id=copy.id)
        return copy

    def preview(
        self,
        subject: str,
        html_content: str,
        variables: Optional[Dict[str, Any]] = None,
        category: Optional[str] = None,
    ) -> RenderedEmail:
        """Render unsaved template text against sample data, overridden by ``variables``."""
        context = dict(SAMPLE_CONTEXTS.get(category or "booking", SAMPLE_CONTEXTS["booking"]))
        context.update(variables or {})
        return RenderedEmail(
            subject=self.template_service.render_string(subject, context, html=False),
            html=self.template_service.render_string(html_content, context),
            text=None,
            template_name="preview",
        )
