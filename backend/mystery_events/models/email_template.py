# backend/mystery_events/models/email_template.py
from typing import List

from sqlalchemy import Boolean, Column, String, Text
import ulid

from .types import Base, LenientJSON, TimestampMixin, as_string_list


class EmailTemplate(TimestampMixin, Base):
    """
    Admin-editable email template.

    ``subject`` and ``html_content`` hold ``{{variable}}`` placeholders;
    ``variables`` is the declared list of placeholder names (JSON text).
    """

    __tablename__ = "email_templates"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False, unique=True, index=True)
    subject = Column(String(255), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    description = Column(String(500), nullable=True)
    variables = Column(LenientJSON, nullable=True)
    active = Column(Boolean, nullable=False, default=True)

    @property
    def variable_names(self) -> List[str]:
        return as_string_list(self.variables)

    def __repr__(self) -> str:
        return f"<EmailTemplate {self.name} active={self.active}>"
