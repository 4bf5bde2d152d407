# backend/mystery_events/repositories/email_template_repository.py
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.email_template import EmailTemplate
from .base_repository import BaseRepository


class EmailTemplateRepository(BaseRepository[EmailTemplate]):
    def __init__(self, db: Session):
        super().__init__(db, EmailTemplate)

    def get_by_name(self, name: str) -> Optional[EmailTemplate]:
        return self.db.query(EmailTemplate).filter(EmailTemplate.name == name).first()

    def get_active_by_name(self, name: str) -> Optional[EmailTemplate]:
        return (
            self.db.query(EmailTemplate)
            .filter(EmailTemplate.name == name, EmailTemplate.active.is_(True))
            .first()
        )

    def get_active_by_id(self, template_id: str) -> Optional[EmailTemplate]:
        return (
            self.db.query(EmailTemplate)
            .filter(EmailTemplate.id == template_id, EmailTemplate.active.is_(True))
            .first()
        )

    def find_latest_active_containing(self, fragment: str) -> Optional[EmailTemplate]:
        return (
            self.db.query(EmailTemplate)
            .filter(EmailTemplate.name.contains(fragment), EmailTemplate.active.is_(True))
            .order_by(EmailTemplate.created_at.desc(), EmailTemplate.id.desc())
            .first()
        )

    def list_all(self) -> List[EmailTemplate]:
        return self.db.query(EmailTemplate).order_by(EmailTemplate.name.asc()).all()
