# backend/mystery_events/models/setting.py
from sqlalchemy import Column, String, Text
import ulid

from ..core.enums import SettingType
from .types import Base, TimestampMixin


class AppSetting(TimestampMixin, Base):
    """Operator-editable key/value setting; ``value`` is text interpreted by ``type``."""

    __tablename__ = "app_settings"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    key = Column(String(100), nullable=False, unique=True, index=True)
    value = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default=SettingType.STRING.value)
    category = Column(String(50), nullable=False, default="general", index=True)
    description = Column(String(255), nullable=True)
