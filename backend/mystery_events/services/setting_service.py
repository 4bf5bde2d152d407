# backend/mystery_events/services/setting_service.py
"""
Operator-editable settings stored as typed text.

Values are parsed on read according to the row's ``type``. A value that does
not parse falls back to the default for that key, so a bad edit can never
break the pages that read it.
"""

from dataclasses import dataclass
import json
import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from ..core.enums import SettingType
from ..core.exceptions import ValidationException
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettingDefault:
    value: Any
    type: SettingType
    category: str
    description: str = ""


DEFAULT_SETTINGS: Dict[str, SettingDefault] = {
    "voucher.min_tickets": SettingDefault(2, SettingType.NUMBER, "vouchers", "Minimum tickets on an event voucher"),
    "voucher.max_tickets": SettingDefault(8, SettingType.NUMBER, "vouchers", "Maximum tickets on an event voucher"),
    "voucher.allow_partial_redemption": SettingDefault(
        True, SettingType.BOOLEAN, "vouchers", "Allow a voucher to be spent across several bookings"
    ),
    "voucher.default_expiry_days": SettingDefault(
        365, SettingType.NUMBER, "vouchers", "Days a new voucher stays valid"
    ),
    "email.default_confirmation_template": SettingDefault(
        "", SettingType.TEMPLATE, "email", "Template used for booking confirmations"
    ),
    "email.default_reminder_template": SettingDefault(
        "", SettingType.TEMPLATE, "email", "Template used for event reminders"
    ),
    "email.default_voucher_template": SettingDefault(
        "", SettingType.TEMPLATE, "email", "Template used for gift vouchers"
    ),
}


def parse_setting(raw: Optional[str], setting_type: str, default: Any = None) -> Any:
    if raw is None:
        return default
    if setting_type == SettingType.NUMBER.value:
        try:
            number = float(raw)
        except ValueError:
            return default
        return int(number) if number.is_integer() else number
    if setting_type == SettingType.BOOLEAN.value:
        return raw.strip().lower() == "true"
    if setting_type == SettingType.JSON.value:
        try:
            return json.loads(raw)
        except ValueError:
            return default
    return raw


def serialize_setting(value: Any, setting_type: str) -> Optional[str]:
    if value is None:
        return None
    if setting_type == SettingType.BOOLEAN.value:
        return "true" if value else "false"
    if setting_type == SettingType.JSON.value:
        return json.dumps(value)
    if setting_type == SettingType.NUMBER.value:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            try:
                value = float(value)
            except (TypeError, ValueError) as e:
                raise ValidationException(
                    "Setting value must be a number", code="INVALID_SETTING_VALUE", details={"value": value}
                ) from e
        return str(value)
    return str(value)


class SettingService(BaseService):
    def __init__(self, db: Session, defaults: Optional[Mapping[str, SettingDefault]] = None):
        super().__init__(db)
        self.repository = RepositoryFactory.create_setting_repository(db)
        self.defaults = dict(defaults if defaults is not None else DEFAULT_SETTINGS)

    def get(self, key: str) -> Any:
        default = self.defaults.get(key)
        row = self.repository.get_by_key(key)
        if row is None:
            return default.value if default else None
        return parse_setting(row.value, row.type, default.value if default else None)

    def get_all(self) -> Dict[str, Dict[str, Any]]:
        """Every setting grouped by category: stored rows merged over the defaults."""
        grouped: Dict[str, Dict[str, Any]] = {}
        for key, default in self.defaults.items():
            grouped.setdefault(default.category, {})[key] = default.value
        for row in self.repository.list_all():
            default = self.defaults.get(row.key)
            grouped.setdefault(row.category, {})[row.key] = parse_setting(
                row.value, row.type, default.value if default else None
            )
        return grouped

    @BaseService.measure_operation("update_settings")
    def update(self, values: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
        """Upsert each key; known keys keep their declared type and category."""
        with self.transaction():
            for key, value in values.items():
                default = self.defaults.get(key)
                if default is not None:
                    setting_type, category = default.type.value, default.category
                elif isinstance(value, bool):
                    setting_type, category = SettingType.BOOLEAN.value, "general"
                elif isinstance(value, (int, float)):
                    setting_type, category = SettingType.NUMBER.value, "general"
                elif isinstance(value, (dict, list)):
                    setting_type, category = SettingType.JSON.value, "general"
                else:
                    setting_type, category = SettingType.STRING.value, "general"
                self.repository.upsert(
                    key=key,
                    value=serialize_setting(value, setting_type),
                    type=setting_type,
                    category=category,
                )
        self.log_operation("settings_updated", keys=sorted(values))
        return self.get_all()
