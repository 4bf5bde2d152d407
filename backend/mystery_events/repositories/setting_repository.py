# backend/mystery_events/repositories/setting_repository.py
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.setting import AppSetting
from .base_repository import BaseRepository


class SettingRepository(BaseRepository[AppSetting]):
    def __init__(self, db: Session):
        super().__init__(db, AppSetting)

    def get_by_key(self, key: str) -> Optional[AppSetting]:
        return self.db.query(AppSetting).filter(AppSetting.key == key).first()

    def list_all(self) -> List[AppSetting]:
        return self.db.query(AppSetting).order_by(AppSetting.category, AppSetting.key).all()

    def upsert(self, *, key: str, value: Optional[str], type: str, category: str) -> AppSetting:
        setting = self.get_by_key(key)
        if setting is None:
            return self.create(key=key, value=value, type=type, category=category)
        setting.value = value
        setting.type = type
        setting.category = category
        self.db.flush()
        return setting
