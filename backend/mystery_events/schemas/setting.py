# backend/mystery_events/schemas/setting.py
from typing import Any, Dict

from pydantic import Field, field_validator

from ._strict_base import StrictModel, StrictRequestModel


class SettingsUpdate(StrictRequestModel):
    values: Dict[str, Any] = Field(..., min_length=1)

    @field_validator("values")
    @classmethod
    def _check_keys(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        for key in v:
            if not key or len(key) > 100:
                raise ValueError(f"Invalid setting key: {key!r}")
        return v


class SettingsResponse(StrictModel):
    settings: Dict[str, Dict[str, Any]]
