# backend/mystery_events/schemas/email_template.py
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, Field, field_validator

from ._strict_base import ORMResponseModel, StrictModel, StrictRequestModel


def _clean_variables(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    seen: List[str] = []
    for name in v:
        name = name.strip()
        if name and name not in seen:
            seen.append(name)
    return seen


class EmailTemplateCreate(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    subject: str = Field(..., min_length=1, max_length=255)
    html_content: str = Field(..., min_length=1)
    text_content: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    variables: List[str] = Field(default_factory=list)
    active: bool = True

    @field_validator("variables")
    @classmethod
    def _dedupe_variables(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_variables(v)


class EmailTemplateUpdate(StrictRequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    html_content: Optional[str] = Field(None, min_length=1)
    text_content: Optional[str] = None
    description: Optional[str] = Field(None, max_length=500)
    variables: Optional[List[str]] = None
    active: Optional[bool] = None

    @field_validator("variables")
    @classmethod
    def _dedupe_variables(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_variables(v)


class EmailTemplateResponse(ORMResponseModel):
    id: str
    name: str
    subject: str
    html_content: str
    text_content: Optional[str] = None
    description: Optional[str] = None
    variables: List[str] = Field(default_factory=list, validation_alias=AliasChoices("variable_names", "variables"))
    active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None


class TemplatePreviewRequest(StrictRequestModel):
    subject: str = Field("Preview", max_length=255)
    html_content: str = Field(..., min_length=1)
    category: Literal["booking", "voucher"] = "booking"
    variables: Dict[str, Any] = Field(default_factory=dict)


class TemplatePreviewResponse(StrictModel):
    subject: str
    html: str
