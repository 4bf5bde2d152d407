# backend/mystery_events/models/types.py
"""
Declarative base and column types shared by all models.
"""

from datetime import datetime, timezone
import json
import logging
from typing import Any, List, Optional

from sqlalchemy import Column, DateTime, Text, TypeDecorator
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

logger = logging.getLogger(__name__)

Base = declarative_base()


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """Mixin class for automatic timestamp tracking."""

    created_at = Column(
        DateTime(timezone=True), default=now_utc, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True), default=now_utc, server_default=func.now(), onupdate=now_utc
    )


class LenientJSON(TypeDecorator):
    """
    JSON document stored in a TEXT column.

    Rows written by older tools sometimes hold malformed JSON; reads of those
    rows return ``None`` instead of raising.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, str):
            return value
        return json.dumps(value, ensure_ascii=False)

    def process_result_value(self, value: Optional[str], dialect: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            logger.warning("Discarding malformed JSON column value: %.60r", value)
            return None


def as_string_list(value: Any) -> List[str]:
    """Coerce a decoded JSON value into a list of strings; anything else is empty."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]
