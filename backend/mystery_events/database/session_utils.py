"""Dialect helpers for sessions."""

from __future__ import annotations

from sqlalchemy.exc import UnboundExecutionError
from sqlalchemy.orm import Session


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Name of the dialect bound to ``session``, or ``default`` when unbound."""
    try:
        bind = session.get_bind()
    except UnboundExecutionError:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default


def supports_row_locks(session: Session) -> bool:
    """SQLite ignores ``SELECT ... FOR UPDATE``; only emit it where it means something."""
    return get_dialect_name(session) in {"postgresql", "mysql", "mariadb"}
