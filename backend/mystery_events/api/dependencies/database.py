# backend/mystery_events/api/dependencies/database.py
"""
Database-related dependencies.
"""

from typing import Generator

from fastapi import Request
from sqlalchemy.orm import Session

from ...core.exceptions import DatabaseUnavailableException
from ...database import Database


def get_database(request: Request) -> Database:
    """The process-wide gateway created in the application lifespan."""
    database = getattr(request.app.state, "database", None)
    if database is None or not database.is_initialized:
        raise DatabaseUnavailableException("Database is not initialized")
    return database


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Get database session dependency.

    Yields:
        Database session that will be closed after use
    """
    session = get_database(request).session()
    try:
        yield session
    finally:
        session.close()
