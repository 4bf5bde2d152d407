# backend/mystery_events/database/__init__.py
"""
Persistence gateway.

``Database`` owns the engine and session factory for one process. The API
creates it in the FastAPI lifespan and stores it on ``app.state``; Celery
workers create it in ``worker_process_init``. Nothing in the package holds a
module-level engine.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Dict, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Database:
    """Engine + session factory with an explicit init/dispose lifecycle."""

    def __init__(self, url: str, *, echo: bool = False, engine_kwargs: Optional[Dict[str, Any]] = None):
        self.url = url
        self.echo = echo
        self._engine_kwargs = engine_kwargs or {}
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError("Database.init() has not been called")
        return self._engine

    def init(self) -> "Database":
        """Create the engine (idempotent)."""
        if self._engine is not None:
            return self

        kwargs: Dict[str, Any] = {"echo": self.echo, "future": True}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in self.url or self.url in ("sqlite://", "sqlite:///"):
                kwargs["poolclass"] = StaticPool
        else:
            kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_recycle=300)
        kwargs.update(self._engine_kwargs)

        self._engine = create_engine(self.url, **kwargs)
        if self._engine.dialect.name == "sqlite":
            _enable_sqlite_foreign_keys(self._engine)
        self._session_factory = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        logger.info("Database engine initialized (%s)", self._engine.dialect.name)
        return self

    def dispose(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info("Database engine disposed")

    def create_all(self) -> None:
        """Create tables directly; used by tests and local bootstrap."""
        from ..models.types import Base
        from .. import models  # noqa: F401  (register mappers)

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError("Database.init() has not been called")
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Session context manager for work outside a request.

        Commits on success, rolls back and re-raises on error.
        """
        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def _enable_sqlite_foreign_keys(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: Any, _connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


__all__ = ["Database"]
