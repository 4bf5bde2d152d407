# backend/mystery_events/repositories/base_repository.py
"""
Base Repository Pattern for the Mystery Events platform

Provides the foundation for all repository classes with:
- Common CRUD operations
- Type safety with generics
- Transaction support (managed by services)

Repositories flush but never commit; the service that owns the unit of work
decides when to commit or roll back.
"""

import logging
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar

from sqlalchemy.engine import CursorResult
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException
from ..database.session_utils import get_dialect_name, supports_row_locks

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """
    Concrete base repository implementation with common data access patterns.

    Attributes:
        db: SQLAlchemy session
        model: SQLAlchemy model class
    """

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def dialect_name(self) -> str:
        return get_dialect_name(self.db)

    @property
    def can_lock_rows(self) -> bool:
        return supports_row_locks(self.db)

    def get_by_id(self, id: str, load_relationships: bool = True) -> Optional[T]:
        """Retrieve an entity by its primary key."""
        try:
            query = self.db.query(self.model).filter(self.model.id == id)
            if load_relationships:
                query = self._apply_eager_loading(query)
            return query.first()
        except SQLAlchemyError as e:
            self.logger.error("Error getting %s by id %s: %s", self.model.__name__, id, e)
            raise RepositoryException(f"Failed to retrieve {self.model.__name__}: {e}") from e

    def get_all(self, skip: int = 0, limit: int = 100) -> List[T]:
        try:
            return self.db.query(self.model).offset(skip).limit(limit).all()
        except SQLAlchemyError as e:
            self.logger.error("Error getting all %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to retrieve {self.model.__name__} list: {e}") from e

    def refresh(self, instance: T) -> None:
        """Reload an instance after a bulk UPDATE touched its row."""
        self.db.refresh(instance)

    def create(self, **kwargs: Any) -> T:
        """
        Create a new entity.

        Note: Does NOT commit - transaction management is handled by service layer.
        """
        try:
            entity = self.model(**kwargs)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError as exc:
            self.logger.error("Integrity error creating %s: %s", self.model.__name__, exc)
            raise RepositoryException(f"Integrity constraint violated: {exc}") from exc
        except SQLAlchemyError as e:
            self.logger.error("Error creating %s: %s", self.model.__name__, e)
            raise RepositoryException(f"Failed to create {self.model.__name__}: {e}") from e

    def update(self, id: str, **kwargs: Any) -> Optional[T]:
        """Update only the provided fields of an existing entity."""
        try:
            entity = self.get_by_id(id, load_relationships=False)
            if not entity:
                return None
            for key, value in kwargs.items():
                if hasattr(entity, key):
                    setattr(entity, key, value)
            self.db.flush()
            return entity
        except SQLAlchemyError as e:
            self.logger.error("Error updating %s %s: %s", self.model.__name__, id, e)
            raise RepositoryException(f"Failed to update {self.model.__name__}: {e}") from e

    def delete(self, id: str) -> bool:
        """
        Delete an entity by its primary key.

        Returns False if entity not found, raises exception for constraint violations.
        """
        try:
            entity = self.get_by_id(id, load_relationships=False)
            if not entity:
                return False
            self.db.delete(entity)
            self.db.flush()
            return True
        except IntegrityError as e:
            self.logger.error("Cannot delete %s %s due to constraints: %s", self.model.__name__, id, e)
            raise RepositoryException(f"Cannot delete due to existing references: {e}") from e
        except SQLAlchemyError as e:
            self.logger.error("Error deleting %s %s: %s", self.model.__name__, id, e)
            raise RepositoryException(f"Failed to delete {self.model.__name__}: {e}") from e

    def exists(self, **kwargs: Any) -> bool:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first() is not None
        except SQLAlchemyError as e:
            self.logger.error("Error checking existence: %s", e)
            raise RepositoryException(f"Failed to check existence: {e}") from e

    def count(self, **kwargs: Any) -> int:
        try:
            return self.db.query(self.model).filter_by(**kwargs).count()
        except SQLAlchemyError as e:
            self.logger.error("Error counting records: %s", e)
            raise RepositoryException(f"Failed to count records: {e}") from e

    def find_by(self, **kwargs: Any) -> List[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).all()
        except SQLAlchemyError as e:
            self.logger.error("Error finding by criteria: %s", e)
            raise RepositoryException(f"Failed to find records: {e}") from e

    def find_one_by(self, **kwargs: Any) -> Optional[T]:
        try:
            return self.db.query(self.model).filter_by(**kwargs).first()
        except SQLAlchemyError as e:
            self.logger.error("Error finding one by criteria: %s", e)
            raise RepositoryException(f"Failed to find record: {e}") from e

    def bulk_create(self, entities: List[Dict[str, Any]]) -> List[T]:
        """Create several entities with a single flush."""
        try:
            db_entities = [self.model(**data) for data in entities]
            self.db.add_all(db_entities)
            self.db.flush()
            return db_entities
        except SQLAlchemyError as e:
            self.logger.error("Error bulk creating: %s", e)
            raise RepositoryException(f"Failed to bulk create: {e}") from e

    # Protected helper methods for use by subclasses

    def _apply_eager_loading(self, query: Query) -> Query:
        """Override in subclasses to specify which relationships to load."""
        return query

    def _execute_guarded(self, statement: Any, operation: str) -> int:
        """
        Run a conditional UPDATE and return the number of rows it matched.

        Zero means the guard in the WHERE clause rejected the change.
        """
        try:
            result: CursorResult = self.db.execute(statement.execution_options(synchronize_session=False))
            return int(result.rowcount or 0)
        except SQLAlchemyError as e:
            self.logger.error("Error during %s: %s", operation, e)
            raise RepositoryException(f"Failed to {operation}: {e}") from e
