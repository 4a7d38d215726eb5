"""
Base Repository - shared base class for all repositories
Implements the common database operations of the Repository Pattern.

Repositories flush but never commit on their own; services own transaction
boundaries through commit() / rollback().
"""

from typing import TypeVar, Generic, List, Optional, Dict, Any, Type
from sqlalchemy.orm import Session, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import desc, asc
from enum import Enum
import logging

logger = logging.getLogger(__name__)

# Type variable for model classes
T = TypeVar('T')


class SortOrder(Enum):
    """Sort order options"""
    ASC = "asc"
    DESC = "desc"


class BaseRepository(Generic[T]):
    """
    Base repository with common CRUD operations.

    Write operations roll the session back and re-raise on failure so the
    calling service can decide how to recover (for example by re-fetching
    after a unique constraint violation).
    """

    def __init__(self, session: Session, model_class: Type[T]):
        """
        Initialize repository with database session and model class.

        Args:
            session: SQLAlchemy database session
            model_class: The model class this repository manages
        """
        self.session = session
        self.model_class = model_class

    # CREATE Operations

    def create(self, **kwargs) -> T:
        """
        Create a new entity and flush it so defaults and keys are populated.

        Raises:
            SQLAlchemyError: If database operation fails (IntegrityError on
                unique constraint violations)
        """
        try:
            entity = self.model_class(**kwargs)
            self.session.add(entity)
            self.session.flush()
            logger.debug(f"Created {self.model_class.__name__} with id {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    # READ Operations

    def get_by_id(self, entity_id: Any) -> Optional[T]:
        """Get entity by primary key, None if it does not exist."""
        return self.session.get(self.model_class, entity_id)

    def get_all(self, order_by: Optional[str] = None,
                order: SortOrder = SortOrder.ASC) -> List[T]:
        """
        Get all entities with optional ordering.

        Args:
            order_by: Field name to order by
            order: Sort order (ASC or DESC)
        """
        query = self.session.query(self.model_class)
        return self._apply_ordering(query, order_by, order).all()

    def find_by(self, order_by: Optional[str] = None,
                order: SortOrder = SortOrder.ASC, **filters) -> List[T]:
        """
        Find entities by field values.

        A list value becomes an IN clause and None an IS NULL check.
        """
        query = self._build_query(filters)
        return self._apply_ordering(query, order_by, order).all()

    def find_one_by(self, **filters) -> Optional[T]:
        """First entity matching the filters, or None."""
        return self._build_query(filters).first()

    # UPDATE Operations

    def update(self, entity: T, **updates) -> T:
        """
        Update an entity with new values.

        Unknown attribute names are ignored.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            for field, value in updates.items():
                if hasattr(entity, field):
                    setattr(entity, field, value)
            self.session.flush()
            logger.debug(f"Updated {self.model_class.__name__} with id {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    # DELETE Operations

    def delete(self, entity: T) -> None:
        """
        Delete an entity.

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            self.session.delete(entity)
            self.session.flush()
            logger.debug(f"Deleted {self.model_class.__name__} with id {entity.id}")
        except SQLAlchemyError as e:
            logger.error(f"Error deleting {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    def delete_many(self, filters: Dict[str, Any]) -> int:
        """
        Delete every entity matching the filters.

        Returns:
            Number of deleted rows

        Raises:
            SQLAlchemyError: If database operation fails
        """
        try:
            query = self._build_query(filters)
            count = query.delete(synchronize_session=False)
            self.session.flush()
            logger.debug(f"Deleted {count} {self.model_class.__name__} entities")
            return count
        except SQLAlchemyError as e:
            logger.error(f"Error deleting multiple {self.model_class.__name__}: {e}")
            self.session.rollback()
            raise

    # Transaction Management

    def commit(self) -> None:
        """Commit the current transaction."""
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error committing transaction: {e}")
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()

    # Helper Methods

    def _build_query(self, filters: Optional[Dict[str, Any]] = None) -> Query:
        query = self.session.query(self.model_class)

        for field, value in (filters or {}).items():
            column = getattr(self.model_class, field, None)
            if column is None:
                continue
            if isinstance(value, (list, tuple, set)):
                query = query.filter(column.in_(list(value)))
            elif value is None:
                query = query.filter(column.is_(None))
            else:
                query = query.filter(column == value)

        return query

    def _apply_ordering(self, query: Query, order_by: Optional[str],
                        order: SortOrder) -> Query:
        if order_by:
            order_field = getattr(self.model_class, order_by, None)
            if order_field is not None:
                query = query.order_by(
                    desc(order_field) if order == SortOrder.DESC else asc(order_field)
                )
        return query
