# backend/charterbook/repositories/base_repository.py
"""
Base repository for Charterbook models.

Every table is keyed by a ULID string ``id``. Repositories add and flush;
the owning service decides when to commit, so one booking operation and its
log entries land in a single transaction.
"""

from contextlib import contextmanager
import logging
from typing import Any, Dict, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException

ModelT = TypeVar("ModelT")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[ModelT]):
    """
    Shared data access for one model class.

    Attributes:
        db: SQLAlchemy session
        model: Mapped class this repository reads and writes
    """

    def __init__(self, db: Session, model: Type[ModelT]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit on success, roll back on any error."""
        try:
            yield self.db
            self.db.commit()
        except SQLAlchemyError as exc:
            self.logger.error(f"{self.model.__name__} transaction rolled back: {exc}")
            self.db.rollback()
            raise
        except Exception:
            self.db.rollback()
            raise

    def get_by_id(self, id: str) -> Optional[ModelT]:
        try:
            return self.db.get(self.model, id)
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading {self.model.__name__} {id}: {str(e)}")
            raise RepositoryException(f"Failed to load {self.model.__name__}: {str(e)}")

    def refresh(self, instance: ModelT) -> None:
        """Reload ``instance`` so a check made before an external call is re-read."""
        self.db.refresh(instance)

    def create(self, **fields: Any) -> ModelT:
        """
        Add one row and flush so its ULID is assigned.

        ``IntegrityError`` propagates untouched; booking admission maps the
        overlap constraint name to a conflict.
        """
        try:
            entity = self.model(**fields)
            self.db.add(entity)
            self.db.flush()
            return entity
        except IntegrityError:
            self.logger.warning(f"Integrity error creating {self.model.__name__}")
            raise
        except SQLAlchemyError as e:
            self.logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__}: {str(e)}")

    def bulk_create(self, rows: List[Dict[str, Any]]) -> List[ModelT]:
        """Add several rows in one flush (weekly windows, reschedule offers)."""
        if not rows:
            return []
        try:
            entities = [self.model(**data) for data in rows]
            self.db.add_all(entities)
            self.db.flush()
            return entities
        except SQLAlchemyError as e:
            self.logger.error(f"Error bulk creating {self.model.__name__}: {str(e)}")
            raise RepositoryException(f"Failed to create {self.model.__name__} rows: {str(e)}")
