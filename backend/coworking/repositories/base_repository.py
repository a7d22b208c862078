# backend/coworking/repositories/base_repository.py
"""
Generic data access shared by every repository.

Repositories add and flush; they never commit. The owning service opens
the transaction with ``BaseService.transaction()`` and decides when the
unit of work ends.
"""

from contextlib import contextmanager
import logging
from typing import Any, Generic, Iterator, List, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ..core.exceptions import RepositoryException

T = TypeVar("T")

logger = logging.getLogger(__name__)


class BaseRepository(Generic[T]):
    """Lookups and writes for one mapped model, keyed by its ULID ``id``."""

    def __init__(self, db: Session, model: Type[T]):
        self.db = db
        self.model = model
        self.logger = logging.getLogger(f"{__name__}.{model.__name__}")

    @property
    def _name(self) -> str:
        return self.model.__name__

    @contextmanager
    def _guard(self, action: str, rollback: bool = False) -> Iterator[None]:
        """Translate driver errors into RepositoryException for the service layer."""
        try:
            yield
        except IntegrityError as e:
            self.logger.warning(f"Constraint violated while trying to {action} {self._name}: {e}")
            if rollback:
                self.db.rollback()
            raise RepositoryException(f"Cannot {action} {self._name}: {e.orig}") from e
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to {action} {self._name}: {str(e)}")
            if rollback:
                self.db.rollback()
            raise RepositoryException(f"Failed to {action} {self._name}: {str(e)}") from e

    def _filtered(self, **criteria: Any) -> Query:
        return self.db.query(self.model).filter_by(**criteria)

    def get_by_id(self, id: str) -> Optional[T]:
        with self._guard("load"):
            return self.db.get(self.model, id)

    def find_by(self, **criteria: Any) -> List[T]:
        with self._guard("query"):
            return self._filtered(**criteria).all()

    def find_one_by(self, **criteria: Any) -> Optional[T]:
        with self._guard("query"):
            return self._filtered(**criteria).first()

    def create(self, **fields: Any) -> T:
        """Add a row and flush so its defaults and id are populated."""
        entity = self.model(**fields)
        with self._guard("create", rollback=True):
            self.db.add(entity)
            self.db.flush()
        return entity

    def update(self, id: str, **fields: Any) -> Optional[T]:
        """Set the given attributes; unknown names are ignored. None if missing."""
        entity = self.get_by_id(id)
        if entity is None:
            return None
        for name, value in fields.items():
            if hasattr(entity, name):
                setattr(entity, name, value)
        with self._guard("update", rollback=True):
            self.db.flush()
        return entity

    def delete(self, id: str) -> bool:
        """
        Remove a row. False when it does not exist.

        Raises:
            RepositoryException: other rows still reference it
        """
        entity = self.get_by_id(id)
        if entity is None:
            return False
        with self._guard("delete", rollback=True):
            self.db.delete(entity)
            self.db.flush()
        return True

    def flush(self) -> None:
        self.db.flush()
