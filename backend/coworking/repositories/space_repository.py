"""Space catalog data access, including the row lock used while booking."""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import SpaceStatus
from ..core.exceptions import RepositoryException
from ..models.space import Space
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SpaceRepository(BaseRepository[Space]):
    def __init__(self, db: Session):
        super().__init__(db, Space)

    def list_available(self, space_type: Optional[str] = None) -> List[Space]:
        try:
            query = self.db.query(Space).filter(Space.status == SpaceStatus.AVAILABLE.value)
            if space_type:
                query = query.filter(Space.type == space_type)
            return query.order_by(Space.name.asc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing available spaces: {str(e)}")
            raise RepositoryException(f"Failed to list spaces: {str(e)}")

    def list_all(self) -> List[Space]:
        try:
            return self.db.query(Space).order_by(Space.created_at.desc()).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing spaces: {str(e)}")
            raise RepositoryException(f"Failed to list spaces: {str(e)}")

    def get_for_update(self, space_id: str) -> Optional[Space]:
        """
        Load a space holding a row lock until the transaction ends.

        Serializes concurrent bookings for the same space on PostgreSQL.
        SQLite ignores FOR UPDATE and relies on its database-level write lock.
        """
        try:
            return self.db.query(Space).filter(Space.id == space_id).with_for_update().first()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking space {space_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock space: {str(e)}")

    def count_active(self) -> int:
        return self.count(status=SpaceStatus.AVAILABLE.value)
