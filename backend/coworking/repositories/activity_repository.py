"""Activity log data access. Rows are only ever inserted."""

from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.activity import Activity
from .base_repository import BaseRepository


class ActivityRepository(BaseRepository[Activity]):
    def __init__(self, db: Session):
        super().__init__(db, Activity)

    def get_recent_for_user(self, user_id: str, limit: int = 50) -> List[Activity]:
        try:
            return (
                self.db.query(Activity)
                .filter(Activity.user_id == user_id)
                .order_by(Activity.created_at.desc(), Activity.id.desc())
                .limit(limit)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting activities for {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to get activities: {str(e)}")
