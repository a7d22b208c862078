"""User data access."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_by_email(self, email: str) -> Optional[User]:
        try:
            return (
                self.db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting user by email: {str(e)}")
            raise RepositoryException(f"Failed to retrieve user: {str(e)}")

    def get_by_username(self, username: str) -> Optional[User]:
        return self.find_one_by(username=username)

    def email_taken(self, email: str, exclude_user_id: Optional[str] = None) -> bool:
        user = self.get_by_email(email)
        return user is not None and user.id != exclude_user_id

    def username_taken(self, username: str, exclude_user_id: Optional[str] = None) -> bool:
        user = self.get_by_username(username)
        return user is not None and user.id != exclude_user_id

    def list_users(
        self,
        *,
        search: Optional[str] = None,
        role: Optional[str] = None,
        status: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[User], int]:
        """Filtered, newest-first page of users plus the unpaginated total."""
        try:
            query = self.db.query(User)
            if search:
                pattern = f"%{search.strip().lower()}%"
                query = query.filter(
                    or_(
                        func.lower(User.username).like(pattern),
                        func.lower(User.email).like(pattern),
                    )
                )
            if role:
                query = query.filter(User.role == role)
            if status:
                query = query.filter(User.status == status)
            total = query.count()
            users = query.order_by(User.created_at.desc()).offset(skip).limit(limit).all()
            return users, total
        except SQLAlchemyError as e:
            self.logger.error(f"Error listing users: {str(e)}")
            raise RepositoryException(f"Failed to list users: {str(e)}")
