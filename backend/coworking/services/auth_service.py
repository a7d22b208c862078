# backend/coworking/services/auth_service.py
"""
Authentication Service for the coworking platform.

Handles registration, credential checks and token issuance. Routes stay
thin: they call into this service and translate domain exceptions.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..auth import create_access_token, get_password_hash, verify_password
from ..core.enums import ActivityType, UserRole
from ..core.exceptions import (
    ConflictException,
    ForbiddenException,
    RepositoryException,
    UnauthorizedException,
)
from ..core.timezone_utils import utcnow
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .activity_service import ActivityService
from .base import BaseService

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"


class AuthService(BaseService):
    """Service for handling authentication operations."""

    def __init__(self, db: Session, activity_service: Optional[ActivityService] = None):
        super().__init__(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.activity_service = activity_service or ActivityService(db)

    @BaseService.measure_operation("register_user")
    def register(self, username: str, email: str, password: str) -> User:
        """
        Register a new member account.

        Raises:
            ConflictException: If the email or username is already taken
        """
        email = email.strip().lower()
        username = username.strip()
        self.log_operation("register_user", email=email)

        if self.user_repository.email_taken(email):
            self.logger.warning(f"Registration failed - email already exists: {email}")
            raise ConflictException("Email already registered", code="EMAIL_TAKEN")
        if self.user_repository.username_taken(username):
            raise ConflictException("Username already taken", code="USERNAME_TAKEN")

        hashed_password = get_password_hash(password)
        try:
            with self.transaction():
                user: User = self.user_repository.create(
                    username=username,
                    email=email,
                    hashed_password=hashed_password,
                    role=UserRole.MEMBER.value,
                )
        except RepositoryException as e:
            # Lost a race with a concurrent registration
            self.logger.warning(f"Registration insert failed for {email}: {str(e)}")
            raise ConflictException("Email or username already registered", code="USER_EXISTS")

        self.logger.info(f"Registered user {user.id}")
        return user

    def authenticate_user(self, email: str, password: str) -> Optional[User]:
        """Return the user when the credentials match, otherwise None."""
        user = self.user_repository.get_by_email(email)
        if not user:
            self.logger.warning(f"Authentication failed - user not found: {email}")
            return None
        if not verify_password(password, user.hashed_password):
            self.logger.warning(f"Authentication failed - incorrect password: {email}")
            return None
        return user

    @BaseService.measure_operation("login")
    def login(self, email: str, password: str) -> User:
        """
        Verify credentials for an active account and record the login.

        Raises:
            UnauthorizedException: Unknown email or wrong password
            ForbiddenException: The account is inactive or suspended
        """
        user = self.authenticate_user(email, password)
        if user is None:
            raise UnauthorizedException(INVALID_CREDENTIALS_MESSAGE, code="INVALID_CREDENTIALS")
        if not user.is_active:
            self.logger.warning(f"Login refused for {user.status} account {user.id}")
            raise ForbiddenException(f"Account is {user.status}", code="ACCOUNT_NOT_ACTIVE")

        with self.transaction():
            user.last_login_at = utcnow()

        self.activity_service.log(user.id, ActivityType.LOGIN, "Logged in")
        return user

    @staticmethod
    def create_token(user: User) -> str:
        return create_access_token({"id": user.id, "role": user.role})
