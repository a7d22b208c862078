# backend/coworking/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

``get_current_user`` resolves the bearer token to an active ``User``;
``require_admin`` additionally demands the admin role.
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
import jwt
from sqlalchemy.orm import Session

from ...auth import decode_access_token, oauth2_scheme
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": message, "code": "NOT_AUTHENTICATED"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to an active user.

    Raises:
        HTTPException: 401 for a missing, expired or invalid token and for
            accounts that no longer exist or are not active
    """
    if not token:
        raise _unauthorized("Not authenticated")

    try:
        payload = decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.PyJWTError as e:
        logger.info(f"Rejected access token: {str(e)}")
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise _unauthorized("Could not validate credentials")

    user = RepositoryFactory.create_user_repository(db).get_by_id(user_id)
    if user is None:
        raise _unauthorized("User not found")
    if not user.is_active:
        raise _unauthorized("Account is not active")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Admin access required", "code": "ADMIN_REQUIRED"},
        )
    return current_user
