"""
Credentials: bcrypt password hashes and HS256 access tokens.

A token's claims are ``{"id", "role", "exp"}``. Turning a bearer token
into a ``User`` happens in ``api.dependencies.auth``.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional

from fastapi.security import OAuth2PasswordBearer
import jwt
from passlib.context import CryptContext

from .core.config import settings

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False so a missing header reaches our own 401 problem response
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def _signing_key() -> str:
    assert settings.secret_key is not None
    return settings.secret_key.get_secret_value()


def get_password_hash(password: str) -> str:
    return str(pwd_context.hash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """False on mismatch, and also when the stored hash cannot be parsed."""
    try:
        return bool(pwd_context.verify(plain_password, hashed_password))
    except (ValueError, TypeError) as e:
        logger.error(f"Unreadable password hash: {str(e)}")
        return False


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {**data, "exp": datetime.now(timezone.utc) + lifetime}
    return str(jwt.encode(claims, _signing_key(), algorithm=settings.algorithm))


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify the signature and expiry and return the claims.

    Raises:
        jwt.PyJWTError: the token is malformed, tampered with or expired
    """
    claims: Dict[str, Any] = jwt.decode(token, _signing_key(), algorithms=[settings.algorithm])
    return claims
