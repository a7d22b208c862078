# backend/coworking/schemas/auth.py
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import EmailStr, Field, field_validator

from .base import StandardizedModel, StrictRequestModel


class UserRegister(StrictRequestModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("username")
    @classmethod
    def clean_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v


class UserLogin(StrictRequestModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserResponse(StandardizedModel):
    """Public view of an account; never carries the password hash."""

    id: str
    username: str
    email: str
    role: str
    membership_type: str
    status: str
    phone: Optional[str] = None
    company: Optional[str] = None
    billing_address: Optional[Dict[str, Any]] = None
    notification_preferences: Optional[Dict[str, Any]] = None
    two_factor_enabled: bool = False
    last_login_at: Optional[datetime] = None
    deletion_requested_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class Token(StandardizedModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
