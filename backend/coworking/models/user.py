# backend/coworking/models/user.py
"""
User model for the coworking platform.

Members and administrators share one table and are told apart by ``role``.
Payment identity (``stripe_customer_id``) is cached here after the first
card booking so the customer is reused afterwards.
"""

import logging
from typing import Any

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String
from sqlalchemy.sql import func
import ulid

from ..core.enums import UserRole, UserStatus
from ..database import Base
from .types import JSONType

logger = logging.getLogger(__name__)


class User(Base):
    """
    Account used for authentication and booking ownership.

    Attributes:
        id: ULID primary key
        username: Unique display/login name
        email: Unique email address used for login
        hashed_password: Bcrypt hashed password
        role: admin, member or staff
        membership_type: basic, premium or enterprise
        status: active, inactive or suspended
        deletion_requested_at: Set while an account deletion request is pending
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)

    role = Column(String(20), nullable=False, default=UserRole.MEMBER.value)
    membership_type = Column(String(20), nullable=False, default="basic")
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value, index=True)

    phone = Column(String(32), nullable=True)
    company = Column(String(255), nullable=True)
    billing_address = Column(JSONType, nullable=True)
    notification_preferences = Column(JSONType, nullable=True)
    two_factor_enabled = Column(Boolean, nullable=False, default=False)

    stripe_customer_id = Column(String(255), nullable=True, unique=True)

    last_login_at = Column(DateTime(timezone=True), nullable=True)
    deletion_requested_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'member', 'staff')", name="ck_users_role"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')",
            name="ck_users_status",
        ),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.role:
            self.role = UserRole.MEMBER.value
        if not self.status:
            self.status = UserStatus.ACTIVE.value
        if not self.membership_type:
            self.membership_type = "basic"

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role})>"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE.value
