"""
Admin user management.

Administrators can change members' role, membership and status. Other
administrators are off limits, and nobody with active bookings can be
deleted.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.enums import ActivityType, MembershipType, UserRole, UserStatus
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    RepositoryException,
    ValidationException,
)
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .activity_service import ActivityService
from .base import BaseService

logger = logging.getLogger(__name__)

ADMIN_EDITABLE_FIELDS = (
    "username",
    "email",
    "role",
    "membership_type",
    "status",
    "phone",
    "company",
)


def _check_choice(field: str, value: Any, allowed: List[str]) -> None:
    if value not in allowed:
        raise ValidationException(
            f"Invalid {field}: {value}. Expected one of {', '.join(allowed)}",
            code="INVALID_CHOICE",
        )


class AdminUserService(BaseService):
    def __init__(self, db: Session, activity_service: Optional[ActivityService] = None):
        super().__init__(db)
        self.repository = RepositoryFactory.create_user_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.activity_service = activity_service or ActivityService(db)

    def list_users(self, **filters: Any) -> Tuple[List[User], int]:
        return self.repository.list_users(**filters)

    def get_user(self, user_id: str) -> User:
        user = self.repository.get_by_id(user_id)
        if user is None:
            raise NotFoundException("User not found", code="USER_NOT_FOUND")
        return user

    def _get_modifiable(self, admin: User, user_id: str) -> User:
        user = self.get_user(user_id)
        if user.is_admin and user.id != admin.id:
            raise ForbiddenException("Cannot modify another administrator")
        return user

    @BaseService.measure_operation("admin_update_user")
    def update_user(self, admin: User, user_id: str, data: Dict[str, Any]) -> User:
        user = self._get_modifiable(admin, user_id)
        changes = {key: value for key, value in data.items() if key in ADMIN_EDITABLE_FIELDS}

        if "role" in changes:
            _check_choice("role", changes["role"], [r.value for r in UserRole])
        if "membership_type" in changes:
            _check_choice(
                "membership_type", changes["membership_type"], [m.value for m in MembershipType]
            )
        if "status" in changes:
            _check_choice("status", changes["status"], [s.value for s in UserStatus])
        if "email" in changes:
            changes["email"] = str(changes["email"]).strip().lower()
            if self.repository.email_taken(changes["email"], exclude_user_id=user.id):
                raise ConflictException("Email already in use", code="EMAIL_TAKEN")
        if "username" in changes and self.repository.username_taken(
            changes["username"], exclude_user_id=user.id
        ):
            raise ConflictException("Username already taken", code="USERNAME_TAKEN")
        demoting = changes.get("role", UserRole.ADMIN.value) != UserRole.ADMIN.value
        if user.id == admin.id and demoting:
            raise BusinessRuleException("Administrators cannot demote themselves")

        with self.transaction():
            updated = self.repository.update(user.id, **changes)

        self.activity_service.log(
            user.id,
            ActivityType.ACCOUNT,
            "Account updated by administrator",
            {"admin_id": admin.id, "fields": sorted(changes)},
        )
        return updated or user

    @BaseService.measure_operation("admin_update_user_status")
    def update_status(self, admin: User, user_id: str, status: str) -> User:
        _check_choice("status", status, [s.value for s in UserStatus])
        user = self._get_modifiable(admin, user_id)
        if user.id == admin.id and status != UserStatus.ACTIVE.value:
            raise BusinessRuleException("Administrators cannot deactivate themselves")
        with self.transaction():
            user.status = status
        self.activity_service.log(
            user.id,
            ActivityType.ACCOUNT,
            f"Account status set to {status}",
            {"admin_id": admin.id},
        )
        return user

    @BaseService.measure_operation("admin_delete_user")
    def delete_user(self, admin: User, user_id: str) -> None:
        user = self.get_user(user_id)
        if user.is_admin:
            raise ForbiddenException("Administrator accounts cannot be deleted")
        if self.booking_repository.count_active_for_user(user.id):
            raise BusinessRuleException(
                "Cannot delete a user with active bookings", code="USER_HAS_BOOKINGS"
            )
        try:
            with self.transaction():
                self.repository.delete(user.id)
        except RepositoryException as e:
            self.logger.warning(f"Could not delete user {user.id}: {str(e)}")
            raise ConflictException(
                "User has booking or payment history and cannot be deleted; suspend instead",
                code="USER_HAS_HISTORY",
            )
        self.log_operation("user_deleted", user_id=user.id, admin_id=admin.id)
