"""
Member self-service: profile, password, activity feed, account deletion
requests and the member dashboard.
"""

from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..auth import get_password_hash, verify_password
from ..core.constants import RECENT_ACTIVITY_LIMIT, RECENT_BOOKINGS_LIMIT
from ..core.enums import ActivityType
from ..core.exceptions import BusinessRuleException, ConflictException, ValidationException
from ..core.timezone_utils import ensure_utc, utcnow
from ..domain.pricing import duration_hours
from ..events import AccountDeletionRequested
from ..models.activity import Activity
from ..models.booking import Booking
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .activity_service import ActivityService
from .base import BaseService

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "username",
    "email",
    "phone",
    "company",
    "billing_address",
    "notification_preferences",
)


class UserService(BaseService):
    def __init__(self, db: Session, activity_service: Optional[ActivityService] = None):
        super().__init__(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.activity_service = activity_service or ActivityService(db)

    @BaseService.measure_operation("update_profile")
    def update_profile(self, user: User, data: Dict[str, Any]) -> User:
        """
        Apply profile changes.

        Raises:
            ConflictException: The new email or username belongs to someone else
        """
        changes = {key: value for key, value in data.items() if key in PROFILE_FIELDS}
        if "email" in changes:
            changes["email"] = str(changes["email"]).strip().lower()
            if self.user_repository.email_taken(changes["email"], exclude_user_id=user.id):
                raise ConflictException("Email already in use", code="EMAIL_TAKEN")
        if "username" in changes:
            changes["username"] = str(changes["username"]).strip()
            if not changes["username"]:
                raise ValidationException("Username cannot be empty")
            if self.user_repository.username_taken(changes["username"], exclude_user_id=user.id):
                raise ConflictException("Username already taken", code="USERNAME_TAKEN")

        if not changes:
            return user

        with self.transaction():
            updated = self.user_repository.update(user.id, **changes)

        self.activity_service.log(
            user.id,
            ActivityType.PROFILE_UPDATE,
            "Profile updated",
            {"fields": sorted(changes)},
        )
        return updated or user

    @BaseService.measure_operation("change_password")
    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.hashed_password):
            raise ValidationException("Current password is incorrect", code="INVALID_PASSWORD")
        if current_password == new_password:
            raise ValidationException("New password must differ from the current password")

        with self.transaction():
            self.user_repository.update(user.id, hashed_password=get_password_hash(new_password))

        self.activity_service.log(user.id, ActivityType.SECURITY, "Password changed")

    def get_activities(self, user: User, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Activity]:
        return self.activity_service.get_recent(user.id, limit=limit)

    @BaseService.measure_operation("request_account_deletion")
    def request_account_deletion(self, user: User) -> Dict[str, Any]:
        if user.deletion_requested_at is not None:
            raise BusinessRuleException(
                "Account deletion already requested", code="DELETION_ALREADY_REQUESTED"
            )
        requested_at = utcnow()
        with self.transaction():
            self.user_repository.update(user.id, deletion_requested_at=requested_at)

        notification = self.publish_event(
            AccountDeletionRequested(user_id=user.id, requested_at=requested_at)
        )
        activity = self.activity_service.log(
            user.id, ActivityType.ACCOUNT, "Account deletion requested"
        )
        return {
            "deletion_requested_at": requested_at,
            "side_effects": {"notification": notification.value, "activity_log": activity.value},
        }

    @BaseService.measure_operation("cancel_account_deletion")
    def cancel_account_deletion(self, user: User) -> None:
        if user.deletion_requested_at is None:
            raise BusinessRuleException(
                "No account deletion request is pending", code="NO_DELETION_REQUEST"
            )
        with self.transaction():
            self.user_repository.update(user.id, deletion_requested_at=None)
        self.activity_service.log(user.id, ActivityType.ACCOUNT, "Account deletion cancelled")

    @BaseService.measure_operation("get_dashboard_stats")
    def get_dashboard_stats(self, user: User) -> Dict[str, Any]:
        """Active bookings, hours booked (confirmed and completed) and total spent."""
        hours = sum(
            (
                duration_hours(ensure_utc(b.start_time), ensure_utc(b.end_time))
                for b in self.booking_repository.get_user_confirmed_and_completed(user.id)
            ),
            Decimal("0"),
        )
        return {
            "active_bookings": self.booking_repository.count_active_for_user(user.id),
            "total_hours": round(float(hours), 2),
            "total_spent": self.payment_repository.total_succeeded_for_user(user.id),
        }

    def get_recent_bookings(self, user: User, limit: int = RECENT_BOOKINGS_LIMIT) -> List[Booking]:
        return self.booking_repository.get_user_bookings(user.id, limit=limit)
