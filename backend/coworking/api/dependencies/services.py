# backend/coworking/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each factory builds a service bound to the request's database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.activity_service import ActivityService
from ...services.admin_user_service import AdminUserService
from ...services.analytics_service import AnalyticsService
from ...services.auth_service import AuthService
from ...services.booking_service import BookingService
from ...services.payment_service import PaymentService
from ...services.settings_service import SettingsService
from ...services.space_service import SpaceService
from ...services.user_service import UserService
from .database import get_db


def get_activity_service(db: Session = Depends(get_db)) -> ActivityService:
    return ActivityService(db)


def get_settings_service(db: Session = Depends(get_db)) -> SettingsService:
    return SettingsService(db)


def get_auth_service(
    db: Session = Depends(get_db),
    activity_service: ActivityService = Depends(get_activity_service),
) -> AuthService:
    return AuthService(db, activity_service=activity_service)


def get_user_service(
    db: Session = Depends(get_db),
    activity_service: ActivityService = Depends(get_activity_service),
) -> UserService:
    return UserService(db, activity_service=activity_service)


def get_space_service(db: Session = Depends(get_db)) -> SpaceService:
    return SpaceService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    activity_service: ActivityService = Depends(get_activity_service),
    settings_service: SettingsService = Depends(get_settings_service),
) -> BookingService:
    """
    Get booking service instance.

    The Stripe gateway is created lazily, so cash-only flows never touch it.
    """
    return BookingService(
        db, activity_service=activity_service, settings_service=settings_service
    )


def get_payment_service(
    db: Session = Depends(get_db),
    activity_service: ActivityService = Depends(get_activity_service),
) -> PaymentService:
    return PaymentService(db, activity_service=activity_service)


def get_admin_user_service(
    db: Session = Depends(get_db),
    activity_service: ActivityService = Depends(get_activity_service),
) -> AdminUserService:
    return AdminUserService(db, activity_service=activity_service)


def get_analytics_service(db: Session = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(db)
