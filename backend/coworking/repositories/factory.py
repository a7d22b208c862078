# backend/coworking/repositories/factory.py
"""
One place to build repositories.

Services ask the factory rather than importing repository classes, which
keeps the import graph acyclic (repositories are imported lazily) and
gives tests a single seam to patch.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

if TYPE_CHECKING:
    from .activity_repository import ActivityRepository
    from .analytics_repository import AnalyticsRepository
    from .background_job_repository import BackgroundJobRepository
    from .booking_repository import BookingRepository
    from .payment_repository import PaymentRepository
    from .settings_repository import SettingsRepository
    from .space_repository import SpaceRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)

    @staticmethod
    def create_space_repository(db: Session) -> "SpaceRepository":
        from .space_repository import SpaceRepository

        return SpaceRepository(db)

    @staticmethod
    def create_booking_repository(db: Session) -> "BookingRepository":
        from .booking_repository import BookingRepository

        return BookingRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_activity_repository(db: Session) -> "ActivityRepository":
        from .activity_repository import ActivityRepository

        return ActivityRepository(db)

    @staticmethod
    def create_settings_repository(db: Session) -> "SettingsRepository":
        from .settings_repository import SettingsRepository

        return SettingsRepository(db)

    # Read-only aggregate queries for the admin dashboard and analytics
    @staticmethod
    def create_analytics_repository(db: Session) -> "AnalyticsRepository":
        from .analytics_repository import AnalyticsRepository

        return AnalyticsRepository(db)

    @staticmethod
    def create_background_job_repository(db: Session) -> "BackgroundJobRepository":
        from .background_job_repository import BackgroundJobRepository

        return BackgroundJobRepository(db)
