"""
Repository layer for the coworking platform.

Repositories own all SQLAlchemy queries; services never build queries directly.
"""

from .activity_repository import ActivityRepository
from .analytics_repository import AnalyticsRepository
from .background_job_repository import BackgroundJobRepository
from .booking_repository import BookingRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .settings_repository import SettingsRepository
from .space_repository import SpaceRepository
from .user_repository import UserRepository

__all__ = [
    "ActivityRepository",
    "AnalyticsRepository",
    "BackgroundJobRepository",
    "BaseRepository",
    "BookingRepository",
    "PaymentRepository",
    "RepositoryFactory",
    "SettingsRepository",
    "SpaceRepository",
    "UserRepository",
]
