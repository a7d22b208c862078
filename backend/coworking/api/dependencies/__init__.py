"""
Dependency injection for FastAPI routes.
"""

from .auth import get_current_user, require_admin
from .database import get_db
from .services import (
    get_activity_service,
    get_admin_user_service,
    get_analytics_service,
    get_auth_service,
    get_booking_service,
    get_payment_service,
    get_settings_service,
    get_space_service,
    get_user_service,
)

__all__ = [
    "get_activity_service",
    "get_admin_user_service",
    "get_analytics_service",
    "get_auth_service",
    "get_booking_service",
    "get_current_user",
    "get_db",
    "get_payment_service",
    "get_settings_service",
    "get_space_service",
    "get_user_service",
    "require_admin",
]
