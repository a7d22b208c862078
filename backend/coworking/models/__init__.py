"""
Database models for the coworking platform.

Importing this package registers every table on ``Base.metadata``.
"""

from .activity import Activity
from .background_job import BackgroundJob
from .booking import Booking
from .payment import Payment
from .setting import Setting
from .space import Space
from .user import User

__all__ = [
    "Activity",
    "BackgroundJob",
    "Booking",
    "Payment",
    "Setting",
    "Space",
    "User",
]
