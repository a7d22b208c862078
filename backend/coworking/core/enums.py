# backend/coworking/core/enums.py
"""
Core enums for the coworking platform.

Values are stored as plain strings in the database; the enums give the
service layer and request schemas a single source of truth.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"
    STAFF = "staff"


class MembershipType(str, Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class UserStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class SpaceType(str, Enum):
    DESK = "desk"
    OFFICE = "office"
    MEETING_ROOM = "meeting_room"
    CONFERENCE_ROOM = "conference_room"


class SpaceStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


class BookingStatus(str, Enum):
    """
    Booking lifecycle.

    pending -> confirmed -> completed, with cancelled reachable from
    pending or confirmed. Transitions never go backwards.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentMethod(str, Enum):
    CARD = "card"
    CASH = "cash"


class BookingPaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class ActivityType(str, Enum):
    LOGIN = "login"
    SECURITY = "security"
    PAYMENT = "payment"
    BOOKING = "booking"
    PROFILE_UPDATE = "profile_update"
    ACCOUNT = "account"


class SideEffectOutcome(str, Enum):
    """Outcome tag for a best-effort action that runs after commit."""

    QUEUED = "queued"
    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"  # dead letter


# Bookings in these states occupy their time range
BLOCKING_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)
