# backend/coworking/models/booking.py
"""
Booking model for the coworking platform.

A booking reserves one space for a half-open interval [start_time, end_time).
Related rows are referenced by id only; lookups go through repositories.
Bookings created by a recurring series share ``recurring_group_id``.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func
import ulid

from ..core.enums import BLOCKING_BOOKING_STATUSES, BookingPaymentStatus, BookingStatus
from ..database import Base

logger = logging.getLogger(__name__)


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    user_id = Column(String(26), ForeignKey("users.id"), nullable=False, index=True)
    space_id = Column(String(26), ForeignKey("spaces.id"), nullable=False)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value, index=True)
    payment_method = Column(String(10), nullable=False)
    payment_status = Column(
        String(32), nullable=False, default=BookingPaymentStatus.PENDING.value
    )
    total_amount = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)

    recurring_group_id = Column(String(26), nullable=True, index=True)

    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("ix_bookings_space_time", "space_id", "start_time", "end_time"),
        CheckConstraint("end_time > start_time", name="check_time_order"),
        CheckConstraint("total_amount >= 0", name="check_amount_non_negative"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="ck_bookings_status",
        ),
        CheckConstraint("payment_method IN ('card', 'cash')", name="ck_bookings_payment_method"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING.value
        if not self.payment_status:
            self.payment_status = BookingPaymentStatus.PENDING.value
        logger.info(f"Creating booking for user {self.user_id} on space {self.space_id}")

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: user={self.user_id}, space={self.space_id}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    def cancel(self, reason: Optional[str] = None) -> None:
        """Cancel this booking."""
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancellation_reason = reason
        logger.info(f"Booking {self.id} cancelled")

    def confirm(self) -> None:
        self.status = BookingStatus.CONFIRMED.value

    def complete(self) -> None:
        """Mark booking as completed."""
        self.status = BookingStatus.COMPLETED.value
        self.completed_at = datetime.now(timezone.utc)
        logger.info(f"Booking {self.id} marked as completed")

    @property
    def is_cancellable(self) -> bool:
        return self.status in BLOCKING_BOOKING_STATUSES

    @property
    def is_modifiable(self) -> bool:
        return self.status in BLOCKING_BOOKING_STATUSES
