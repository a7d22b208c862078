"""
Events raised by the booking, payment and account services.

They carry ids rather than ORM objects; the handlers reload rows when the
job runs, so an event stays meaningful after the request session closes.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class DomainEvent:
    @classmethod
    def job_type(cls) -> str:
        return f"event:{cls.__name__}"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BookingCreated(DomainEvent):
    booking_id: str
    user_id: str
    created_at: datetime
    # Siblings created alongside a recurring booking
    recurring_count: int = 0


@dataclass
class BookingModified(DomainEvent):
    booking_id: str
    user_id: str
    modified_at: datetime
    price_difference: float = 0.0


@dataclass
class BookingCancelled(DomainEvent):
    booking_id: str
    user_id: str
    cancelled_at: datetime
    refund_amount: float = 0.0
    cancelled_siblings: int = 0


@dataclass
class BookingReminder(DomainEvent):
    """Due ``hours_before`` the start; ``start_time`` lets the handler spot a moved booking."""

    booking_id: str
    hours_before: int
    start_time: Optional[datetime] = None


@dataclass
class PaymentReminder(DomainEvent):
    """Same schedule as BookingReminder, for cash bookings not yet paid."""

    booking_id: str
    hours_before: int
    start_time: Optional[datetime] = None


@dataclass
class PaymentReceived(DomainEvent):
    payment_id: str
    booking_id: str
    amount: float
    paid_at: Optional[datetime] = None


@dataclass
class AccountDeletionRequested(DomainEvent):
    user_id: str
    requested_at: datetime
