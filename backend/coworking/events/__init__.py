"""Domain events published to the background job queue."""

from .booking_events import (
    AccountDeletionRequested,
    BookingCancelled,
    BookingCreated,
    BookingModified,
    BookingReminder,
    DomainEvent,
    PaymentReceived,
    PaymentReminder,
)
from .publisher import EventPublisher

__all__ = [
    "AccountDeletionRequested",
    "BookingCancelled",
    "BookingCreated",
    "BookingModified",
    "BookingReminder",
    "DomainEvent",
    "EventPublisher",
    "PaymentReceived",
    "PaymentReminder",
]
