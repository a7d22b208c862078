"""
Consumers for ``event:*`` jobs.

Every handler sends at most one email through NotificationService. A
booking or user that has since disappeared is logged and the job is
treated as done; retrying would not bring it back.
"""

from datetime import datetime
import json
import logging
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking
from ..repositories.booking_repository import BookingRepository
from ..repositories.user_repository import UserRepository
from ..services.notification_service import NotificationService

logger = logging.getLogger(__name__)

Payload = Dict[str, Any]
Handler = Callable[[Any, Session], None]
BookingHandler = Callable[[Booking, Payload, Session], None]


def _decode(raw: Any) -> Payload:
    return dict(json.loads(raw)) if isinstance(raw, (str, bytes)) else dict(raw or {})


def _moved_since_scheduled(booking: Booking, payload: Payload) -> bool:
    scheduled_for = payload.get("start_time")
    if not scheduled_for:
        return False
    return ensure_utc(datetime.fromisoformat(scheduled_for)) != ensure_utc(booking.start_time)


def for_booking(purpose: str, skip_if_moved: bool = False) -> Callable[[BookingHandler], Handler]:
    """Load the payload's booking and call the handler only if it still applies."""

    def wrap(handler: BookingHandler) -> Handler:
        def run(raw: Any, db: Session) -> None:
            payload = _decode(raw)
            booking = BookingRepository(db).get_by_id(payload["booking_id"])
            if booking is None:
                logger.warning("Dropping %s: booking %s is gone", purpose, payload["booking_id"])
                return
            if skip_if_moved and _moved_since_scheduled(booking, payload):
                logger.info("Dropping %s: booking %s was rescheduled", purpose, booking.id)
                return
            handler(booking, payload, db)
            logger.info("Sent %s for booking %s", purpose, booking.id)

        run.__name__ = handler.__name__
        return run

    return wrap


@for_booking("confirmation")
def on_booking_created(booking: Booking, payload: Payload, db: Session) -> None:
    NotificationService(db).send_booking_confirmation(
        booking, recurring_count=int(payload.get("recurring_count") or 0)
    )


@for_booking("modification notice")
def on_booking_modified(booking: Booking, payload: Payload, db: Session) -> None:
    NotificationService(db).send_booking_modified(
        booking, price_difference=float(payload.get("price_difference") or 0)
    )


@for_booking("cancellation notice")
def on_booking_cancelled(booking: Booking, payload: Payload, db: Session) -> None:
    NotificationService(db).send_cancellation_notification(
        booking,
        refund_amount=float(payload.get("refund_amount") or 0),
        cancelled_siblings=int(payload.get("cancelled_siblings") or 0),
    )


@for_booking("booking reminder", skip_if_moved=True)
def on_booking_reminder(booking: Booking, payload: Payload, db: Session) -> None:
    NotificationService(db).send_booking_reminder(booking, int(payload.get("hours_before") or 24))


@for_booking("payment reminder", skip_if_moved=True)
def on_payment_reminder(booking: Booking, payload: Payload, db: Session) -> None:
    NotificationService(db).send_payment_reminder(booking, int(payload.get("hours_before") or 24))


def on_payment_received(raw: Any, db: Session) -> None:
    NotificationService(db).send_payment_receipt(_decode(raw)["payment_id"])


def on_account_deletion_requested(raw: Any, db: Session) -> None:
    user_id = _decode(raw)["user_id"]
    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        logger.warning("Dropping deletion notice: user %s is gone", user_id)
        return
    NotificationService(db).send_account_deletion_requested(user)


EVENT_HANDLERS: Dict[str, Handler] = {
    "event:BookingCreated": on_booking_created,
    "event:BookingModified": on_booking_modified,
    "event:BookingCancelled": on_booking_cancelled,
    "event:BookingReminder": on_booking_reminder,
    "event:PaymentReminder": on_payment_reminder,
    "event:PaymentReceived": on_payment_received,
    "event:AccountDeletionRequested": on_account_deletion_requested,
}


def process_event(job_type: str, payload: Any, db: Session) -> bool:
    """
    Run the handler for an ``event:*`` job.

    False means the job is not an event at all. Events without a handler
    are logged and count as consumed.
    """
    if not job_type.startswith("event:"):
        return False
    handler = EVENT_HANDLERS.get(job_type)
    if handler is None:
        logger.warning("No handler registered for %s", job_type)
        return True
    handler(payload, db)
    return True
