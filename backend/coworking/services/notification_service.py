# backend/coworking/services/notification_service.py
"""
Notification Service for the coworking platform.

Renders and sends the transactional emails triggered by booking, payment
and account events. Called from event handlers on the background worker,
so a delivery failure raises and the job is retried with backoff.

Each ``send_*`` method returns True when an email was handed to the
provider and False when delivery was skipped (email disabled, or the
booking no longer needs the message).
"""

from decimal import Decimal
import logging
from typing import Any, Dict, Optional

from jinja2 import TemplateNotFound
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import ACCOUNT_DELETION_GRACE_DAYS
from ..core.enums import BookingStatus, PaymentMethod, PaymentStatus
from ..core.exceptions import ServiceException
from ..core.timezone_utils import ensure_utc
from ..models.booking import Booking
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .email import EmailService
from .email_subjects import EmailSubject
from .settings_service import SettingsService
from .template_registry import TemplateRegistry
from .template_service import TemplateService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
    ):
        super().__init__(db)
        self._email_service = email_service
        self.template_service = template_service or TemplateService(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.space_repository = RepositoryFactory.create_space_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.settings_service = SettingsService(db)

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = EmailService(self.db)
        return self._email_service

    def _email_enabled(self) -> bool:
        if not settings.email_enabled:
            return False
        return self.settings_service.email_notifications_enabled()

    def _booking_context(self, booking: Booking, user: User) -> Dict[str, Any]:
        space = self.space_repository.get_by_id(booking.space_id)
        return {
            "booking_id": booking.id,
            "username": user.username,
            "space_name": space.name if space else "your workspace",
            "start_time": ensure_utc(booking.start_time),
            "end_time": ensure_utc(booking.end_time),
            "total_amount": booking.total_amount,
            "payment_method": booking.payment_method,
        }

    def _deliver(
        self, user: User, subject: str, template: TemplateRegistry, context: Dict[str, Any]
    ) -> bool:
        if not self._email_enabled():
            self.logger.info(
                f"Email disabled; skipping '{subject}' for user {user.id}",
                extra={"user_id": user.id},
            )
            return False
        try:
            html = self.template_service.render_template(template.value, context=context)
        except TemplateNotFound as e:
            raise ServiceException(f"Email template error: {str(e)}")
        self.email_service.send_email(to_email=user.email, subject=subject, html_content=html)
        return True

    def _owner(self, booking: Booking) -> Optional[User]:
        user = self.user_repository.get_by_id(booking.user_id)
        if user is None:
            self.logger.warning(f"User {booking.user_id} not found for booking {booking.id}")
        return user

    @BaseService.measure_operation("send_booking_confirmation")
    def send_booking_confirmation(self, booking: Booking, recurring_count: int = 0) -> bool:
        user = self._owner(booking)
        if user is None:
            return False
        subject = (
            EmailSubject.booking_initiated()
            if booking.payment_method == PaymentMethod.CASH.value
            else EmailSubject.booking_confirmed()
        )
        context = self._booking_context(booking, user)
        context["recurring_count"] = recurring_count
        return self._deliver(user, subject, TemplateRegistry.BOOKING_CONFIRMATION, context)

    @BaseService.measure_operation("send_booking_modified")
    def send_booking_modified(self, booking: Booking, price_difference: float) -> bool:
        user = self._owner(booking)
        if user is None:
            return False
        context = self._booking_context(booking, user)
        context["price_difference"] = float(price_difference)
        return self._deliver(
            user, EmailSubject.booking_modified(), TemplateRegistry.BOOKING_MODIFIED, context
        )

    @BaseService.measure_operation("send_cancellation_notification")
    def send_cancellation_notification(
        self, booking: Booking, refund_amount: float, cancelled_siblings: int = 0
    ) -> bool:
        user = self._owner(booking)
        if user is None:
            return False
        context = self._booking_context(booking, user)
        context["refund_amount"] = float(refund_amount or 0)
        context["cancelled_siblings"] = cancelled_siblings
        return self._deliver(
            user, EmailSubject.booking_cancelled(), TemplateRegistry.BOOKING_CANCELLED, context
        )

    @BaseService.measure_operation("send_booking_reminder")
    def send_booking_reminder(self, booking: Booking, hours_before: int) -> bool:
        if booking.status not in (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value):
            self.logger.info(
                f"Skipping reminder for booking {booking.id} in status {booking.status}"
            )
            return False
        user = self._owner(booking)
        if user is None:
            return False
        context = self._booking_context(booking, user)
        context["hours_before"] = hours_before
        return self._deliver(
            user,
            EmailSubject.booking_reminder(hours_before),
            TemplateRegistry.BOOKING_REMINDER,
            context,
        )

    @BaseService.measure_operation("send_payment_reminder")
    def send_payment_reminder(self, booking: Booking, hours_before: int) -> bool:
        pending = self.payment_repository.get_pending_for_booking(booking.id)
        if booking.status == BookingStatus.CANCELLED.value or not pending:
            self.logger.info(f"Skipping payment reminder for booking {booking.id}; nothing due")
            return False
        user = self._owner(booking)
        if user is None:
            return False
        context = self._booking_context(booking, user)
        context["hours_before"] = hours_before
        context["total_amount"] = sum((Decimal(str(p.amount)) for p in pending), Decimal("0"))
        return self._deliver(
            user, EmailSubject.payment_reminder(), TemplateRegistry.PAYMENT_REMINDER, context
        )

    @BaseService.measure_operation("send_payment_receipt")
    def send_payment_receipt(self, payment_id: str) -> bool:
        payment = self.payment_repository.get_by_id(payment_id)
        if payment is None or payment.status != PaymentStatus.SUCCEEDED.value:
            return False
        user = self.user_repository.get_by_id(payment.user_id)
        if user is None:
            return False
        context = {
            "username": user.username,
            "booking_id": payment.booking_id,
            "amount": payment.amount,
        }
        return self._deliver(
            user, EmailSubject.payment_receipt(), TemplateRegistry.PAYMENT_RECEIPT, context
        )

    @BaseService.measure_operation("send_account_deletion_requested")
    def send_account_deletion_requested(self, user: User) -> bool:
        context = {"username": user.username, "grace_days": ACCOUNT_DELETION_GRACE_DAYS}
        return self._deliver(
            user,
            EmailSubject.account_deletion_requested(),
            TemplateRegistry.ACCOUNT_DELETION_REQUESTED,
            context,
        )
