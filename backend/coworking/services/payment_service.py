# backend/coworking/services/payment_service.py
"""
Payment Service for the coworking platform.

Member-facing checkout and payment intents, Stripe webhook processing,
and the admin payment back-office (listing, stats, marking cash paid,
refunds). Refund adjustments queued by booking changes are applied here
too, both inline and from the job queue.
"""

from datetime import date, timedelta
from decimal import Decimal
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
import stripe

from ..core.constants import DEFAULT_PAYMENT_STATS_DAYS
from ..core.enums import (
    ActivityType,
    BookingPaymentStatus,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
)
from ..core.exceptions import (
    BusinessRuleException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from ..core.timezone_utils import utcnow
from ..domain.pricing import to_money
from ..events import PaymentReceived
from ..models.booking import Booking
from ..models.payment import Payment
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from .activity_service import ActivityService
from .base import BaseService
from .booking_service import BookingService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

NOTHING_TO_PAY_MESSAGE = "Booking not found or already paid"


class PaymentService(BaseService):
    def __init__(
        self,
        db: Session,
        stripe_service: Optional[StripeService] = None,
        activity_service: Optional[ActivityService] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_payment_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)
        self.space_repository = RepositoryFactory.create_space_repository(db)
        self.analytics_repository = RepositoryFactory.create_analytics_repository(db)
        self._stripe_service = stripe_service
        self.activity_service = activity_service or ActivityService(db)

    @property
    def stripe_service(self) -> StripeService:
        if self._stripe_service is None:
            self._stripe_service = StripeService(self.db)
        return self._stripe_service

    # ========== Member checkout ==========

    def _payable(self, user: User, booking_id: str) -> Tuple[Booking, Payment]:
        booking = self.booking_repository.get_for_user(booking_id, user.id)
        if booking is None or booking.status == BookingStatus.CANCELLED.value:
            raise NotFoundException(NOTHING_TO_PAY_MESSAGE, code="NOTHING_TO_PAY")
        payment = self.repository.get_latest_for_booking(
            booking.id, status=PaymentStatus.PENDING.value
        )
        if payment is None or payment.payment_method != PaymentMethod.CARD.value:
            raise NotFoundException(NOTHING_TO_PAY_MESSAGE, code="NOTHING_TO_PAY")
        return booking, payment

    @BaseService.measure_operation("create_payment_intent")
    def create_payment_intent(self, user: User, booking_id: str) -> Dict[str, Any]:
        booking, payment = self._payable(user, booking_id)
        customer_id = self.stripe_service.get_or_create_customer(user)
        intent = self.stripe_service.create_payment_intent(
            booking_id=booking.id,
            amount=to_money(payment.amount),
            customer_id=customer_id,
            description=payment.description,
            idempotency_key=f"booking-pay-{payment.id}-{to_money(payment.amount)}",
        )
        with self.transaction():
            payment.stripe_payment_intent_id = intent.id
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "amount": float(payment.amount),
        }

    @BaseService.measure_operation("create_checkout_session")
    def create_checkout_session(self, user: User, booking_id: str) -> Dict[str, Any]:
        booking, _payment = self._payable(user, booking_id)
        space = self.space_repository.get_by_id(booking.space_id)
        if space is None:
            raise NotFoundException("Workspace not found", code="SPACE_NOT_FOUND")
        booking_service = BookingService(self.db, stripe_service=self.stripe_service)
        return booking_service.start_checkout(user, booking, space)

    def list_payment_methods(self, user: User) -> List[Dict[str, Any]]:
        if not user.stripe_customer_id:
            return []
        return self.stripe_service.list_payment_methods(user.stripe_customer_id)

    def payment_history(self, user: User) -> List[Payment]:
        return self.repository.get_user_history(user.id)

    # ========== Webhooks ==========

    @BaseService.measure_operation("handle_webhook")
    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a Stripe delivery and apply it.

        Raises:
            ValidationException: The payload or signature is invalid
        """
        try:
            event = self.stripe_service.construct_event(payload, signature)
        except stripe.SignatureVerificationError as e:
            self.logger.warning(f"Invalid webhook signature: {str(e)}")
            raise ValidationException("Invalid webhook signature", code="INVALID_SIGNATURE")
        except ValueError as e:
            self.logger.warning(f"Invalid webhook payload: {str(e)}")
            raise ValidationException("Invalid webhook payload", code="INVALID_PAYLOAD")
        return self.handle_webhook_event(event)

    def handle_webhook_event(self, event: Any) -> Dict[str, Any]:
        event_type = event["type"]
        obj = event["data"]["object"]
        self.logger.info(f"Processing webhook event: {event_type}")

        if event_type == "payment_intent.succeeded":
            handled = self._on_intent_succeeded(obj)
        elif event_type == "payment_intent.payment_failed":
            handled = self._on_intent_failed(obj)
        elif event_type == "checkout.session.completed":
            handled = self._on_checkout_completed(obj)
        else:
            self.logger.info(f"Unhandled webhook event type: {event_type}")
            return {"received": True, "event_type": event_type, "handled": False}
        return {"received": True, "event_type": event_type, "handled": handled}

    @staticmethod
    def _metadata_booking_id(obj: Any) -> Optional[str]:
        metadata = obj.get("metadata") or {}
        return metadata.get("booking_id")

    def _resolve_payment(
        self,
        *,
        payment_intent_id: Optional[str] = None,
        session_id: Optional[str] = None,
        booking_id: Optional[str] = None,
    ) -> Optional[Payment]:
        payment = None
        if payment_intent_id:
            payment = self.repository.get_by_payment_intent(payment_intent_id)
        if payment is None and session_id:
            payment = self.repository.get_by_session(session_id)
        if payment is None and booking_id:
            payment = self.repository.get_latest_for_booking(
                booking_id, status=PaymentStatus.PENDING.value
            )
        return payment

    def _on_intent_succeeded(self, intent: Any) -> bool:
        payment = self._resolve_payment(
            payment_intent_id=intent.get("id"), booking_id=self._metadata_booking_id(intent)
        )
        if payment is None:
            self.logger.warning(f"Payment record not found for intent {intent.get('id')}")
            return False
        return self._settle(payment, payment_intent_id=intent.get("id"))

    def _on_checkout_completed(self, session: Any) -> bool:
        if session.get("payment_status") not in (None, "paid"):
            self.logger.info(f"Checkout session {session.get('id')} completed without payment")
            return False
        intent_id = session.get("payment_intent")
        payment = self._resolve_payment(
            payment_intent_id=intent_id,
            session_id=session.get("id"),
            booking_id=self._metadata_booking_id(session),
        )
        if payment is None:
            self.logger.warning(f"Payment record not found for session {session.get('id')}")
            return False
        return self._settle(payment, payment_intent_id=intent_id)

    def _on_intent_failed(self, intent: Any) -> bool:
        payment = self._resolve_payment(
            payment_intent_id=intent.get("id"), booking_id=self._metadata_booking_id(intent)
        )
        if payment is None:
            return False
        if payment.status != PaymentStatus.PENDING.value:
            return True
        error = (intent.get("last_payment_error") or {}).get("message")
        with self.transaction():
            payment.status = PaymentStatus.FAILED.value
            payment.payment_metadata = {**(payment.payment_metadata or {}), "failure": error}
            booking = self.booking_repository.get_by_id(payment.booking_id)
            is_extension = (payment.payment_metadata or {}).get("kind") == "modification"
            if booking is not None and is_extension:
                # The original capture still stands; only the extra charge failed
                self._restore_captured_status(booking)
            elif booking is not None:
                booking.payment_status = BookingPaymentStatus.FAILED.value
                if booking.is_cancellable:
                    booking.cancel("Payment failed")
        self.activity_service.log(
            payment.user_id,
            ActivityType.PAYMENT,
            f"Payment for booking {payment.booking_id} failed",
            {"payment_id": payment.id},
        )
        return True

    def _restore_captured_status(self, booking: Any) -> None:
        """Caller holds the transaction."""
        self.repository.flush()
        if self.repository.get_pending_for_booking(booking.id):
            return
        captured = self.repository.get_succeeded_for_booking(booking.id)
        if not captured:
            return
        refunded = any(to_money(p.refund_amount or 0) > 0 for p in captured)
        booking.payment_status = (
            BookingPaymentStatus.PARTIALLY_REFUNDED.value
            if refunded
            else BookingPaymentStatus.PAID.value
        )

    def _settle(self, payment: Payment, payment_intent_id: Optional[str] = None) -> bool:
        """Mark a payment succeeded. Safe to call again for the same payment."""
        if payment.status == PaymentStatus.SUCCEEDED.value:
            return True
        now = utcnow()
        with self.transaction():
            self._mark_succeeded(payment, now, payment_intent_id)
        self._after_payment(payment)
        return True

    def _mark_succeeded(
        self, payment: Payment, now: Any, payment_intent_id: Optional[str] = None
    ) -> None:
        """Caller holds the transaction."""
        payment.status = PaymentStatus.SUCCEEDED.value
        payment.paid_at = now
        if payment_intent_id and not payment.stripe_payment_intent_id:
            payment.stripe_payment_intent_id = payment_intent_id
        booking = self.booking_repository.get_by_id(payment.booking_id)
        if booking is None:
            return
        self.repository.flush()
        if not self.repository.get_pending_for_booking(booking.id):
            booking.payment_status = BookingPaymentStatus.PAID.value
        if booking.status == BookingStatus.PENDING.value:
            booking.confirm()

    def _after_payment(self, payment: Payment) -> None:
        self.publish_event(
            PaymentReceived(
                payment_id=payment.id,
                booking_id=payment.booking_id,
                amount=float(payment.amount),
                paid_at=payment.paid_at,
            )
        )
        self.activity_service.log(
            payment.user_id,
            ActivityType.PAYMENT,
            f"Payment of {to_money(payment.amount)} received",
            {"payment_id": payment.id, "booking_id": payment.booking_id},
        )

    # ========== Refund adjustments ==========

    @BaseService.measure_operation("apply_refund_adjustment")
    def apply_refund_adjustment(
        self,
        payment_id: str,
        amount: Decimal,
        idempotency_key: str,
        reason: Optional[str] = None,
    ) -> Optional[Payment]:
        """
        Refund part of a captured card payment and record it.

        Replays are harmless: Stripe dedupes on ``idempotency_key`` and a
        refund id already recorded on the payment is not counted twice.

        Raises:
            PaymentProviderException: Stripe rejected the refund
        """
        payment = self.repository.get_by_id(payment_id)
        if payment is None or not payment.stripe_payment_intent_id:
            self.logger.warning(f"Refund adjustment skipped; payment {payment_id} not refundable")
            return None
        remaining = to_money(payment.amount) - to_money(payment.refund_amount or 0)
        amount = min(to_money(amount), remaining)
        if amount <= 0:
            return payment

        refund = self.stripe_service.refund(
            payment_intent_id=payment.stripe_payment_intent_id,
            amount=amount,
            idempotency_key=idempotency_key,
            metadata={"booking_id": payment.booking_id, "kind": "adjustment"},
        )

        with self.transaction():
            metadata = dict(payment.payment_metadata or {})
            refund_ids = list(metadata.get("refund_ids") or [])
            if refund.id in refund_ids:
                return payment
            refund_ids.append(refund.id)
            metadata["refund_ids"] = refund_ids
            payment.payment_metadata = metadata
            payment.refund_id = refund.id
            payment.refund_amount = to_money(payment.refund_amount or 0) + amount
            payment.refund_reason = reason
            payment.refunded_at = utcnow()

            booking = self.booking_repository.get_by_id(payment.booking_id)
            fully_refunded = payment.refund_amount >= to_money(payment.amount)
            cancelled = booking is not None and booking.status == BookingStatus.CANCELLED.value
            if fully_refunded or cancelled:
                payment.status = PaymentStatus.REFUNDED.value
            if booking is not None:
                booking.payment_status = (
                    BookingPaymentStatus.REFUNDED.value
                    if fully_refunded
                    else BookingPaymentStatus.PARTIALLY_REFUNDED.value
                )
        self.log_operation("refund_adjustment_applied", payment_id=payment.id, refund_id=refund.id)
        return payment

    # ========== Admin ==========

    def list_payments(self, **filters: Any) -> Tuple[List[Payment], int]:
        return self.repository.list_payments(**filters)

    @BaseService.measure_operation("payment_stats")
    def get_stats(
        self, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """Revenue and method breakdown over a date range (default last month)."""
        end_date = end_date or utcnow().date()
        start_date = start_date or end_date - timedelta(days=DEFAULT_PAYMENT_STATS_DAYS)
        if start_date > end_date:
            raise ValidationException("startDate must not be after endDate")
        return {
            "start_date": start_date,
            "end_date": end_date,
            "total_revenue": self.analytics_repository.total_revenue(start_date, end_date),
            "method_stats": [
                vars(row)
                for row in self.analytics_repository.payment_method_breakdown(start_date, end_date)
            ],
            "daily_revenue": [
                vars(row) for row in self.analytics_repository.revenue_by_day(start_date, end_date)
            ],
        }

    def _get_payment(self, payment_id: str) -> Payment:
        payment = self.repository.get_by_id(payment_id)
        if payment is None:
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")
        return payment

    @BaseService.measure_operation("mark_payment_paid")
    def mark_paid(self, admin: User, payment_id: str) -> Payment:
        """Record a cash payment taken at the front desk."""
        payment = self._get_payment(payment_id)
        if payment.payment_method != PaymentMethod.CASH.value:
            raise BusinessRuleException(
                "Only cash payments can be marked as paid", code="NOT_CASH_PAYMENT"
            )
        if payment.status != PaymentStatus.PENDING.value:
            raise BusinessRuleException(
                f"Cannot mark a {payment.status} payment as paid", code="PAYMENT_NOT_PENDING"
            )
        booking = self.booking_repository.get_by_id(payment.booking_id)
        if booking is not None and booking.status == BookingStatus.CANCELLED.value:
            raise BusinessRuleException(
                "Cannot take payment for a cancelled booking", code="BOOKING_CANCELLED"
            )
        with self.transaction():
            self._mark_succeeded(payment, utcnow())
            payment.payment_metadata = {
                **(payment.payment_metadata or {}),
                "marked_paid_by": admin.id,
            }
        self._after_payment(payment)
        return payment

    @BaseService.measure_operation("admin_refund_payment")
    def refund(self, admin: User, payment_id: str, reason: Optional[str] = None) -> Payment:
        """
        Refund the unrefunded remainder of a succeeded payment and cancel its booking.

        Card payments are refunded through Stripe before anything is written.
        """
        payment = self._get_payment(payment_id)
        if payment.status != PaymentStatus.SUCCEEDED.value:
            raise BusinessRuleException(
                "Only succeeded payments can be refunded", code="PAYMENT_NOT_REFUNDABLE"
            )
        amount = to_money(payment.amount) - to_money(payment.refund_amount or 0)
        reason = reason or "Refunded by admin"

        refund_id: Optional[str] = None
        if payment.payment_method == PaymentMethod.CARD.value:
            if not payment.stripe_payment_intent_id:
                raise ServiceException("Card payment has no Stripe payment intent to refund")
            refund = self.stripe_service.refund(
                payment_intent_id=payment.stripe_payment_intent_id,
                amount=amount,
                idempotency_key=f"admin-refund-{payment.id}",
                reason="requested_by_customer",
                metadata={"booking_id": payment.booking_id, "admin_id": admin.id},
            )
            refund_id = refund.id

        now = utcnow()
        with self.transaction():
            payment.status = PaymentStatus.REFUNDED.value
            payment.refund_id = refund_id
            payment.refund_amount = to_money(payment.refund_amount or 0) + amount
            payment.refund_reason = reason
            payment.refunded_at = now
            booking = self.booking_repository.get_by_id(payment.booking_id)
            if booking is not None:
                if booking.is_cancellable:
                    booking.cancel(reason)
                booking.payment_status = BookingPaymentStatus.REFUNDED.value

        self.activity_service.log(
            payment.user_id,
            ActivityType.PAYMENT,
            f"Payment of {to_money(payment.amount)} refunded",
            {"payment_id": payment.id, "refund_amount": str(amount), "admin_id": admin.id},
        )
        return payment
