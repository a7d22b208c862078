# backend/coworking/services/booking_service.py
"""
Booking Service for the coworking platform.

Owns the booking lifecycle: create (with optional weekly recurrence),
modify, cancel with tiered refunds, and the admin status transitions.

Every write follows the same shape:

1. Validation and the overlap check run inside one short transaction that
   holds a row lock on the space, so two requests cannot book the same
   slot.
2. Payment provider calls run with no transaction open.
3. Notifications, reminders and the activity log run after commit. Each
   one is isolated and reported in ``side_effects``; none of them can undo
   the booking.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
import json
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    BOOKING_REMINDER_HOURS,
    PAYMENT_REMINDER_HOURS,
    SERIES_CANCELLED_REASON,
    SERIES_REGENERATED_REASON,
)
from ..core.enums import (
    ActivityType,
    BookingPaymentStatus,
    BookingStatus,
    PaymentMethod,
    PaymentStatus,
    SideEffectOutcome,
)
from ..core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    PaymentProviderException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, utcnow
from ..core.ulid_helper import generate_ulid
from ..domain.pricing import calculate_price, duration_hours, price_difference, to_money
from ..domain.recurrence import RecurrenceError, expand_occurrences
from ..domain.refund_policy import RefundDecision, evaluate_refund
from ..events import (
    BookingCancelled,
    BookingCreated,
    BookingModified,
    BookingReminder,
    PaymentReminder,
)
from ..models.booking import Booking
from ..models.payment import Payment
from ..models.space import Space
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate, BookingUpdate
from .activity_service import ActivityService
from .base import BaseService
from .settings_service import BookingRules, SettingsService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

REFUND_ADJUSTMENT_JOB = "payment.refund_adjustment"


@dataclass
class SeriesResult:
    created: List[Booking] = field(default_factory=list)
    skipped_dates: List[str] = field(default_factory=list)


@dataclass
class CancellationContext:
    """Everything phase 2 of a cancellation needs, captured in phase 1."""

    booking_id: str
    user_id: str
    decision: RefundDecision
    refunds: List[Tuple[str, str, Decimal]] = field(default_factory=list)


def cancel_refund_key(booking_id: str, payment_id: str, index: int) -> str:
    """Idempotency key for a cancellation refund; stable across retries."""
    if index == 0:
        return f"booking-cancel-{booking_id}"
    return f"booking-cancel-{booking_id}-{payment_id}"


def _merge_outcomes(outcomes: Sequence[SideEffectOutcome]) -> SideEffectOutcome:
    if not outcomes:
        return SideEffectOutcome.SKIPPED
    if SideEffectOutcome.FAILED in outcomes:
        return SideEffectOutcome.FAILED
    return outcomes[0]


class BookingService(BaseService):
    """Service layer for booking operations."""

    def __init__(
        self,
        db: Session,
        stripe_service: Optional[StripeService] = None,
        activity_service: Optional[ActivityService] = None,
        settings_service: Optional[SettingsService] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.space_repository = RepositoryFactory.create_space_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.job_repository = RepositoryFactory.create_background_job_repository(db)
        self._stripe_service = stripe_service
        self.activity_service = activity_service or ActivityService(db)
        self.settings_service = settings_service or SettingsService(db)

    @property
    def stripe_service(self) -> StripeService:
        if self._stripe_service is None:
            self._stripe_service = StripeService(self.db)
        return self._stripe_service

    # ========== Validation helpers ==========

    def _get_space(self, space_id: str) -> Space:
        space = self.space_repository.get_by_id(space_id)
        if space is None:
            raise NotFoundException("Workspace not found", code="SPACE_NOT_FOUND")
        return space

    def _validate_interval(
        self, start: datetime, end: datetime, now: datetime, rules: BookingRules
    ) -> None:
        if end <= start:
            raise ValidationException(
                "End time must be after start time", code="INVALID_TIME_RANGE"
            )
        if start < now:
            raise ValidationException("Cannot book in the past", code="BOOKING_IN_PAST")

        hours = float(duration_hours(start, end))
        if rules.max_duration_hours and hours > rules.max_duration_hours:
            raise BusinessRuleException(
                f"Bookings cannot be longer than {rules.max_duration_hours:g} hours",
                code="MAX_DURATION_EXCEEDED",
            )
        if start - now < timedelta(hours=rules.min_advance_hours):
            raise BusinessRuleException(
                f"Bookings must be made at least {rules.min_advance_hours:g} hours in advance",
                code="MIN_ADVANCE_NOT_MET",
            )
        if rules.max_advance_days and start - now > timedelta(days=rules.max_advance_days):
            raise BusinessRuleException(
                f"Bookings cannot be made more than {rules.max_advance_days:g} days in advance",
                code="MAX_ADVANCE_EXCEEDED",
            )

    def _ensure_bookable(self, space: Space) -> None:
        if not space.is_bookable:
            raise ValidationException(
                "Workspace is not available for booking", code="SPACE_NOT_AVAILABLE"
            )

    def _occurrences(
        self,
        start: datetime,
        end: datetime,
        weekdays: Optional[List[int]],
        until: Optional[date],
    ) -> List[Tuple[datetime, datetime]]:
        try:
            return expand_occurrences(start, end, weekdays or [], until or start.date())
        except RecurrenceError as e:
            raise ValidationException(str(e), code="INVALID_RECURRENCE")

    def _check_conflicts(
        self,
        space_id: str,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        conflicts = self.repository.find_conflicts(space_id, start, end, exclude_booking_id)
        if conflicts:
            raise BookingConflictException(
                details={"conflicting_booking_ids": [b.id for b in conflicts]}
            )

    # ========== Reads ==========

    def get_booking(self, user: User, booking_id: str) -> Booking:
        """Owner (or admin) view of one booking."""
        booking = self.repository.get_by_id(booking_id)
        if booking is None or (booking.user_id != user.id and not user.is_admin):
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def list_user_bookings(self, user: User) -> List[Booking]:
        return self.repository.get_user_bookings(user.id)

    def list_bookings(self, **filters: Any) -> Tuple[List[Booking], int]:
        return self.repository.list_bookings(**filters)

    def serialize_booking(self, booking: Booking) -> Dict[str, Any]:
        """Flatten a booking with its space and payments for the response schemas."""
        space = self.space_repository.get_by_id(booking.space_id)
        return {
            "id": booking.id,
            "user_id": booking.user_id,
            "space_id": booking.space_id,
            "start_time": ensure_utc(booking.start_time),
            "end_time": ensure_utc(booking.end_time),
            "status": booking.status,
            "payment_method": booking.payment_method,
            "payment_status": booking.payment_status,
            "total_amount": booking.total_amount,
            "notes": booking.notes,
            "recurring_group_id": booking.recurring_group_id,
            "cancellation_reason": booking.cancellation_reason,
            "cancelled_at": ensure_utc(booking.cancelled_at),
            "created_at": ensure_utc(booking.created_at),
            "space": space,
            "payments": self.payment_repository.get_for_booking(booking.id),
        }

    # ========== Create ==========

    def _insert_booking(
        self,
        *,
        user_id: str,
        space: Space,
        start: datetime,
        end: datetime,
        payment_method: str,
        notes: Optional[str],
        recurring_group_id: Optional[str] = None,
    ) -> Booking:
        """Insert one booking and its pending payment. Caller holds the transaction."""
        amount = calculate_price(space.hourly_rate, start, end)
        status = (
            BookingStatus.PENDING.value
            if payment_method == PaymentMethod.CASH.value
            else BookingStatus.CONFIRMED.value
        )
        booking: Booking = self.repository.create(
            user_id=user_id,
            space_id=space.id,
            start_time=start,
            end_time=end,
            status=status,
            payment_method=payment_method,
            payment_status=BookingPaymentStatus.PENDING.value,
            total_amount=amount,
            notes=notes,
            recurring_group_id=recurring_group_id,
        )
        self.payment_repository.create(
            booking_id=booking.id,
            user_id=user_id,
            amount=amount,
            currency=settings.stripe_currency.upper(),
            status=PaymentStatus.PENDING.value,
            payment_method=payment_method,
            description=f"Booking for {space.name}",
        )
        return booking

    def _expand_series(
        self,
        base: Booking,
        space: Space,
        occurrences: List[Tuple[datetime, datetime]],
    ) -> SeriesResult:
        """
        Create one sibling per free occurrence. Caller holds the transaction.

        Occurrences that overlap an existing booking are skipped and reported.
        """
        result = SeriesResult()
        if not occurrences:
            return result
        if not base.recurring_group_id:
            base.recurring_group_id = generate_ulid()
        for start, end in occurrences:
            if self.repository.has_conflict(space.id, start, end):
                result.skipped_dates.append(start.date().isoformat())
                continue
            result.created.append(
                self._insert_booking(
                    user_id=base.user_id,
                    space=space,
                    start=start,
                    end=end,
                    payment_method=base.payment_method,
                    notes=base.notes,
                    recurring_group_id=base.recurring_group_id,
                )
            )
        if result.skipped_dates:
            self.logger.info(
                f"Skipped {len(result.skipped_dates)} conflicting occurrences for series "
                f"{base.recurring_group_id}",
                extra={"booking_id": base.id},
            )
        return result

    @BaseService.measure_operation("create_booking")
    def create_booking(self, user: User, data: BookingCreate) -> Dict[str, Any]:
        """
        Create a booking, its recurring siblings and pending payments.

        Returns:
            ``booking``, ``recurring_bookings``, ``skipped_dates``, ``checkout``
            (card bookings) and ``side_effects``

        Raises:
            NotFoundException: Unknown space
            ValidationException: Bad interval, past start or unbookable space
            BusinessRuleException: Booking rules from settings are violated
            BookingConflictException: The interval overlaps a blocking booking
            PaymentProviderException: Checkout could not be started; the booking
                is kept with a pending payment so checkout can be retried
        """
        now = utcnow()
        start, end = ensure_utc(data.start_time), ensure_utc(data.end_time)
        payment_method = PaymentMethod(data.payment_method).value
        self.log_operation("create_booking", user_id=user.id, space_id=data.space_id)

        space = self._get_space(data.space_id)
        self._ensure_bookable(space)
        self._validate_interval(start, end, now, self.settings_service.get_booking_rules())
        occurrences: List[Tuple[datetime, datetime]] = []
        if data.is_recurring:
            occurrences = self._occurrences(
                start, end, data.recurring_days, data.recurring_end_date
            )

        with self.transaction():
            locked = self.space_repository.get_for_update(space.id)
            if locked is None:
                raise NotFoundException("Workspace not found", code="SPACE_NOT_FOUND")
            self._check_conflicts(locked.id, start, end)
            booking = self._insert_booking(
                user_id=user.id,
                space=locked,
                start=start,
                end=end,
                payment_method=payment_method,
                notes=data.notes,
            )
            series = self._expand_series(booking, locked, occurrences)

        self.logger.info(
            f"Booking {booking.id} created for user {user.id} on space {space.id}",
            extra={"booking_id": booking.id, "recurring_count": len(series.created)},
        )

        checkout: Optional[Dict[str, Any]] = None
        provider_error: Optional[PaymentProviderException] = None
        if payment_method == PaymentMethod.CARD.value:
            try:
                checkout = self.start_checkout(user, booking, space)
            except PaymentProviderException as e:
                provider_error = e

        side_effects = self._after_create(user, booking, series.created)

        if provider_error is not None:
            raise PaymentProviderException(
                details={"booking_id": booking.id, "retryable": True}
            ) from provider_error

        return {
            "booking": booking,
            "recurring_bookings": series.created,
            "skipped_dates": series.skipped_dates,
            "checkout": checkout,
            "side_effects": side_effects,
        }

    def start_checkout(self, user: User, booking: Booking, space: Space) -> Dict[str, Any]:
        """
        Open a Stripe Checkout Session for the booking's pending card payment.

        No transaction is held while Stripe is called; the session id is
        stored afterwards in a short transaction of its own.
        """
        payment = self.payment_repository.get_latest_for_booking(
            booking.id, status=PaymentStatus.PENDING.value
        )
        if payment is None:
            raise NotFoundException("Booking not found or already paid", code="NOTHING_TO_PAY")

        customer_id = self.stripe_service.get_or_create_customer(user)
        start = ensure_utc(booking.start_time)
        hours = duration_hours(start, ensure_utc(booking.end_time))
        session = self.stripe_service.create_checkout_session(
            booking_id=booking.id,
            customer_id=customer_id,
            amount=Decimal(str(payment.amount)),
            product_name=f"{space.name} booking",
            description=f"{start:%Y-%m-%d %H:%M} UTC, {hours:.2f}h",
        )
        with self.transaction():
            payment.stripe_session_id = session.id
        return {"session_id": session.id, "url": getattr(session, "url", None)}

    def _schedule_reminders(self, booking: Booking, now: datetime) -> List[SideEffectOutcome]:
        outcomes: List[SideEffectOutcome] = []
        start = ensure_utc(booking.start_time)
        for hours in BOOKING_REMINDER_HOURS:
            send_at = start - timedelta(hours=hours)
            if send_at > now:
                outcomes.append(
                    self.publish_event(
                        BookingReminder(
                            booking_id=booking.id, hours_before=hours, start_time=start
                        ),
                        available_at=send_at,
                        effect="reminder",
                    )
                )
        if booking.payment_method == PaymentMethod.CASH.value:
            for hours in PAYMENT_REMINDER_HOURS:
                send_at = start - timedelta(hours=hours)
                if send_at > now:
                    outcomes.append(
                        self.publish_event(
                            PaymentReminder(
                                booking_id=booking.id, hours_before=hours, start_time=start
                            ),
                            available_at=send_at,
                            effect="reminder",
                        )
                    )
        return outcomes

    def _after_create(
        self, user: User, booking: Booking, siblings: List[Booking]
    ) -> Dict[str, str]:
        now = utcnow()
        notification = self.publish_event(
            BookingCreated(
                booking_id=booking.id,
                user_id=user.id,
                created_at=now,
                recurring_count=len(siblings),
            )
        )
        reminders: List[SideEffectOutcome] = []
        for item in [booking, *siblings]:
            reminders.extend(self._schedule_reminders(item, now))
        activity = self.activity_service.log(
            user.id,
            ActivityType.BOOKING,
            f"Booked space {booking.space_id}",
            {"booking_id": booking.id, "recurring_count": len(siblings)},
        )
        return {
            "notification": notification.value,
            "reminders": _merge_outcomes(reminders).value,
            "activity_log": activity.value,
        }

    # ========== Modify ==========

    @BaseService.measure_operation("modify_booking")
    def modify_booking(self, user: User, booking_id: str, data: BookingUpdate) -> Dict[str, Any]:
        """
        Move a booking, edit its notes or regenerate its recurring series.

        A price increase on a captured card payment is charged before the
        write; a decrease is refunded after it.
        """
        now = utcnow()
        booking = self.repository.get_for_user(booking_id, user.id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if not booking.is_modifiable:
            raise BusinessRuleException(
                f"Cannot modify a {booking.status} booking", code="BOOKING_NOT_MODIFIABLE"
            )

        old_start, old_end = ensure_utc(booking.start_time), ensure_utc(booking.end_time)
        new_start = ensure_utc(data.start_time) if data.start_time else old_start
        new_end = ensure_utc(data.end_time) if data.end_time else old_end
        time_changed = (new_start, new_end) != (old_start, old_end)
        fields_set = data.model_fields_set
        regenerate = data.is_recurring is not None

        space = self._get_space(booking.space_id)
        old_total = to_money(booking.total_amount)
        delta = Decimal("0")
        if time_changed:
            rules = self.settings_service.get_booking_rules()
            self._validate_interval(new_start, new_end, now, rules)
            self._check_conflicts(space.id, new_start, new_end, exclude_booking_id=booking.id)
            # Both spans at the current rate; a shrink never refunds more than the total
            delta = max(
                price_difference(space.hourly_rate, old_start, old_end, new_start, new_end),
                -old_total,
            )
        new_total = old_total + delta

        occurrences: List[Tuple[datetime, datetime]] = []
        if data.is_recurring:
            occurrences = self._occurrences(
                new_start, new_end, data.recurring_days, data.recurring_end_date
            )

        captured = self._captured_card_payment(booking)

        # Charge before the write so a provider failure leaves the booking untouched
        intent = None
        if delta > 0 and captured is not None:
            intent = self.stripe_service.create_payment_intent(
                booking_id=booking.id,
                amount=delta,
                customer_id=user.stripe_customer_id,
                description=f"Booking {booking.id} extension",
                idempotency_key=(
                    f"booking-modify-{booking.id}-"
                    f"{int(new_start.timestamp())}-{int(new_end.timestamp())}"
                ),
                metadata={"kind": "modification"},
            )

        try:
            with self.transaction():
                booking = self.repository.get_by_id(booking.id)
                if booking is None or not booking.is_modifiable:
                    raise BusinessRuleException(
                        "Booking can no longer be modified", code="BOOKING_NOT_MODIFIABLE"
                    )
                if time_changed:
                    locked = self.space_repository.get_for_update(space.id)
                    self._check_conflicts(
                        locked.id, new_start, new_end, exclude_booking_id=booking.id
                    )
                    booking.start_time = new_start
                    booking.end_time = new_end
                    booking.total_amount = new_total
                if "notes" in fields_set:
                    booking.notes = data.notes
                if delta != 0:
                    self._apply_price_change(booking, delta, captured, intent)
                series = SeriesResult()
                if regenerate:
                    self._cancel_unpaid_siblings(booking, now, SERIES_REGENERATED_REASON)
                    if occurrences:
                        series = self._expand_series(booking, space, occurrences)
                self.repository.flush()
        except Exception:
            if intent is not None:
                self._void_intent(intent.id)
            raise

        refund: Optional[Dict[str, Any]] = None
        if delta < 0 and captured is not None:
            refund = self._refund_adjustment(booking, captured, -delta)

        side_effects: Dict[str, str] = {}
        if refund is not None:
            side_effects["refund"] = refund["outcome"]
        side_effects["notification"] = self.publish_event(
            BookingModified(
                booking_id=booking.id,
                user_id=user.id,
                modified_at=now,
                price_difference=float(delta),
            )
        ).value
        reminders: List[SideEffectOutcome] = []
        if time_changed:
            reminders.extend(self._schedule_reminders(booking, now))
        for sibling in series.created:
            reminders.extend(self._schedule_reminders(sibling, now))
        side_effects["reminders"] = _merge_outcomes(reminders).value
        side_effects["activity_log"] = self.activity_service.log(
            user.id,
            ActivityType.BOOKING,
            f"Modified booking {booking.id}",
            {"booking_id": booking.id, "price_difference": str(delta)},
        ).value

        return {
            "booking": booking,
            "price_difference": delta,
            "additional_payment": (
                {
                    "payment_intent_id": intent.id,
                    "client_secret": intent.client_secret,
                    "amount": float(delta),
                }
                if intent is not None
                else None
            ),
            "refund": refund,
            "recurring_bookings": series.created,
            "skipped_dates": series.skipped_dates,
            "side_effects": side_effects,
        }

    def _captured_card_payment(self, booking: Booking) -> Optional[Payment]:
        if booking.payment_method != PaymentMethod.CARD.value:
            return None
        payment = self.payment_repository.get_latest_for_booking(
            booking.id, status=PaymentStatus.SUCCEEDED.value
        )
        if payment is None or not payment.stripe_payment_intent_id:
            return None
        return payment

    def _apply_price_change(
        self,
        booking: Booking,
        delta: Decimal,
        captured: Optional[Payment],
        intent: Any,
    ) -> None:
        """Record the payment side of a price change. Caller holds the transaction."""
        if captured is not None:
            if intent is not None:
                self.payment_repository.create(
                    booking_id=booking.id,
                    user_id=booking.user_id,
                    amount=delta,
                    currency=settings.stripe_currency.upper(),
                    status=PaymentStatus.PENDING.value,
                    payment_method=booking.payment_method,
                    description=f"Additional charge for booking {booking.id}",
                    stripe_payment_intent_id=intent.id,
                    payment_metadata={"kind": "modification"},
                )
                booking.payment_status = BookingPaymentStatus.PENDING.value
            return

        pending = self.payment_repository.get_latest_for_booking(
            booking.id, status=PaymentStatus.PENDING.value
        )
        if pending is not None:
            pending.amount = max(Decimal("0"), to_money(pending.amount) + delta)
            # The old checkout session was priced at the previous amount
            pending.stripe_session_id = None
            return

        if delta > 0:
            self.payment_repository.create(
                booking_id=booking.id,
                user_id=booking.user_id,
                amount=delta,
                currency=settings.stripe_currency.upper(),
                status=PaymentStatus.PENDING.value,
                payment_method=booking.payment_method,
                description=f"Additional charge for booking {booking.id}",
            )
            booking.payment_status = BookingPaymentStatus.PENDING.value
            return

        paid = self.payment_repository.get_latest_for_booking(
            booking.id, status=PaymentStatus.SUCCEEDED.value
        )
        if paid is not None:
            paid.refund_amount = to_money(paid.refund_amount or 0) - delta
            paid.refund_reason = "Booking shortened; refund due at the front desk"
            booking.payment_status = BookingPaymentStatus.PARTIALLY_REFUNDED.value

    def _refund_adjustment(
        self, booking: Booking, payment: Payment, amount: Decimal
    ) -> Dict[str, Any]:
        """
        Partially refund a captured payment after a booking was shortened.

        A failed refund is handed to the job queue and retried there.
        """
        from .payment_service import PaymentService

        refunded_after = to_money(payment.refund_amount or 0) + amount
        idempotency_key = f"booking-adjust-{booking.id}-{payment.id}-{refunded_after}"
        payment_service = PaymentService(self.db, stripe_service=self.stripe_service)
        try:
            payment_service.apply_refund_adjustment(
                payment.id, amount, idempotency_key, reason="Booking shortened"
            )
            return {"amount": float(amount), "outcome": SideEffectOutcome.OK.value}
        except PaymentProviderException:
            self.logger.warning(
                f"Refund adjustment for booking {booking.id} failed; queued for retry",
                extra={"booking_id": booking.id},
            )
        outcome = self._queue_refund_job(payment.id, amount, idempotency_key, "Booking shortened")
        return {"amount": float(amount), "outcome": outcome.value}

    def _queue_refund_job(
        self, payment_id: str, amount: Decimal, idempotency_key: str, reason: str
    ) -> SideEffectOutcome:
        try:
            with self.transaction():
                self.job_repository.enqueue(
                    type=REFUND_ADJUSTMENT_JOB,
                    payload=json.dumps(
                        {
                            "payment_id": payment_id,
                            "amount": str(amount),
                            "idempotency_key": idempotency_key,
                            "reason": reason,
                        }
                    ),
                )
            return SideEffectOutcome.QUEUED
        except Exception as e:
            self.logger.error(
                f"Failed to queue refund adjustment for payment {payment_id}: {str(e)}",
                exc_info=True,
            )
            return SideEffectOutcome.FAILED

    def _void_intent(self, payment_intent_id: str) -> None:
        try:
            self.stripe_service.cancel_payment_intent(payment_intent_id)
        except PaymentProviderException:
            self.logger.error(f"Could not cancel orphaned payment intent {payment_intent_id}")

    def _void_pending_payments(self, booking: Booking, note: str) -> None:
        for payment in self.payment_repository.get_pending_for_booking(booking.id):
            payment.status = PaymentStatus.FAILED.value
            payment.payment_metadata = {**(payment.payment_metadata or {}), "voided": note}

    def _cancel_unpaid_siblings(
        self, booking: Booking, now: datetime, reason: str
    ) -> List[Booking]:
        if not booking.recurring_group_id:
            return []
        cancelled = []
        for sibling in self.repository.get_future_group_members(
            booking.recurring_group_id, after=now, exclude_booking_id=booking.id
        ):
            if self.payment_repository.get_succeeded_for_booking(sibling.id):
                continue
            sibling.cancel(reason)
            self._void_pending_payments(sibling, reason)
            cancelled.append(sibling)
        return cancelled

    # ========== Cancel ==========

    def _load_cancellable(self, user: User, booking_id: str) -> Booking:
        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        if booking.user_id != user.id and not user.is_admin:
            raise ForbiddenException("You can only cancel your own bookings")
        if booking.status == BookingStatus.CANCELLED.value:
            raise BusinessRuleException(
                "Booking is already cancelled", code="BOOKING_ALREADY_CANCELLED"
            )
        if booking.status == BookingStatus.COMPLETED.value:
            raise BusinessRuleException(
                "Completed bookings cannot be cancelled", code="BOOKING_COMPLETED"
            )
        return booking

    def _refund_plan(self, booking: Booking, amount: Decimal) -> List[Tuple[str, str, Decimal]]:
        """Spread ``amount`` over the booking's captured card payments, oldest first."""
        plan: List[Tuple[str, str, Decimal]] = []
        remaining = amount
        if booking.payment_method != PaymentMethod.CARD.value:
            return plan
        for payment in self.payment_repository.get_succeeded_for_booking(booking.id):
            if remaining <= 0:
                break
            if not payment.stripe_payment_intent_id:
                continue
            refundable = to_money(payment.amount) - to_money(payment.refund_amount or 0)
            portion = min(remaining, refundable)
            if portion > 0:
                plan.append((payment.id, payment.stripe_payment_intent_id, portion))
                remaining -= portion
        return plan

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, user: User, booking_id: str, reason: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Cancel a booking and refund per the cancellation policy.

        Runs in three phases so no transaction is open during Stripe calls.
        """
        now = utcnow()

        # Phase 1: validate and decide
        with self.transaction():
            booking = self._load_cancellable(user, booking_id)
            decision = evaluate_refund(booking.total_amount, ensure_utc(booking.start_time), now)
            ctx = CancellationContext(
                booking_id=booking.id,
                user_id=booking.user_id,
                decision=decision,
                refunds=self._refund_plan(booking, decision.refund_amount),
            )

        # Phase 2: provider refunds
        issued: List[Tuple[str, Any, Decimal]] = []
        for index, (payment_id, intent_id, amount) in enumerate(ctx.refunds):
            refund = self.stripe_service.refund(
                payment_intent_id=intent_id,
                amount=amount,
                idempotency_key=cancel_refund_key(ctx.booking_id, payment_id, index),
                reason="requested_by_customer",
                metadata={"booking_id": ctx.booking_id},
            )
            issued.append((payment_id, refund, amount))

        # Phase 3: persist
        with self.transaction():
            booking = self._load_cancellable(user, ctx.booking_id)
            cancel_reason = reason or "Cancelled by user"
            booking.cancel(cancel_reason)
            refunded_total = self._record_cancellation_payments(booking, ctx.decision, issued, now)
            siblings = self._cascade_cancel(booking, now)

        self.logger.info(
            f"Booking {booking.id} cancelled with refund {refunded_total}",
            extra={"booking_id": booking.id, "cancelled_siblings": len(siblings)},
        )

        # Phase 4: best-effort follow-ups
        side_effects = {
            "sibling_refunds": _merge_outcomes(
                [
                    self._refund_sibling(sibling, now)
                    for sibling in siblings
                    if sibling.payment_method == PaymentMethod.CARD.value
                ]
            ).value,
            "notification": self.publish_event(
                BookingCancelled(
                    booking_id=booking.id,
                    user_id=booking.user_id,
                    cancelled_at=now,
                    refund_amount=float(refunded_total),
                    cancelled_siblings=len(siblings),
                )
            ).value,
            "activity_log": self.activity_service.log(
                booking.user_id,
                ActivityType.BOOKING,
                f"Cancelled booking {booking.id}",
                {"booking_id": booking.id, "refund": ctx.decision.to_payload()},
            ).value,
        }
        return {
            "booking": booking,
            "refund": {**ctx.decision.to_payload(), "refunded": float(refunded_total)},
            "cancelled_siblings": [s.id for s in siblings],
            "side_effects": side_effects,
        }

    def _record_cancellation_payments(
        self,
        booking: Booking,
        decision: RefundDecision,
        issued: List[Tuple[str, Any, Decimal]],
        now: datetime,
    ) -> Decimal:
        """Write refunds and void unpaid rows. Caller holds the transaction."""
        refunded = Decimal("0")
        for payment_id, refund, amount in issued:
            payment = self.payment_repository.get_by_id(payment_id)
            if payment is None:
                continue
            payment.status = PaymentStatus.REFUNDED.value
            payment.refund_id = getattr(refund, "id", None)
            payment.refund_amount = to_money(payment.refund_amount or 0) + amount
            payment.refund_reason = decision.policy_basis
            payment.refunded_at = now
            refunded += amount

        if booking.payment_method == PaymentMethod.CASH.value and decision.refund_amount > 0:
            remaining = decision.refund_amount
            for payment in self.payment_repository.get_succeeded_for_booking(booking.id):
                already = to_money(payment.refund_amount or 0)
                portion = min(remaining, to_money(payment.amount) - already)
                if portion <= 0:
                    continue
                # Adds to any refund still owed from an earlier shortening
                payment.status = PaymentStatus.REFUNDED.value
                payment.refund_amount = already + portion
                payment.refund_reason = f"{decision.policy_basis}; cash refund at the front desk"
                payment.refunded_at = now
                refunded += portion
                remaining -= portion
                if remaining <= 0:
                    break

        self._void_pending_payments(booking, "cancelled before payment")

        if refunded > 0:
            booking.payment_status = (
                BookingPaymentStatus.REFUNDED.value
                if refunded >= to_money(booking.total_amount)
                else BookingPaymentStatus.PARTIALLY_REFUNDED.value
            )
        elif booking.payment_status == BookingPaymentStatus.PENDING.value:
            booking.payment_status = BookingPaymentStatus.FAILED.value
        return refunded

    def _cascade_cancel(self, booking: Booking, now: datetime) -> List[Booking]:
        """Cancel future pending/confirmed siblings; past and completed ones stay."""
        if not booking.recurring_group_id:
            return []
        siblings = self.repository.get_future_group_members(
            booking.recurring_group_id, after=now, exclude_booking_id=booking.id
        )
        for sibling in siblings:
            sibling.cancel(SERIES_CANCELLED_REASON)
            self._void_pending_payments(sibling, SERIES_CANCELLED_REASON)
            if sibling.payment_status == BookingPaymentStatus.PENDING.value:
                sibling.payment_status = BookingPaymentStatus.FAILED.value
        return siblings

    def _refund_sibling(self, sibling: Booking, now: datetime) -> SideEffectOutcome:
        """Queue the policy refund for a paid sibling cancelled with its series."""
        decision = evaluate_refund(sibling.total_amount, ensure_utc(sibling.start_time), now)
        outcomes = [
            self._queue_refund_job(
                payment_id,
                amount,
                cancel_refund_key(sibling.id, payment_id, index),
                SERIES_CANCELLED_REASON,
            )
            for index, (payment_id, _intent, amount) in enumerate(
                self._refund_plan(sibling, decision.refund_amount)
            )
        ]
        return _merge_outcomes(outcomes)

    # ========== Admin transitions ==========

    @BaseService.measure_operation("update_booking_status")
    def update_status(
        self, admin: User, booking_id: str, status: str, reason: Optional[str] = None
    ) -> Booking:
        """
        Admin status change.

        Allowed: pending -> confirmed, confirmed -> completed, and
        cancellation (which goes through the normal refund path).
        """
        if status == BookingStatus.CANCELLED.value:
            return self.cancel_booking(admin, booking_id, reason or "Cancelled by admin")["booking"]

        booking = self.repository.get_by_id(booking_id)
        if booking is None:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")

        if status == BookingStatus.CONFIRMED.value:
            if booking.status != BookingStatus.PENDING.value:
                raise BusinessRuleException(
                    f"Cannot confirm a {booking.status} booking", code="INVALID_TRANSITION"
                )
            with self.transaction():
                booking.confirm()
        elif status == BookingStatus.COMPLETED.value:
            if booking.status != BookingStatus.CONFIRMED.value:
                raise BusinessRuleException(
                    f"Cannot complete a {booking.status} booking", code="INVALID_TRANSITION"
                )
            with self.transaction():
                booking.complete()
        else:
            raise BusinessRuleException(
                f"Cannot move a booking back to {status}", code="INVALID_TRANSITION"
            )

        self.activity_service.log(
            booking.user_id,
            ActivityType.BOOKING,
            f"Booking {booking.id} marked {status} by admin",
            {"booking_id": booking.id, "admin_id": admin.id},
        )
        return booking

    def confirm_booking(self, admin: User, booking_id: str) -> Booking:
        return self.update_status(admin, booking_id, BookingStatus.CONFIRMED.value)

    def complete_booking(self, admin: User, booking_id: str) -> Booking:
        return self.update_status(admin, booking_id, BookingStatus.COMPLETED.value)
