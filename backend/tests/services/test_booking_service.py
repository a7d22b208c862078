"""
Booking lifecycle tests: create, recurrence, modify, cancel and the
admin status transitions. Stripe is replaced by ``FakeStripeService``.
"""

from collections import Counter
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
import json

import pytest

from coworking.core.enums import BookingPaymentStatus, BookingStatus, PaymentStatus
from coworking.core.exceptions import (
    BookingConflictException,
    BusinessRuleException,
    ForbiddenException,
    NotFoundException,
    PaymentProviderException,
    ValidationException,
)
from coworking.core.timezone_utils import utcnow
from coworking.core.ulid_helper import generate_ulid
from coworking.repositories.background_job_repository import BackgroundJobRepository
from coworking.repositories.payment_repository import PaymentRepository
from coworking.schemas.booking import BookingCreate, BookingUpdate
from coworking.services.booking_service import REFUND_ADJUSTMENT_JOB, BookingService


@pytest.fixture
def service(db, fake_stripe):
    return BookingService(db, stripe_service=fake_stripe)


def _create(service, user, space, start, end, method="cash", **extra):
    data = BookingCreate(
        space_id=space.id, start_time=start, end_time=end, payment_method=method, **extra
    )
    return service.create_booking(user, data)


def _job_types(db):
    return Counter(job.type for job in BackgroundJobRepository(db).list_jobs(limit=500))


def _payments(db, booking):
    return PaymentRepository(db).get_for_booking(booking.id)


def _next_monday(min_days: int = 2) -> datetime:
    day = utcnow().date() + timedelta(days=min_days)
    day += timedelta(days=(7 - day.weekday()) % 7)
    return datetime.combine(day, time(9, 0), tzinfo=timezone.utc)


# ========== Create ==========


class TestCreateBooking:
    def test_cash_booking_is_pending_with_payment_and_reminders(
        self, db, service, member, space, slot, fake_stripe
    ):
        start, end = slot(days=3)

        result = _create(service, member, space, start, end, "cash")

        booking = result["booking"]
        assert booking.status == BookingStatus.PENDING.value
        assert booking.payment_status == BookingPaymentStatus.PENDING.value
        assert booking.total_amount == Decimal("40.00")
        assert result["checkout"] is None
        assert result["recurring_bookings"] == []
        assert result["side_effects"] == {
            "notification": "queued",
            "reminders": "queued",
            "activity_log": "ok",
        }

        [payment] = _payments(db, booking)
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.amount == Decimal("40.00")
        assert payment.currency == "USD"

        jobs = _job_types(db)
        assert jobs["event:BookingCreated"] == 1
        assert jobs["event:BookingReminder"] == 2
        assert jobs["event:PaymentReminder"] == 2
        assert fake_stripe.count("create_checkout_session") == 0

    def test_card_booking_is_confirmed_and_opens_checkout(
        self, db, service, member, space, slot, fake_stripe
    ):
        start, end = slot(days=4, hours=3)

        result = _create(service, member, space, start, end, "card")

        booking = result["booking"]
        assert booking.status == BookingStatus.CONFIRMED.value
        assert booking.total_amount == Decimal("60.00")
        assert result["checkout"]["session_id"].startswith("cs_test_")
        assert result["checkout"]["url"]

        [payment] = _payments(db, booking)
        assert payment.stripe_session_id == result["checkout"]["session_id"]
        assert fake_stripe.calls["create_checkout_session"][0]["amount"] == Decimal("60.00")

        jobs = _job_types(db)
        assert jobs["event:BookingReminder"] == 2
        assert jobs["event:PaymentReminder"] == 0

    def test_overlapping_booking_is_rejected(
        self, service, member, other_member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        existing = booking_factory(other_member, space, start, end)

        with pytest.raises(BookingConflictException) as exc:
            _create(
                service,
                member,
                space,
                start + timedelta(hours=1),
                end + timedelta(hours=1),
            )

        assert exc.value.code == "BOOKING_CONFLICT"
        assert exc.value.details["conflicting_booking_ids"] == [existing.id]

    def test_back_to_back_bookings_are_allowed(
        self, service, member, other_member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking_factory(other_member, space, start, end)

        result = _create(service, member, space, end, end + timedelta(hours=1))

        assert result["booking"].start_time == end

    def test_cancelled_booking_does_not_block(
        self, service, member, other_member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking_factory(other_member, space, start, end, status=BookingStatus.CANCELLED.value)

        result = _create(service, member, space, start, end)

        assert result["booking"].status == BookingStatus.PENDING.value

    def test_other_space_is_independent(
        self, service, member, other_member, space, hot_desk, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking_factory(other_member, space, start, end)

        result = _create(service, member, hot_desk, start, end)

        assert result["booking"].total_amount == Decimal("16.00")

    def test_recurring_series_skips_conflicting_dates(
        self, db, service, member, other_member, space, booking_factory
    ):
        start = _next_monday()
        end = start + timedelta(hours=2)
        blocked = start + timedelta(days=7)
        booking_factory(other_member, space, blocked, blocked + timedelta(hours=1))

        result = _create(
            service,
            member,
            space,
            start,
            end,
            is_recurring=True,
            recurring_days=[0, 2],
            recurring_end_date=(start + timedelta(days=13)).date(),
        )

        booking = result["booking"]
        siblings = result["recurring_bookings"]
        assert [s.start_time for s in siblings] == [
            start + timedelta(days=2),
            start + timedelta(days=9),
        ]
        assert result["skipped_dates"] == [blocked.date().isoformat()]
        assert booking.recurring_group_id
        assert {s.recurring_group_id for s in siblings} == {booking.recurring_group_id}
        assert all(len(_payments(db, s)) == 1 for s in siblings)
        # Reminders for the base booking and each sibling
        assert _job_types(db)["event:BookingReminder"] == 6

    def test_recurrence_requires_days(self, service, member, space, slot):
        start, end = slot(days=3)
        with pytest.raises(ValueError):
            BookingCreate(
                space_id=space.id,
                start_time=start,
                end_time=end,
                payment_method="cash",
                is_recurring=True,
                recurring_end_date=(start + timedelta(days=7)).date(),
            )

    def test_checkout_failure_keeps_booking_and_reports_it(
        self, db, service, member, space, slot, fake_stripe
    ):
        fake_stripe.fail_checkout = True
        start, end = slot(days=3)

        with pytest.raises(PaymentProviderException) as exc:
            _create(service, member, space, start, end, "card")

        booking_id = exc.value.details["booking_id"]
        assert exc.value.details["retryable"] is True
        booking = service.repository.get_by_id(booking_id)
        assert booking is not None
        [payment] = _payments(db, booking)
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.stripe_session_id is None
        assert _job_types(db)["event:BookingCreated"] == 1

    @pytest.mark.parametrize(
        "start_offset, hours, code",
        [
            (timedelta(hours=-2), 1, "BOOKING_IN_PAST"),
            (timedelta(minutes=30), 1, "MIN_ADVANCE_NOT_MET"),
            (timedelta(days=3), 9, "MAX_DURATION_EXCEEDED"),
            (timedelta(days=40), 1, "MAX_ADVANCE_EXCEEDED"),
            (timedelta(days=3), -1, "INVALID_TIME_RANGE"),
        ],
    )
    def test_booking_rules(self, service, member, space, start_offset, hours, code):
        start = utcnow() + start_offset
        with pytest.raises(ValidationException) as exc:
            _create(service, member, space, start, start + timedelta(hours=hours))
        assert exc.value.code == code

    def test_rule_violations_are_business_rule_errors(self, service, member, space, slot):
        start, _ = slot(days=3)
        with pytest.raises(BusinessRuleException):
            _create(service, member, space, start, start + timedelta(hours=9))

    def test_unavailable_space_is_rejected(self, db, service, member, space, slot):
        space.is_available = False
        db.commit()
        start, end = slot(days=3)

        with pytest.raises(ValidationException) as exc:
            _create(service, member, space, start, end)

        assert exc.value.code == "SPACE_NOT_AVAILABLE"

    def test_unknown_space(self, service, member, slot):
        start, end = slot(days=3)
        data = BookingCreate(
            space_id=generate_ulid(), start_time=start, end_time=end, payment_method="cash"
        )
        with pytest.raises(NotFoundException):
            service.create_booking(member, data)


# ========== Modify ==========


class TestModifyBooking:
    def test_extending_cash_booking_raises_pending_amount(
        self, db, service, member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, payment_method="cash")

        result = service.modify_booking(
            member, booking.id, BookingUpdate(end_time=end + timedelta(hours=1))
        )

        assert result["price_difference"] == Decimal("20.00")
        assert result["additional_payment"] is None
        assert result["refund"] is None
        assert result["booking"].total_amount == Decimal("60.00")
        [payment] = _payments(db, booking)
        assert payment.amount == Decimal("60.00")
        assert result["side_effects"]["notification"] == "queued"
        assert result["side_effects"]["reminders"] == "queued"

    def test_extension_is_priced_at_the_current_rate(
        self, db, service, member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, payment_method="cash")
        space.hourly_rate = Decimal("30.00")
        db.commit()

        result = service.modify_booking(
            member, booking.id, BookingUpdate(end_time=end + timedelta(hours=1))
        )

        # The original two hours keep their price; the added hour costs 30.00
        assert result["price_difference"] == Decimal("30.00")
        assert result["booking"].total_amount == Decimal("70.00")

    def test_notes_only_change_keeps_price(
        self, service, member, space, slot, booking_factory, fake_stripe
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, paid=True)

        result = service.modify_booking(member, booking.id, BookingUpdate(notes="Projector"))

        assert result["price_difference"] == Decimal("0.00")
        assert result["booking"].notes == "Projector"
        assert result["side_effects"]["reminders"] == "skipped"
        assert fake_stripe.count("refund") == 0
        assert fake_stripe.count("create_payment_intent") == 0

    def test_shortening_paid_card_booking_refunds_difference(
        self, db, service, member, space, slot, booking_factory, fake_stripe
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, paid=True)

        result = service.modify_booking(
            member, booking.id, BookingUpdate(end_time=start + timedelta(hours=1))
        )

        assert result["price_difference"] == Decimal("-20.00")
        assert result["refund"] == {"amount": 20.0, "outcome": "ok"}
        assert result["side_effects"]["refund"] == "ok"

        [call] = fake_stripe.calls["refund"]
        assert call["amount"] == Decimal("20.00")
        assert call["payment_intent_id"] == "pi_test_1"

        [payment] = _payments(db, booking)
        assert payment.refund_amount == Decimal("20.00")
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.payment_metadata["refund_ids"] == [payment.refund_id]
        assert result["booking"].payment_status == BookingPaymentStatus.PARTIALLY_REFUNDED.value

    def test_failed_adjustment_refund_is_queued(
        self, db, service, member, space, slot, booking_factory, fake_stripe
    ):
        fake_stripe.fail_refund = True
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, paid=True)

        result = service.modify_booking(
            member, booking.id, BookingUpdate(end_time=start + timedelta(hours=1))
        )

        assert result["refund"]["outcome"] == "queued"
        assert result["booking"].end_time == start + timedelta(hours=1)
        [job] = BackgroundJobRepository(db).list_jobs(type_prefix=REFUND_ADJUSTMENT_JOB)
        payload = json.loads(job.payload)
        assert payload["amount"] == "20.00"
        assert payload["payment_id"] == _payments(db, booking)[0].id

    def test_extending_paid_card_booking_charges_difference(
        self, db, service, member, space, slot, booking_factory, fake_stripe
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, paid=True)

        result = service.modify_booking(
            member, booking.id, BookingUpdate(end_time=end + timedelta(hours=2))
        )

        extra = result["additional_payment"]
        assert extra["amount"] == 40.0
        assert extra["client_secret"]
        [call] = fake_stripe.calls["create_payment_intent"]
        assert call["metadata"] == {"kind": "modification"}

        payments = _payments(db, booking)
        assert len(payments) == 2
        pending = [p for p in payments if p.status == PaymentStatus.PENDING.value]
        assert pending[0].stripe_payment_intent_id == extra["payment_intent_id"]
        assert pending[0].payment_metadata == {"kind": "modification"}
        assert result["booking"].payment_status == BookingPaymentStatus.PENDING.value

    def test_failed_extension_charge_leaves_booking_untouched(
        self, db, service, member, space, slot, booking_factory, fake_stripe
    ):
        fake_stripe.fail_intent = True
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, paid=True)

        with pytest.raises(PaymentProviderException):
            service.modify_booking(
                member, booking.id, BookingUpdate(end_time=end + timedelta(hours=2))
            )

        db.expire_all()
        assert service.repository.get_by_id(booking.id).total_amount == Decimal("40.00")

    def test_move_into_conflict_is_rejected(
        self, service, member, other_member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, payment_method="cash")
        booking_factory(other_member, space, end + timedelta(hours=1), end + timedelta(hours=3))

        with pytest.raises(BookingConflictException):
            service.modify_booking(
                member,
                booking.id,
                BookingUpdate(start_time=end, end_time=end + timedelta(hours=2)),
            )

    def test_booking_may_overlap_its_own_old_range(
        self, service, member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, payment_method="cash")

        result = service.modify_booking(
            member,
            booking.id,
            BookingUpdate(start_time=start + timedelta(hours=1), end_time=end + timedelta(hours=1)),
        )

        assert result["price_difference"] == Decimal("0.00")

    def test_cancelled_booking_cannot_be_modified(
        self, service, member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, status=BookingStatus.CANCELLED.value)

        with pytest.raises(BusinessRuleException) as exc:
            service.modify_booking(member, booking.id, BookingUpdate(notes="late"))

        assert exc.value.code == "BOOKING_NOT_MODIFIABLE"

    def test_other_members_booking_is_not_found(
        self, service, member, other_member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(other_member, space, start, end)

        with pytest.raises(NotFoundException):
            service.modify_booking(member, booking.id, BookingUpdate(notes="mine now"))


# ========== Cancel ==========


def _starting_in(hours: float):
    start = utcnow() + timedelta(hours=hours)
    return start, start + timedelta(hours=2)


class TestCancelBooking:
    def test_full_refund_a_day_ahead(
        self, db, service, member, space, booking_factory, fake_stripe
    ):
        booking = booking_factory(member, space, *_starting_in(30), paid=True)

        result = service.cancel_booking(member, booking.id, "Plans changed")

        assert result["booking"].status == BookingStatus.CANCELLED.value
        assert result["booking"].cancellation_reason == "Plans changed"
        assert result["refund"]["fraction"] == "1"
        assert result["refund"]["refunded"] == 40.0

        [call] = fake_stripe.calls["refund"]
        assert call["idempotency_key"] == f"booking-cancel-{booking.id}"
        assert call["amount"] == Decimal("40.00")

        [payment] = _payments(db, booking)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refund_id.startswith("re_test_")
        assert result["booking"].payment_status == BookingPaymentStatus.REFUNDED.value
        assert result["side_effects"]["notification"] == "queued"
        assert result["side_effects"]["sibling_refunds"] == "skipped"

    def test_half_refund_inside_a_day(self, db, service, member, space, booking_factory):
        booking = booking_factory(member, space, *_starting_in(18), paid=True)

        result = service.cancel_booking(member, booking.id)

        assert result["refund"]["fraction"] == "0.5"
        assert result["refund"]["refunded"] == 20.0
        [payment] = _payments(db, booking)
        assert payment.refund_amount == Decimal("20.00")
        assert result["booking"].payment_status == BookingPaymentStatus.PARTIALLY_REFUNDED.value

    def test_no_refund_close_to_start(self, service, member, space, booking_factory, fake_stripe):
        booking = booking_factory(member, space, *_starting_in(6), paid=True)

        result = service.cancel_booking(member, booking.id)

        assert result["refund"]["refunded"] == 0.0
        assert result["refund"]["fraction"] == "0"
        assert fake_stripe.count("refund") == 0
        assert result["booking"].status == BookingStatus.CANCELLED.value

    def test_unpaid_cash_booking_voids_pending_payment(
        self, db, service, member, space, booking_factory
    ):
        booking = booking_factory(member, space, *_starting_in(48), payment_method="cash")

        result = service.cancel_booking(member, booking.id)

        [payment] = _payments(db, booking)
        assert payment.status == PaymentStatus.FAILED.value
        assert "voided" in payment.payment_metadata
        assert result["booking"].payment_status == BookingPaymentStatus.FAILED.value

    def test_series_cancellation_cascades_and_queues_sibling_refunds(
        self, db, service, member, space, booking_factory
    ):
        group = generate_ulid()
        base = booking_factory(member, space, *_starting_in(72), recurring_group_id=group)
        paid_sibling = booking_factory(
            member, space, *_starting_in(72 + 7 * 24), paid=True, recurring_group_id=group
        )
        cash_sibling = booking_factory(
            member,
            space,
            *_starting_in(72 + 14 * 24),
            payment_method="cash",
            recurring_group_id=group,
        )

        result = service.cancel_booking(member, base.id)

        assert sorted(result["cancelled_siblings"]) == sorted([paid_sibling.id, cash_sibling.id])
        assert result["side_effects"]["sibling_refunds"] == "queued"

        db.expire_all()
        for sibling in (paid_sibling, cash_sibling):
            assert service.repository.get_by_id(sibling.id).status == BookingStatus.CANCELLED.value

        [job] = BackgroundJobRepository(db).list_jobs(type_prefix=REFUND_ADJUSTMENT_JOB)
        payload = json.loads(job.payload)
        assert payload["idempotency_key"] == f"booking-cancel-{paid_sibling.id}"
        assert payload["amount"] == "40.00"

    def test_cancelling_twice_is_rejected(self, service, member, space, booking_factory):
        booking = booking_factory(member, space, *_starting_in(48), payment_method="cash")
        service.cancel_booking(member, booking.id)

        with pytest.raises(BusinessRuleException) as exc:
            service.cancel_booking(member, booking.id)

        assert exc.value.code == "BOOKING_ALREADY_CANCELLED"

    def test_only_owner_or_admin_may_cancel(
        self, service, member, other_member, admin, space, booking_factory
    ):
        booking = booking_factory(member, space, *_starting_in(48), payment_method="cash")

        with pytest.raises(ForbiddenException):
            service.cancel_booking(other_member, booking.id)

        result = service.cancel_booking(admin, booking.id, "Room closed")
        assert result["booking"].status == BookingStatus.CANCELLED.value

    def test_cancelled_booking_frees_the_slot(
        self, service, member, other_member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, payment_method="cash")
        service.cancel_booking(member, booking.id)

        result = _create(service, other_member, space, start, end)

        assert result["booking"].status == BookingStatus.PENDING.value


# ========== Admin transitions ==========


class TestStatusTransitions:
    def test_confirm_then_complete(self, service, admin, member, space, slot, booking_factory):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, payment_method="cash")

        assert service.update_status(admin, booking.id, "confirmed").status == "confirmed"
        completed = service.update_status(admin, booking.id, "completed")
        assert completed.status == BookingStatus.COMPLETED.value
        assert completed.completed_at is not None

    @pytest.mark.parametrize(
        "initial, target",
        [
            ("pending", "completed"),
            ("confirmed", "pending"),
            ("completed", "confirmed"),
            ("cancelled", "confirmed"),
        ],
    )
    def test_invalid_transitions(
        self, service, admin, member, space, slot, booking_factory, initial, target
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, status=initial)

        with pytest.raises(BusinessRuleException) as exc:
            service.update_status(admin, booking.id, target)

        assert exc.value.code == "INVALID_TRANSITION"

    def test_admin_cancellation_uses_refund_path(
        self, service, admin, member, space, booking_factory, fake_stripe
    ):
        booking = booking_factory(member, space, *_starting_in(48), paid=True)

        cancelled = service.update_status(admin, booking.id, "cancelled")

        assert cancelled.status == BookingStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "Cancelled by admin"
        assert fake_stripe.count("refund") == 1

    def test_completed_booking_cannot_be_cancelled(
        self, service, admin, member, space, slot, booking_factory
    ):
        start, end = slot(days=3)
        booking = booking_factory(member, space, start, end, status="completed")

        with pytest.raises(BusinessRuleException):
            service.update_status(admin, booking.id, "cancelled")

    def test_paid_cash_booking_refund_is_recorded_for_the_desk(
        self, db, service, member, space, booking_factory, fake_stripe
    ):
        booking = booking_factory(
            member, space, *_starting_in(48), payment_method="cash", paid=True
        )

        result = service.cancel_booking(member, booking.id)

        assert result["refund"]["refunded"] == 40.0
        [payment] = _payments(db, booking)
        assert payment.status == PaymentStatus.REFUNDED.value
        assert payment.refund_amount == Decimal("40.00")
        assert "front desk" in payment.refund_reason
        assert result["booking"].payment_status == BookingPaymentStatus.REFUNDED.value
        assert fake_stripe.count("refund") == 0

    def test_cash_refund_adds_to_amount_owed_from_shortening(
        self, db, service, member, space, booking_factory
    ):
        start = utcnow() + timedelta(hours=72)
        booking = booking_factory(
            member, space, start, start + timedelta(hours=4), payment_method="cash", paid=True
        )
        service.modify_booking(
            member, booking.id, BookingUpdate(end_time=start + timedelta(hours=2))
        )
        [payment] = _payments(db, booking)
        assert payment.refund_amount == Decimal("40.00")

        result = service.cancel_booking(member, booking.id)

        assert result["refund"]["refunded"] == 40.0
        [payment] = _payments(db, booking)
        assert payment.amount == Decimal("80.00")
        assert payment.refund_amount == Decimal("80.00")
        assert payment.status == PaymentStatus.REFUNDED.value
        assert result["booking"].payment_status == BookingPaymentStatus.REFUNDED.value

    def test_cash_refund_never_exceeds_what_was_paid(
        self, db, service, member, space, booking_factory
    ):
        booking = booking_factory(
            member, space, *_starting_in(48), payment_method="cash", paid=True
        )
        [payment] = _payments(db, booking)
        payment.refund_amount = Decimal("30.00")
        db.commit()

        result = service.cancel_booking(member, booking.id)

        assert result["refund"]["refunded"] == 10.0
        [payment] = _payments(db, booking)
        assert payment.refund_amount == Decimal("40.00")
        assert result["booking"].payment_status == BookingPaymentStatus.PARTIALLY_REFUNDED.value
