import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from coworking.core import config
from coworking.events import handlers
from coworking.repositories.background_job_repository import BackgroundJobRepository
from coworking.repositories.payment_repository import PaymentRepository
from coworking.services.booking_service import REFUND_ADJUSTMENT_JOB
from coworking.tasks.background_jobs import process_due_jobs


@pytest.fixture
def jobs(db):
    return BackgroundJobRepository(db)


@pytest.fixture
def notifications(monkeypatch):
    """Replace the notification service used by event handlers."""
    service = MagicMock()
    monkeypatch.setattr(handlers, "NotificationService", lambda db: service)
    return service


def _enqueue(jobs, db, job_type, payload):
    job_id = jobs.enqueue(type=job_type, payload=json.dumps(payload))
    db.commit()
    return job_id


def test_event_job_succeeds(db, jobs, notifications, member, space, slot, booking_factory):
    booking = booking_factory(member, space, *slot(days=3))
    job_id = _enqueue(jobs, db, "event:BookingCreated", {"booking_id": booking.id})

    counts = process_due_jobs(db)

    assert counts == {"succeeded": 1, "retried": 0, "dead_letter": 0}
    assert jobs.get(job_id).status == "succeeded"
    notifications.send_booking_confirmation.assert_called_once()


@pytest.mark.parametrize("job_type", ["mystery.job", "event:SomethingElse"])
def test_unknown_jobs_are_consumed(db, jobs, job_type):
    job_id = _enqueue(jobs, db, job_type, {})

    assert process_due_jobs(db)["succeeded"] == 1
    assert jobs.get(job_id).status == "succeeded"


def test_missing_booking_is_not_an_error(db, jobs, notifications):
    _enqueue(jobs, db, "event:BookingCancelled", {"booking_id": "01HZZZZZZZZZZZZZZZZZZZZZZZ"})

    assert process_due_jobs(db)["succeeded"] == 1
    notifications.send_cancellation_notification.assert_not_called()


def test_failing_handler_is_retried(db, jobs, notifications, member, space, slot, booking_factory):
    notifications.send_booking_confirmation.side_effect = RuntimeError("smtp down")
    booking = booking_factory(member, space, *slot(days=3))
    job_id = _enqueue(jobs, db, "event:BookingCreated", {"booking_id": booking.id})

    counts = process_due_jobs(db)

    db.expire_all()
    job = jobs.get(job_id)
    assert counts["retried"] == 1
    assert job.status == "queued"
    assert job.attempts == 1
    assert job.last_error == "smtp down"
    # Backoff keeps it out of the next poll
    assert process_due_jobs(db) == {"succeeded": 0, "retried": 0, "dead_letter": 0}


def test_exhausted_job_goes_to_dead_letter(
    db, jobs, notifications, monkeypatch, member, space, slot, booking_factory
):
    monkeypatch.setattr(config.settings, "jobs_max_attempts", 1)
    notifications.send_booking_confirmation.side_effect = RuntimeError("smtp down")
    booking = booking_factory(member, space, *slot(days=3))
    job_id = _enqueue(jobs, db, "event:BookingCreated", {"booking_id": booking.id})

    assert process_due_jobs(db)["dead_letter"] == 1
    db.expire_all()
    assert jobs.get(job_id).status == "failed"


class TestReminders:
    def _reminder(self, jobs, db, booking, start_time):
        payload = {"booking_id": booking.id, "hours_before": 24, "start_time": start_time}
        return _enqueue(jobs, db, "event:BookingReminder", payload)

    def test_reminder_is_sent(self, db, jobs, notifications, member, space, slot, booking_factory):
        booking = booking_factory(member, space, *slot(days=3))
        self._reminder(jobs, db, booking, booking.start_time.isoformat())

        process_due_jobs(db)

        notifications.send_booking_reminder.assert_called_once()
        assert notifications.send_booking_reminder.call_args.args[1] == 24

    def test_reminder_for_moved_booking_is_skipped(
        self, db, jobs, notifications, member, space, slot, booking_factory
    ):
        booking = booking_factory(member, space, *slot(days=3))
        old_start, _ = slot(days=5)
        self._reminder(jobs, db, booking, old_start.isoformat())

        assert process_due_jobs(db)["succeeded"] == 1
        notifications.send_booking_reminder.assert_not_called()


class TestRefundAdjustmentJobs:
    def _job(self, jobs, db, payment, amount="10.00"):
        payload = {
            "payment_id": payment.id,
            "amount": amount,
            "idempotency_key": f"booking-adjust-{payment.booking_id}-{payment.id}-0.00",
            "reason": "Booking shortened",
        }
        return _enqueue(jobs, db, REFUND_ADJUSTMENT_JOB, payload)

    def test_refund_is_applied(
        self, db, jobs, stripe_in_app, member, space, slot, booking_factory
    ):
        booking = booking_factory(member, space, *slot(days=3), paid=True)
        [payment] = PaymentRepository(db).get_for_booking(booking.id)
        self._job(jobs, db, payment)

        assert process_due_jobs(db)["succeeded"] == 1

        db.expire_all()
        assert Decimal(str(payment.refund_amount)) == Decimal("10.00")
        assert stripe_in_app.count("refund") == 1

    def test_provider_failure_is_retried(
        self, db, jobs, stripe_in_app, member, space, slot, booking_factory
    ):
        stripe_in_app.fail_refund = True
        booking = booking_factory(member, space, *slot(days=3), paid=True)
        [payment] = PaymentRepository(db).get_for_booking(booking.id)
        job_id = self._job(jobs, db, payment)

        assert process_due_jobs(db)["retried"] == 1
        db.expire_all()
        assert jobs.get(job_id).attempts == 1
        assert not payment.refund_amount
