from unittest.mock import Mock

import pytest

from coworking.core import config
from coworking.services.notification_service import NotificationService
from coworking.services.settings_service import SettingsService


@pytest.fixture
def email_service():
    return Mock()


@pytest.fixture
def email_on(monkeypatch):
    monkeypatch.setattr(config.settings, "email_enabled", True)


@pytest.fixture
def service(db, email_service):
    return NotificationService(db, email_service=email_service)


def _sent(email_service):
    return email_service.send_email.call_args.kwargs


def test_email_disabled_by_configuration(
    service, email_service, member, space, slot, booking_factory
):
    booking = booking_factory(member, space, *slot(days=3))

    assert service.send_booking_confirmation(booking) is False
    email_service.send_email.assert_not_called()


def test_cash_booking_gets_initiated_email(
    email_on, service, email_service, member, space, slot, booking_factory
):
    booking = booking_factory(member, space, *slot(days=3), payment_method="cash")

    assert service.send_booking_confirmation(booking, recurring_count=2) is True

    sent = _sent(email_service)
    assert sent["to_email"] == "alice@example.com"
    assert sent["subject"].startswith("Booking Initiated")
    assert "Harbor Meeting Room" in sent["html_content"]
    assert "$40.00" in sent["html_content"]
    assert "2 additional sessions" in sent["html_content"]


def test_card_booking_gets_confirmation(
    email_on, service, email_service, member, space, slot, booking_factory
):
    booking = booking_factory(member, space, *slot(days=3))

    service.send_booking_confirmation(booking)

    assert _sent(email_service)["subject"].startswith("Booking Confirmation")


def test_admin_can_switch_email_off(
    db, email_on, service, email_service, member, space, slot, booking_factory
):
    SettingsService(db).update([{"key": "notifications", "value": {"emailEnabled": False}}])
    booking = booking_factory(member, space, *slot(days=3))

    assert service.send_booking_reminder(booking, 24) is False
    email_service.send_email.assert_not_called()


def test_reminder_skips_cancelled_booking(
    email_on, service, email_service, member, space, slot, booking_factory
):
    booking = booking_factory(member, space, *slot(days=3), status="cancelled")

    assert service.send_booking_reminder(booking, 1) is False
    email_service.send_email.assert_not_called()


def test_payment_reminder_only_while_unpaid(
    email_on, service, email_service, member, space, slot, booking_factory
):
    unpaid = booking_factory(member, space, *slot(days=3), payment_method="cash")
    paid = booking_factory(member, space, *slot(days=4), payment_method="cash", paid=True)

    assert service.send_payment_reminder(paid, 24) is False
    assert service.send_payment_reminder(unpaid, 48) is True
    assert _sent(email_service)["subject"].startswith("Payment Reminder")


def test_cancellation_mentions_refund(
    email_on, service, email_service, member, space, slot, booking_factory
):
    booking = booking_factory(member, space, *slot(days=3), status="cancelled")

    service.send_cancellation_notification(booking, refund_amount=20.0, cancelled_siblings=1)

    assert "$20.00" in _sent(email_service)["html_content"]


def test_account_deletion_notice(email_on, service, email_service, member):
    assert service.send_account_deletion_requested(member) is True
    assert "30" in _sent(email_service)["html_content"]
