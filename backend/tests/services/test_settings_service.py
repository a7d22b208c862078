from datetime import timedelta

import pytest

from coworking.core.exceptions import BusinessRuleException, ValidationException
from coworking.schemas.booking import BookingCreate
from coworking.services.booking_service import BookingService
from coworking.services.settings_service import DEFAULT_SETTINGS, SettingsService


@pytest.fixture
def service(db):
    return SettingsService(db)


def test_defaults_are_served_for_a_fresh_database(service):
    settings = {item["key"]: item for item in service.get_all()}

    assert set(settings) == set(DEFAULT_SETTINGS)
    assert settings["bookingRules"]["value"]["maxDurationHours"] == 8
    assert settings["bookingRules"]["updated_at"] is None

    rules = service.get_booking_rules()
    assert (rules.max_duration_hours, rules.min_advance_hours, rules.max_advance_days) == (
        8.0,
        1.0,
        30.0,
    )
    assert service.email_notifications_enabled() is True


def test_update_stores_values_and_keeps_unknown_keys(service):
    result = service.update(
        [
            {"key": "workingHours", "value": {"start": "08:00", "end": "20:00"}},
            {"key": "wifiPassword", "value": "hunter2", "description": "Guest wifi"},
        ]
    )

    by_key = {item["key"]: item for item in result}
    assert by_key["workingHours"]["value"] == {"start": "08:00", "end": "20:00"}
    assert by_key["workingHours"]["description"] == "Default working hours"
    assert by_key["wifiPassword"]["value"] == "hunter2"
    assert by_key["wifiPassword"]["description"] == "Guest wifi"
    assert service.get_value("wifiPassword") == "hunter2"


@pytest.mark.parametrize(
    "value, message",
    [
        ("strict", "bookingRules must be an object"),
        ({"maxDurationHours": -1}, "bookingRules.maxDurationHours must be a non-negative number"),
        ({"minAdvanceHours": "1"}, "bookingRules.minAdvanceHours must be a non-negative number"),
        ({"maxAdvanceDays": True}, "bookingRules.maxAdvanceDays must be a non-negative number"),
    ],
)
def test_booking_rules_are_validated(service, value, message):
    with pytest.raises(ValidationException) as exc:
        service.update([{"key": "bookingRules", "value": value}])

    assert exc.value.message == message
    # Nothing was written
    assert service.get_booking_rules().max_duration_hours == 8.0


def test_missing_key_is_rejected(service):
    with pytest.raises(ValidationException):
        service.update([{"value": 1}])


def test_notifications_toggle(service):
    service.update([{"key": "notifications", "value": {"emailEnabled": False}}])
    assert service.email_notifications_enabled() is False


def test_updated_rules_apply_to_new_bookings(db, service, member, space, slot, fake_stripe):
    service.update(
        [
            {
                "key": "bookingRules",
                "value": {"maxDurationHours": 1, "minAdvanceHours": 0, "maxAdvanceDays": 30},
            }
        ]
    )
    start, _ = slot(days=3)
    bookings = BookingService(db, stripe_service=fake_stripe)

    with pytest.raises(BusinessRuleException) as exc:
        bookings.create_booking(
            member,
            BookingCreate(
                space_id=space.id,
                start_time=start,
                end_time=start + timedelta(hours=2),
                payment_method="cash",
            ),
        )
    assert exc.value.code == "MAX_DURATION_EXCEEDED"

    result = bookings.create_booking(
        member,
        BookingCreate(
            space_id=space.id,
            start_time=start,
            end_time=start + timedelta(hours=1),
            payment_method="cash",
        ),
    )
    assert result["booking"].id
