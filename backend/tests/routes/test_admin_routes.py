from datetime import timedelta

import pytest

from coworking.core.timezone_utils import utcnow
from coworking.repositories.payment_repository import PaymentRepository


@pytest.mark.parametrize(
    "method, path",
    [
        ("get", "/api/admin/users"),
        ("get", "/api/admin/bookings"),
        ("get", "/api/admin/payments"),
        ("get", "/api/admin/settings"),
        ("get", "/api/admin/analytics"),
        ("post", "/api/admin/spaces"),
    ],
)
def test_members_are_forbidden(client, auth_headers, method, path):
    response = getattr(client, method)(path, headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["title"] == "Forbidden"


class TestUsers:
    def test_list_and_search(self, client, admin_headers, member, other_member):
        body = client.get(
            "/api/admin/users", params={"search": "bob"}, headers=admin_headers
        ).json()

        assert body["total"] == 1
        assert body["items"][0]["id"] == other_member.id

    def test_update_membership(self, client, admin_headers, member):
        response = client.put(
            f"/api/admin/users/{member.id}",
            json={"membershipType": "premium"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["membership_type"] == "premium"

    def test_suspended_member_loses_access(self, client, admin_headers, auth_headers, member):
        response = client.put(
            f"/api/admin/users/{member.id}/status",
            json={"status": "suspended"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert client.get("/api/auth/me", headers=auth_headers).status_code == 401

    def test_delete(self, client, admin_headers, user_factory):
        user = user_factory()

        path = f"/api/admin/users/{user.id}"

        assert client.delete(path, headers=admin_headers).status_code == 204
        assert client.get(path, headers=admin_headers).status_code == 404


class TestSpaces:
    def test_create_update_delete(self, client, admin_headers):
        created = client.post(
            "/api/admin/spaces",
            json={"name": "Corner Office", "type": "office", "capacity": 3, "hourly_rate": 30},
            headers=admin_headers,
        )
        assert created.status_code == 201
        space_id = created.json()["id"]

        updated = client.put(
            f"/api/admin/spaces/{space_id}", json={"capacity": 4}, headers=admin_headers
        )
        assert updated.json()["capacity"] == 4

        deleted = client.delete(f"/api/admin/spaces/{space_id}", headers=admin_headers)
        assert deleted.status_code == 204

    def test_space_in_use_cannot_be_deleted(
        self, client, admin_headers, member, space, slot, booking_factory
    ):
        booking_factory(member, space, *slot(days=3))

        response = client.delete(f"/api/admin/spaces/{space.id}", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["code"] == "SPACE_HAS_BOOKINGS"


class TestBookings:
    def test_list_with_filters(self, client, admin_headers, member, space, slot, booking_factory):
        booking_factory(member, space, *slot(days=3))
        booking_factory(member, space, *slot(days=4), payment_method="cash")

        body = client.get(
            "/api/admin/bookings", params={"status": "pending"}, headers=admin_headers
        ).json()

        assert body["total"] == 1
        assert body["items"][0]["payment_method"] == "cash"

    def test_confirm_pending_booking(
        self, client, admin_headers, member, space, slot, booking_factory
    ):
        booking = booking_factory(member, space, *slot(days=3), payment_method="cash")

        response = client.put(
            f"/api/admin/bookings/{booking.id}/status",
            json={"status": "confirmed"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"

    def test_invalid_transition(self, client, admin_headers, member, space, slot, booking_factory):
        booking = booking_factory(member, space, *slot(days=3), payment_method="cash")

        response = client.put(
            f"/api/admin/bookings/{booking.id}/status",
            json={"status": "completed"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TRANSITION"


class TestPayments:
    def test_mark_cash_payment_paid(
        self, db, client, admin_headers, member, space, slot, booking_factory
    ):
        booking = booking_factory(member, space, *slot(days=3), payment_method="cash")
        [payment] = PaymentRepository(db).get_for_booking(booking.id)

        response = client.post(
            f"/api/admin/payments/{payment.id}/mark-paid", headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["status"] == "succeeded"

    def test_card_payment_cannot_be_marked_paid(
        self, db, client, admin_headers, member, space, slot, booking_factory
    ):
        booking = booking_factory(member, space, *slot(days=3))
        [payment] = PaymentRepository(db).get_for_booking(booking.id)

        response = client.post(
            f"/api/admin/payments/{payment.id}/mark-paid", headers=admin_headers
        )

        assert response.json()["code"] == "NOT_CASH_PAYMENT"

    def test_refund(
        self, db, client, admin_headers, stripe_in_app, member, space, slot, booking_factory
    ):
        booking = booking_factory(member, space, *slot(days=3), paid=True)
        [payment] = PaymentRepository(db).get_for_booking(booking.id)

        response = client.post(
            f"/api/admin/payments/{payment.id}/refund",
            json={"reason": "Room flooded"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "refunded"
        assert response.json()["refund_amount"] == 40.0
        assert stripe_in_app.count("refund") == 1

    def test_list_and_stats(self, client, admin_headers, member, space, slot, booking_factory):
        booking_factory(member, space, *slot(days=3), paid=True)
        booking_factory(member, space, *slot(days=4), payment_method="cash")

        listing = client.get(
            "/api/admin/payments", params={"paymentMethod": "cash"}, headers=admin_headers
        ).json()
        stats = client.get("/api/admin/payments/stats", headers=admin_headers).json()

        assert listing["total"] == 1
        assert stats["total_revenue"] == 40.0
        assert {row["method"] for row in stats["method_stats"]} == {"card", "cash"}


class TestSettings:
    def test_defaults(self, client, admin_headers):
        items = client.get("/api/admin/settings", headers=admin_headers).json()
        settings = {s["key"]: s["value"] for s in items}

        assert settings["bookingRules"]["maxDurationHours"] == 8

    def test_update_rules(self, client, admin_headers):
        rules = {"maxDurationHours": 4, "minAdvanceHours": 2, "maxAdvanceDays": 14}

        response = client.put(
            "/api/admin/settings",
            json={"settings": [{"key": "bookingRules", "value": rules}]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        updated = {s["key"]: s["value"] for s in response.json()}
        assert updated["bookingRules"] == rules

    def test_invalid_rules(self, client, admin_headers):
        response = client.put(
            "/api/admin/settings",
            json={"settings": [{"key": "bookingRules", "value": {"maxDurationHours": -1}}]},
            headers=admin_headers,
        )

        assert response.status_code == 400


class TestAnalytics:
    def test_analytics(self, client, admin_headers, member, space, slot, booking_factory):
        booking_factory(member, space, *slot(days=3), paid=True)
        today = utcnow().date()

        body = client.get(
            "/api/admin/analytics",
            params={
                "startDate": (today - timedelta(days=1)).isoformat(),
                "endDate": (today + timedelta(days=7)).isoformat(),
            },
            headers=admin_headers,
        ).json()

        assert body["totals"]["bookings"] == 1
        assert body["totals"]["revenue"] == 40.0

    def test_inverted_range(self, client, admin_headers):
        response = client.get(
            "/api/admin/analytics",
            params={"startDate": "2030-03-02", "endDate": "2030-03-01"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_RANGE"

    def test_dashboard(self, client, admin_headers, member, space):
        stats = client.get("/api/admin/dashboard/stats", headers=admin_headers).json()

        assert stats["total_users"] == 2
        assert stats["total_spaces"] == 1
