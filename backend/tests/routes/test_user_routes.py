from conftest import TEST_PASSWORD


def test_profile_roundtrip(client, auth_headers, member):
    updated = client.put(
        "/api/user/profile", json={"company": "Acme", "phone": "+1 555 0100"}, headers=auth_headers
    )

    assert updated.status_code == 200
    profile = client.get("/api/user/profile", headers=auth_headers).json()
    assert profile["company"] == "Acme"
    assert profile["id"] == member.id


def test_profile_cannot_change_role(client, auth_headers):
    response = client.put("/api/user/profile", json={"role": "admin"}, headers=auth_headers)
    assert response.status_code == 400


def test_change_password(client, auth_headers, member):
    response = client.put(
        "/api/user/security/password",
        json={"currentPassword": TEST_PASSWORD, "newPassword": "another-pass-1"},
        headers=auth_headers,
    )
    assert response.status_code == 200

    login = client.post(
        "/api/auth/login", json={"email": member.email, "password": "another-pass-1"}
    )
    assert login.status_code == 200


def test_wrong_current_password(client, auth_headers):
    response = client.put(
        "/api/user/security/password",
        json={"currentPassword": "wrong", "newPassword": "another-pass-1"},
        headers=auth_headers,
    )

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_PASSWORD"


def test_activities_use_metadata_key(client, auth_headers):
    client.put("/api/user/profile", json={"company": "Acme"}, headers=auth_headers)

    [activity] = client.get("/api/user/activities", headers=auth_headers).json()

    assert activity["type"] == "profile_update"
    assert activity["metadata"] == {"fields": ["company"]}


def test_account_deletion_request_and_cancel(client, auth_headers):
    requested = client.post("/api/user/account/delete", headers=auth_headers)

    assert requested.status_code == 200
    assert requested.json()["deletion_requested_at"]

    again = client.post("/api/user/account/delete", headers=auth_headers)
    assert again.status_code == 400

    assert client.delete("/api/user/account/delete", headers=auth_headers).status_code == 200


def test_dashboard(client, auth_headers, member, space, slot, booking_factory):
    booking_factory(member, space, *slot(days=3), paid=True)

    stats = client.get("/api/user/dashboard/stats", headers=auth_headers).json()
    recent = client.get("/api/user/dashboard/recent-bookings", headers=auth_headers).json()

    assert stats == {"active_bookings": 1, "total_hours": 2.0, "total_spent": 40.0}
    assert recent[0]["space"]["name"] == "Harbor Meeting Room"
