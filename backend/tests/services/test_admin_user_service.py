import pytest

from coworking.core.exceptions import (
    BusinessRuleException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from coworking.repositories.user_repository import UserRepository
from coworking.services.admin_user_service import AdminUserService


@pytest.fixture
def service(db):
    return AdminUserService(db)


def test_update_member(service, admin, member):
    updated = service.update_user(
        admin, member.id, {"membership_type": "premium", "company": "Acme", "hashed_password": "x"}
    )

    assert updated.membership_type == "premium"
    assert updated.company == "Acme"
    assert updated.hashed_password != "x"


@pytest.mark.parametrize(
    "field, value",
    [("role", "owner"), ("membership_type", "gold"), ("status", "banned")],
)
def test_invalid_choices(service, admin, member, field, value):
    with pytest.raises(ValidationException) as exc:
        service.update_user(admin, member.id, {field: value})
    assert exc.value.code == "INVALID_CHOICE"


def test_other_admins_are_off_limits(service, admin, user_factory):
    other_admin = user_factory(role="admin")

    with pytest.raises(ForbiddenException):
        service.update_user(admin, other_admin.id, {"company": "Acme"})
    with pytest.raises(ForbiddenException):
        service.update_status(admin, other_admin.id, "suspended")


def test_admin_cannot_demote_or_suspend_self(service, admin):
    with pytest.raises(BusinessRuleException):
        service.update_user(admin, admin.id, {"role": "member"})
    with pytest.raises(BusinessRuleException):
        service.update_status(admin, admin.id, "inactive")

    assert service.update_user(admin, admin.id, {"company": "HQ"}).company == "HQ"


def test_email_conflict(service, admin, member, other_member):
    with pytest.raises(ConflictException):
        service.update_user(admin, member.id, {"email": other_member.email})


def test_suspend_member(service, admin, member):
    assert service.update_status(admin, member.id, "suspended").status == "suspended"
    assert not member.is_active


def test_delete_member_without_bookings(db, service, admin, user_factory):
    user = user_factory()

    service.delete_user(admin, user.id)

    assert UserRepository(db).get_by_id(user.id) is None


def test_cannot_delete_with_active_bookings(service, admin, member, space, slot, booking_factory):
    booking_factory(member, space, *slot(days=3))

    with pytest.raises(BusinessRuleException) as exc:
        service.delete_user(admin, member.id)
    assert exc.value.code == "USER_HAS_BOOKINGS"


def test_booking_history_blocks_deletion(service, admin, member, space, slot, booking_factory):
    booking_factory(member, space, *slot(days=3), status="cancelled")

    with pytest.raises(ConflictException) as exc:
        service.delete_user(admin, member.id)
    assert exc.value.code == "USER_HAS_HISTORY"


def test_admins_cannot_be_deleted(service, admin):
    with pytest.raises(ForbiddenException):
        service.delete_user(admin, admin.id)


def test_unknown_user(service, admin):
    with pytest.raises(NotFoundException):
        service.get_user("01HZZZZZZZZZZZZZZZZZZZZZZZ")


def test_list_users_filters(service, admin, member, other_member):
    users, total = service.list_users(role="member")
    assert total == 2
    assert {u.id for u in users} == {member.id, other_member.id}
