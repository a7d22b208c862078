from datetime import timedelta

import pytest

from coworking.repositories.booking_repository import BookingRepository


@pytest.fixture
def repo(db):
    return BookingRepository(db)


@pytest.fixture
def existing(member, space, slot, booking_factory):
    start, end = slot(days=3, hour=10, hours=2)
    return booking_factory(member, space, start, end)


def test_overlap_is_a_conflict(repo, existing, space):
    start = existing.start_time + timedelta(hours=1)
    conflicts = repo.find_conflicts(space.id, start, start + timedelta(hours=2))
    assert [b.id for b in conflicts] == [existing.id]


def test_touching_intervals_do_not_conflict(repo, existing, space):
    end = existing.end_time
    assert not repo.has_conflict(space.id, end, end + timedelta(hours=1))
    start = existing.start_time
    assert not repo.has_conflict(space.id, start - timedelta(hours=1), start)


def test_enclosing_interval_conflicts(repo, existing, space):
    assert repo.has_conflict(
        space.id,
        existing.start_time - timedelta(hours=1),
        existing.end_time + timedelta(hours=1),
    )


def test_excluded_booking_is_ignored(repo, existing, space):
    assert not repo.has_conflict(
        space.id, existing.start_time, existing.end_time, exclude_booking_id=existing.id
    )


def test_other_space_does_not_conflict(repo, existing, hot_desk):
    assert not repo.has_conflict(hot_desk.id, existing.start_time, existing.end_time)


@pytest.mark.parametrize(
    "status, blocks", [("pending", True), ("cancelled", False), ("completed", False)]
)
def test_only_active_statuses_block(repo, member, space, slot, booking_factory, status, blocks):
    start, end = slot(days=4)
    booking_factory(member, space, start, end, status=status)

    assert repo.has_conflict(space.id, start, end) is blocks


def test_future_group_members(repo, member, space, slot, booking_factory):
    group = "grp-1"
    first = booking_factory(member, space, *slot(days=2), recurring_group_id=group)
    second = booking_factory(member, space, *slot(days=9), recurring_group_id=group)
    booking_factory(member, space, *slot(days=16), recurring_group_id=group, status="cancelled")

    siblings = repo.get_future_group_members(group, first.start_time, exclude_booking_id=first.id)

    assert [b.id for b in siblings] == [second.id]
    assert len(repo.get_group_members(group)) == 3


def test_find_conflicts_agrees_with_has_conflict(repo, existing, space):
    end = existing.end_time
    windows = [
        (existing.start_time, end),
        (end, end + timedelta(hours=1)),
        (end - timedelta(minutes=1), end + timedelta(hours=1)),
    ]
    for start, stop in windows:
        found = repo.find_conflicts(space.id, start, stop)
        assert bool(found) is repo.has_conflict(space.id, start, stop)
    assert repo.find_conflicts(space.id, end, end + timedelta(hours=1)) == []
