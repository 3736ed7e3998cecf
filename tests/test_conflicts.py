"""Tests for the conflict detector."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from app.services.conflicts import (
    BookedInterval,
    clashes,
    find_conflicts,
    has_conflict,
    intervals_overlap,
)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2030, 1, 7, hour, minute, tzinfo=UTC)


def booked(start: datetime, minutes: int = 60, before: int = 15, after: int = 15) -> BookedInterval:
    return BookedInterval(
        start=start,
        end=start + timedelta(minutes=minutes),
        buffer_before=before,
        buffer_after=after,
        appointment_id=uuid4(),
    )


def test_intervals_overlap_half_open():
    """Touching intervals do not overlap."""
    assert intervals_overlap(at(10), at(11), at(10, 30), at(11, 30))
    assert not intervals_overlap(at(10), at(11), at(11), at(12))
    assert not intervals_overlap(at(11), at(12), at(10), at(11))


def test_blocked_interval_includes_own_buffers():
    existing = booked(at(10))
    assert existing.blocked_start == at(9, 45)
    assert existing.blocked_end == at(11, 15)


def test_overlapping_request_conflicts():
    """10:30-11:30 against a 10:00-11:00 booking with 15-minute buffers."""
    existing = booked(at(10))
    check = has_conflict(at(10, 30), at(11, 30), [existing], 15, 15)
    assert check.conflict is True
    assert check.appointment_id == existing.appointment_id
    assert check.reason == "Conflicts with appointment at 10:00"


def test_adjacent_to_buffer_is_free():
    """11:15-12:15 starts exactly where the existing buffer ends."""
    existing = booked(at(10))
    check = has_conflict(at(11, 15), at(12, 15), [existing], 15, 15)
    assert check.conflict is False
    assert check.available is True
    assert check.reason is None


def test_request_inside_existing_buffer_conflicts():
    """A treatment may not start inside another booking's trailing buffer."""
    existing = booked(at(10))
    assert clashes(at(11, 5), at(12, 5), existing, 0, 0)


def test_request_buffer_over_existing_treatment_conflicts():
    """The proposed buffer may not cover another booking's treatment time."""
    existing = booked(at(10), before=0, after=0)
    assert clashes(at(11, 10), at(12, 10), existing, 15, 15)
    assert not clashes(at(11, 15), at(12, 15), existing, 15, 15)


def test_buffers_may_touch_each_other():
    """Two bookings whose buffers overlap but treatments stay clear are fine."""
    existing = booked(at(10))
    assert not clashes(at(11, 15), at(12, 15), existing, 15, 0)


def test_reason_uses_timezone():
    existing = booked(at(13))
    check = has_conflict(at(13), at(14), [existing], timezone="America/Sao_Paulo")
    assert check.reason == "Conflicts with appointment at 10:00"


def test_has_conflict_stops_at_first_clash():
    first = booked(at(10))
    second = booked(at(10, 30), minutes=30)
    check = has_conflict(at(10), at(11), [first, second])
    assert check.appointment_id == first.appointment_id


def test_find_conflicts_lists_every_clash():
    first = booked(at(9))
    second = booked(at(11))
    clear = booked(at(15))
    found = find_conflicts(at(9, 30), at(11, 30), [first, second, clear])
    assert [c.appointment_id for c in found] == [first.appointment_id, second.appointment_id]


def test_no_existing_bookings():
    assert has_conflict(at(10), at(11), []).conflict is False
