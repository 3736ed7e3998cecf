"""Tests for wall-clock and timezone helpers."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from app.core.timeutils import (
    InvalidTimeFormat,
    InvalidTimezone,
    Weekday,
    ensure_utc,
    get_zone,
    local_day_bounds,
    minutes_between,
    minutes_since_midnight,
    parse_wall_clock,
    resolve_wall_clock,
    to_local,
    weekday_of,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [("08:30", (8, 30)), ("8:05", (8, 5)), ("00:00", (0, 0)), ("23:59", (23, 59))],
)
def test_parse_wall_clock(value, expected):
    """Valid HH:MM strings parse to (hour, minute)."""
    assert parse_wall_clock(value) == expected


@pytest.mark.parametrize("value", ["24:00", "12:60", "noon", "", "12-30", "7"])
def test_parse_wall_clock_rejects_malformed(value):
    """Malformed or out-of-range times raise InvalidTimeFormat."""
    with pytest.raises(InvalidTimeFormat):
        parse_wall_clock(value)


def test_minutes_since_midnight():
    assert minutes_since_midnight("09:15") == 555


def test_weekday_of():
    assert weekday_of(date(2030, 1, 7)) == Weekday.MONDAY
    assert weekday_of(date(2030, 1, 13)) == Weekday.SUNDAY


def test_get_zone_unknown():
    """Unknown or empty zone names raise InvalidTimezone."""
    with pytest.raises(InvalidTimezone):
        get_zone("Mars/Olympus_Mons")
    with pytest.raises(InvalidTimezone):
        get_zone("")


def test_resolve_wall_clock_sao_paulo():
    """Sao Paulo is UTC-3 in January."""
    resolved = resolve_wall_clock(date(2030, 1, 7), "08:00", "America/Sao_Paulo")
    assert resolved == datetime(2030, 1, 7, 11, 0, tzinfo=UTC)
    assert resolved.tzinfo == UTC


def test_resolve_wall_clock_follows_dst():
    """The same wall-clock time resolves to different instants across a DST change."""
    before = resolve_wall_clock(date(2030, 3, 8), "09:00", "America/New_York")
    after = resolve_wall_clock(date(2030, 3, 11), "09:00", "America/New_York")
    assert before == datetime(2030, 3, 8, 14, 0, tzinfo=UTC)
    assert after == datetime(2030, 3, 11, 13, 0, tzinfo=UTC)


def test_local_day_bounds_on_dst_day():
    """A spring-forward day is 23 hours long."""
    start, end = local_day_bounds(date(2030, 3, 10), "America/New_York")
    assert start == datetime(2030, 3, 10, 5, 0, tzinfo=UTC)
    assert end - start == timedelta(hours=23)


def test_to_local():
    local = to_local(datetime(2030, 1, 7, 13, 0, tzinfo=UTC), "America/Sao_Paulo")
    assert (local.hour, local.minute) == (10, 0)


def test_ensure_utc():
    """Naive values are taken as UTC; aware values are converted."""
    assert ensure_utc(datetime(2030, 1, 7, 10, 0)) == datetime(2030, 1, 7, 10, 0, tzinfo=UTC)
    offset = datetime(2030, 1, 7, 10, 0, tzinfo=timezone(timedelta(hours=-3)))
    assert ensure_utc(offset) == datetime(2030, 1, 7, 13, 0, tzinfo=UTC)


def test_minutes_between_rounds():
    start = datetime(2030, 1, 7, 10, 0, tzinfo=UTC)
    assert minutes_between(start, start + timedelta(minutes=44, seconds=40)) == 45
    assert minutes_between(start, start + timedelta(minutes=30)) == 30
