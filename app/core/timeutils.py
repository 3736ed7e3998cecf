"""Wall-clock and timezone helpers for scheduling.

Instants are stored and compared in UTC. Provider working hours are kept as
``HH:MM`` strings in the provider's own IANA timezone and are resolved to UTC
instants for a given calendar date.
"""

import re
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

WALL_CLOCK_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")


class InvalidTimeFormat(ValueError):
    """Raised when a wall-clock string is not a valid HH:MM time."""


class InvalidTimezone(ValueError):
    """Raised when a timezone name is not a known IANA zone."""


class Weekday(str, Enum):
    """Day of week, in ``date.weekday()`` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


WEEKDAYS: tuple[Weekday, ...] = tuple(Weekday)


def weekday_of(day: date) -> Weekday:
    """Return the weekday name for a calendar date."""
    return WEEKDAYS[day.weekday()]


def parse_wall_clock(value: str) -> tuple[int, int]:
    """
    Parse an ``HH:MM`` string.

    Args:
        value: Wall-clock time, e.g. ``"08:30"`` or ``"8:30"``

    Returns:
        (hour, minute) tuple

    Raises:
        InvalidTimeFormat: If the string is malformed or out of range
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(f"Invalid time format: {value!r}")
    match = WALL_CLOCK_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeFormat(f"Invalid time format: {value!r}")
    return int(match.group(1)), int(match.group(2))


def minutes_since_midnight(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight."""
    hour, minute = parse_wall_clock(value)
    return hour * 60 + minute


def get_zone(name: str) -> ZoneInfo:
    """
    Look up an IANA timezone.

    Raises:
        InvalidTimezone: If the name is empty or unknown
    """
    if not name:
        raise InvalidTimezone("Timezone is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidTimezone(f"Unknown timezone: {name}") from e


def resolve_wall_clock(day: date, wall_clock: str, timezone: str) -> datetime:
    """
    Resolve a wall-clock time on a calendar date in a timezone to a UTC instant.

    The offset is taken for that specific date, so the same ``"09:00"`` maps to
    different UTC instants on either side of a daylight-saving transition.

    Args:
        day: Calendar date in the target timezone
        wall_clock: ``HH:MM`` string
        timezone: IANA timezone name

    Returns:
        Timezone-aware datetime in UTC
    """
    hour, minute = parse_wall_clock(wall_clock)
    zone = get_zone(timezone)
    local = datetime.combine(day, time(hour, minute), tzinfo=zone)
    return local.astimezone(UTC)


def local_day_bounds(day: date, timezone: str) -> tuple[datetime, datetime]:
    """Return the half-open UTC interval covering ``day`` in ``timezone``."""
    zone = get_zone(timezone)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(UTC), end.astimezone(UTC)


def to_local(instant: datetime, timezone: str) -> datetime:
    """Express a UTC instant in the given timezone."""
    return ensure_utc(instant).astimezone(get_zone(timezone))


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, rounded to the nearest minute."""
    return round((ensure_utc(end) - ensure_utc(start)).total_seconds() / 60)


def utcnow() -> datetime:
    """Current time as aware UTC."""
    return datetime.now(UTC)
