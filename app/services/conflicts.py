"""Conflict detection between a proposed appointment and existing bookings.

Every appointment has a *visible* interval ``[start, end)`` (treatment time)
and a *blocked* interval ``[start - buffer_before, end + buffer_after)``.
Existing bookings carry the buffers that were in effect when they were booked;
the proposed appointment uses the buffers of the type being booked. Two
appointments conflict when either one's treatment time falls inside the
other's blocked interval. Buffers may touch or overlap other buffers.

All intervals are half-open, so back-to-back bookings never conflict.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from app.core.timeutils import ensure_utc, to_local
from app.schemas.scheduling import ConflictCheck


@dataclass(frozen=True)
class BookedInterval:
    """An existing appointment as seen by the conflict detector."""

    start: datetime
    end: datetime
    buffer_before: int = 0
    buffer_after: int = 0
    appointment_id: UUID | None = None

    @property
    def blocked_start(self) -> datetime:
        return self.start - timedelta(minutes=self.buffer_before)

    @property
    def blocked_end(self) -> datetime:
        return self.end + timedelta(minutes=self.buffer_after)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "BookedInterval":
        """Build from an ``appointments`` row mapping."""
        return cls(
            start=ensure_utc(row["scheduled_start"]),
            end=ensure_utc(row["scheduled_end"]),
            buffer_before=row.get("buffer_before") or 0,
            buffer_after=row.get("buffer_after") or 0,
            appointment_id=row.get("id"),
        )


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap test for ``[a_start, a_end)`` and ``[b_start, b_end)``."""
    return not (a_end <= b_start or a_start >= b_end)


def clashes(
    proposed_start: datetime,
    proposed_end: datetime,
    existing: BookedInterval,
    buffer_before: int = 0,
    buffer_after: int = 0,
) -> bool:
    """True when the proposed appointment and ``existing`` cannot coexist."""
    blocked_start = proposed_start - timedelta(minutes=buffer_before)
    blocked_end = proposed_end + timedelta(minutes=buffer_after)
    return intervals_overlap(
        proposed_start, proposed_end, existing.blocked_start, existing.blocked_end
    ) or intervals_overlap(blocked_start, blocked_end, existing.start, existing.end)


def conflict_reason(existing: BookedInterval, timezone: str | None = None) -> str:
    """Human-readable reason naming the clashing appointment's start time."""
    start = to_local(existing.start, timezone) if timezone else existing.start
    return f"Conflicts with appointment at {start:%H:%M}"


def has_conflict(
    proposed_start: datetime,
    proposed_end: datetime,
    existing: Iterable[BookedInterval],
    buffer_before: int = 0,
    buffer_after: int = 0,
    timezone: str | None = None,
) -> ConflictCheck:
    """
    Check a proposed appointment against existing bookings.

    Stops at the first clash.

    Args:
        proposed_start: Start of the proposed treatment time
        proposed_end: End of the proposed treatment time
        existing: Booked intervals for the same provider
        buffer_before: Buffer before the proposed appointment, in minutes
        buffer_after: Buffer after the proposed appointment, in minutes
        timezone: Timezone used to format the reason (UTC when omitted)

    Returns:
        ConflictCheck with the first clashing appointment, if any
    """
    for interval in existing:
        if clashes(proposed_start, proposed_end, interval, buffer_before, buffer_after):
            return ConflictCheck(
                conflict=True,
                reason=conflict_reason(interval, timezone),
                appointment_id=interval.appointment_id,
            )
    return ConflictCheck(conflict=False)


def find_conflicts(
    proposed_start: datetime,
    proposed_end: datetime,
    existing: Iterable[BookedInterval],
    buffer_before: int = 0,
    buffer_after: int = 0,
) -> list[BookedInterval]:
    """Return every booking that clashes with the proposed appointment."""
    return [
        interval
        for interval in existing
        if clashes(proposed_start, proposed_end, interval, buffer_before, buffer_after)
    ]
