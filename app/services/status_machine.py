"""Appointment status transitions and their timeline side effects."""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from app.core.exceptions import InvalidStateTransitionException
from app.core.timeutils import minutes_between
from app.schemas.appointments import AppointmentStatus

S = AppointmentStatus

TERMINAL_STATUSES = frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW})

# Statuses that free the provider's calendar; stored as plain strings
INACTIVE_STATUSES = (S.CANCELLED.value, S.NO_SHOW.value)

RESCHEDULABLE_STATUSES = frozenset({S.SCHEDULED, S.CONFIRMED})

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    S.SCHEDULED: frozenset({S.CONFIRMED, S.CANCELLED, S.NO_SHOW}),
    S.CONFIRMED: frozenset({S.CHECKED_IN, S.CANCELLED, S.NO_SHOW}),
    S.CHECKED_IN: frozenset({S.IN_PROGRESS, S.CANCELLED, S.NO_SHOW}),
    S.IN_PROGRESS: frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}

# status -> timestamp fields stamped on entry (only when still empty)
STAMPED_FIELDS: dict[AppointmentStatus, tuple[str, ...]] = {
    S.CHECKED_IN: ("checked_in_at",),
    S.IN_PROGRESS: ("actual_start",),
    S.COMPLETED: ("actual_end", "completed_at"),
    S.CANCELLED: ("cancelled_at",),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """True when ``current -> target`` is allowed."""
    return target in TRANSITIONS[current]


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    """
    Reject a status change the state machine does not allow.

    Raises:
        InvalidStateTransitionException: If the move is not allowed
    """
    if can_transition(current, target):
        return
    if current == S.COMPLETED and target == S.CANCELLED:
        raise InvalidStateTransitionException("Completed appointments cannot be cancelled")
    if current in TERMINAL_STATUSES:
        raise InvalidStateTransitionException(
            f"Appointment is already {current.value} and cannot change status"
        )
    raise InvalidStateTransitionException(
        f"Cannot change appointment status from {current.value} to {target.value}"
    )


def derive_metrics(timeline: Mapping[str, Any]) -> dict[str, int | None]:
    """Recompute ``duration`` and ``wait_time`` from the realized timeline."""
    actual_start = timeline.get("actual_start")
    actual_end = timeline.get("actual_end")
    checked_in_at = timeline.get("checked_in_at")
    return {
        "duration": (
            minutes_between(actual_start, actual_end) if actual_start and actual_end else None
        ),
        "wait_time": (
            minutes_between(checked_in_at, actual_start)
            if checked_in_at and actual_start
            else None
        ),
    }


def after_transition(
    appointment: Mapping[str, Any],
    target: AppointmentStatus,
    now: datetime,
) -> dict[str, Any]:
    """
    Post-transition hook: stamp timeline fields and recompute derived metrics.

    Args:
        appointment: Current appointment row mapping
        target: Status being entered
        now: Transition time

    Returns:
        Field updates to persist alongside the new status
    """
    updates: dict[str, Any] = {}
    for field in STAMPED_FIELDS.get(target, ()):
        if appointment.get(field) is None:
            updates[field] = now

    timeline = {**dict(appointment), **updates}
    updates.update(derive_metrics(timeline))
    return updates


def transition(
    appointment: Mapping[str, Any],
    target: AppointmentStatus,
    now: datetime,
) -> dict[str, Any]:
    """
    Validate a status change and build the full update.

    Returns:
        Field updates including the new status
    """
    current = AppointmentStatus(appointment["status"])
    ensure_transition(current, target)
    updates = after_transition(appointment, target, now)
    updates["status"] = target.value
    return updates
