"""Candidate slot generation for one provider on one day."""

from collections.abc import Sequence
from datetime import date, timedelta

from app.core.timeutils import resolve_wall_clock
from app.schemas.appointment_types import AppointmentType, effective_buffers
from app.schemas.providers import Provider
from app.schemas.scheduling import TimeSlot
from app.services.conflicts import BookedInterval, has_conflict

DEFAULT_STEP_MINUTES = 15
DEFAULT_MAX_CANDIDATES = 200


def generate_slots(
    provider: Provider,
    appointment_type: AppointmentType,
    day: date,
    existing: Sequence[BookedInterval],
    *,
    step_minutes: int = DEFAULT_STEP_MINUTES,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> list[TimeSlot]:
    """
    Walk a provider's working window and emit the free slots.

    Each candidate occupies ``buffer_before + duration + buffer_after`` minutes
    and must fit entirely inside the working window. The returned slot is the
    visible treatment time, i.e. the candidate without its buffer padding.

    Args:
        provider: Provider with working hours, timezone and default buffers
        appointment_type: Type being booked
        day: Calendar date in the provider's timezone
        existing: Live bookings for the provider around that day
        step_minutes: Distance between consecutive candidate starts
        max_candidates: Upper bound on candidates tested

    Returns:
        Available slots ordered by start time
    """
    hours = provider.working_hours.for_date(day)
    if not hours.is_open:
        return []

    work_start = resolve_wall_clock(day, hours.start, provider.timezone)  # type: ignore[arg-type]
    work_end = resolve_wall_clock(day, hours.end, provider.timezone)  # type: ignore[arg-type]

    before, after = effective_buffers(provider, appointment_type)
    duration = timedelta(minutes=appointment_type.duration)
    total = timedelta(minutes=before + appointment_type.duration + after)
    step = timedelta(minutes=step_minutes)
    lead = timedelta(minutes=before)

    slots: list[TimeSlot] = []
    current = work_start
    tested = 0
    while current + total <= work_end and tested < max_candidates:
        start = current + lead
        end = start + duration
        check = has_conflict(start, end, existing, before, after)
        if not check.conflict:
            slots.append(
                TimeSlot(
                    start=start,
                    end=end,
                    available=True,
                    provider_id=provider.id,
                    appointment_type_id=appointment_type.id,
                )
            )
        current += step
        tested += 1

    return slots
