"""Availability service: slot listing and interval checks.

Slot listing is an optimistic, non-transactional read. Its results are
advisory: the booking path re-checks the single chosen interval inside its
own transaction through :meth:`AvailabilityService.check_interval`.
"""

from collections.abc import Mapping
from datetime import date, datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import NotFoundException, ValidationException
from app.core.redis_client import CacheManager
from app.core.timeutils import (
    ensure_utc,
    local_day_bounds,
    minutes_between,
    resolve_wall_clock,
    to_local,
)
from app.models.appointment_types import appointment_types
from app.models.appointments import appointments
from app.models.providers import providers
from app.schemas.appointment_types import AppointmentType, effective_buffers
from app.schemas.providers import Provider
from app.schemas.scheduling import (
    AppointmentConflicts,
    ConflictCheck,
    IntervalAvailability,
    ProviderUtilization,
    StatusCounts,
    TimeSlot,
)
from app.services.conflicts import BookedInterval, find_conflicts, has_conflict
from app.services.slot_generator import generate_slots
from app.services.status_machine import INACTIVE_STATUSES

logger = structlog.get_logger()

# Largest buffer an appointment can carry; widens the lookup window so bookings
# just outside the day still count when their buffers reach into it.
MAX_BUFFER_MINUTES = 120

# Range listings: longest date span and most slots returned
MAX_RANGE_DAYS = 90
MAX_RANGE_SLOTS = 10_000


class AvailabilityService:
    """Service for computing provider availability."""

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional cache."""
        self.db = db
        self.cache = cache_manager

    @staticmethod
    def _get_slots_cache_key(
        clinic_id: UUID,
        provider_id: UUID | None,
        appointment_type_id: UUID,
        day: date,
    ) -> str:
        """Generate cache key for a slot listing."""
        provider_part = provider_id or "all"
        return f"availability:{clinic_id}:{provider_part}:{appointment_type_id}:{day.isoformat()}"

    def invalidate(self, clinic_id: UUID) -> None:
        """Drop every cached slot listing for a clinic."""
        if self.cache:
            self.cache.delete_pattern(f"availability:{clinic_id}:*")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    @staticmethod
    def parse_provider(row: Mapping[str, Any]) -> Provider:
        """
        Build a Provider from a row, enforcing the working-hours invariants.

        Raises:
            ValidationException: If the stored configuration is invalid
        """
        try:
            return Provider.model_validate(dict(row))
        except ValidationError as e:
            raise ValidationException(
                f"Provider {row.get('id')} has an invalid scheduling configuration"
            ) from e

    async def load_appointment_type(
        self,
        clinic_id: UUID,
        appointment_type_id: UUID,
    ) -> AppointmentType | None:
        """Load an active appointment type of the clinic."""
        stmt = select(appointment_types).where(
            and_(
                appointment_types.c.id == appointment_type_id,
                appointment_types.c.clinic_id == clinic_id,
                appointment_types.c.is_active.is_(True),
            )
        )
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return AppointmentType.model_validate(dict(row)) if row else None

    async def load_provider(
        self,
        clinic_id: UUID,
        provider_id: UUID,
        for_update: bool = False,
    ) -> Provider | None:
        """
        Load an active provider of the clinic.

        Args:
            clinic_id: Tenant
            provider_id: Provider ID
            for_update: Lock the provider row for the rest of the transaction

        Returns:
            Provider or None if missing or inactive
        """
        stmt = select(providers).where(
            and_(
                providers.c.id == provider_id,
                providers.c.clinic_id == clinic_id,
                providers.c.is_active.is_(True),
            )
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        return self.parse_provider(row) if row else None

    async def eligible_providers(
        self,
        clinic_id: UUID,
        appointment_type_id: UUID,
        provider_id: UUID | None = None,
    ) -> list[Provider]:
        """
        Providers that can take an appointment type.

        With ``provider_id`` only that provider is considered; otherwise every
        active provider of the clinic offering the type. Providers with a broken
        configuration are skipped.
        """
        conditions = [
            providers.c.clinic_id == clinic_id,
            providers.c.is_active.is_(True),
        ]
        if provider_id:
            conditions.append(providers.c.id == provider_id)

        result = await self.db.execute(
            select(providers).where(and_(*conditions)).order_by(providers.c.id)
        )

        eligible: list[Provider] = []
        for row in result.mappings().all():
            try:
                provider = self.parse_provider(row)
            except ValidationException as e:
                logger.warning("provider_misconfigured", provider_id=str(row["id"]), error=e.message)
                continue
            if provider_id or provider.offers(appointment_type_id):
                eligible.append(provider)
        return eligible

    async def booked_intervals(
        self,
        provider: Provider,
        window_start: datetime,
        window_end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> list[BookedInterval]:
        """
        Live bookings of a provider that may clash with the given window.

        Cancelled and no-show appointments free their time. Only bookings of
        the provider's own clinic are considered.
        """
        margin = timedelta(minutes=MAX_BUFFER_MINUTES)
        conditions = [
            appointments.c.clinic_id == provider.clinic_id,
            appointments.c.provider_id == provider.id,
            appointments.c.status.not_in(INACTIVE_STATUSES),
            appointments.c.scheduled_start < window_end + margin,
            appointments.c.scheduled_end > window_start - margin,
        ]
        if exclude_appointment_id:
            conditions.append(appointments.c.id != exclude_appointment_id)

        stmt = (
            select(
                appointments.c.id,
                appointments.c.scheduled_start,
                appointments.c.scheduled_end,
                appointments.c.buffer_before,
                appointments.c.buffer_after,
            )
            .where(and_(*conditions))
            .order_by(appointments.c.scheduled_start)
        )
        result = await self.db.execute(stmt)
        return [BookedInterval.from_row(row) for row in result.mappings().all()]

    # ------------------------------------------------------------------
    # Slot listing (optimistic read)
    # ------------------------------------------------------------------

    async def provider_slots(
        self,
        provider: Provider,
        appointment_type: AppointmentType,
        day: date,
        exclude_appointment_id: UUID | None = None,
    ) -> list[TimeSlot]:
        """Available slots for one provider on one day."""
        day_start, day_end = local_day_bounds(day, provider.timezone)
        existing = await self.booked_intervals(
            provider, day_start, day_end, exclude_appointment_id
        )
        return generate_slots(
            provider,
            appointment_type,
            day,
            existing,
            step_minutes=settings.slot_interval_minutes,
            max_candidates=settings.max_slot_candidates,
        )

    async def get_available_slots(
        self,
        clinic_id: UUID,
        appointment_type_id: UUID,
        day: date,
        provider_id: UUID | None = None,
        exclude_appointment_id: UUID | None = None,
    ) -> list[TimeSlot]:
        """
        List available slots for an appointment type on a date.

        Args:
            clinic_id: Tenant
            appointment_type_id: Type being booked
            day: Calendar date (provider-local)
            provider_id: Restrict to one provider
            exclude_appointment_id: Ignore this appointment (used when rescheduling it)

        Returns:
            Slots across all eligible providers, ordered by start time

        Raises:
            NotFoundException: If the appointment type does not exist
        """
        appointment_type = await self.load_appointment_type(clinic_id, appointment_type_id)
        if not appointment_type:
            raise NotFoundException("Appointment type not found")

        use_cache = self.cache is not None and exclude_appointment_id is None
        cache_key = self._get_slots_cache_key(clinic_id, provider_id, appointment_type_id, day)
        if use_cache:
            cached = self.cache.get_json(cache_key)  # type: ignore[union-attr]
            if cached is not None:
                logger.debug("availability_cache_hit", key=cache_key)
                return [TimeSlot.model_validate(item) for item in cached]

        slots: list[TimeSlot] = []
        for provider in await self.eligible_providers(clinic_id, appointment_type_id, provider_id):
            slots.extend(
                await self.provider_slots(provider, appointment_type, day, exclude_appointment_id)
            )
        slots.sort(key=lambda slot: (slot.start, str(slot.provider_id)))

        if use_cache:
            self.cache.set_json(  # type: ignore[union-attr]
                cache_key,
                [slot.model_dump(mode="json") for slot in slots],
                ttl=settings.availability_cache_ttl,
            )

        return slots

    async def get_availability_range(
        self,
        clinic_id: UUID,
        provider_id: UUID,
        appointment_type_id: UUID,
        start_date: date,
        end_date: date,
        max_days: int = MAX_RANGE_DAYS,
    ) -> list[TimeSlot]:
        """
        Available slots for one provider across a range of days.

        A day that cannot be computed is logged and skipped; the rest of the
        range is still returned. Not cached.

        Args:
            clinic_id: Tenant
            provider_id: Provider ID
            appointment_type_id: Type being booked
            start_date: First calendar day (inclusive, provider-local)
            end_date: Last calendar day (inclusive, provider-local)
            max_days: Longest allowed distance between the two dates

        Raises:
            ValidationException: If the range is inverted or too long
            NotFoundException: If the provider or appointment type does not exist
        """
        span = (end_date - start_date).days
        if span < 0:
            raise ValidationException("end_date must not be before start_date")
        if span > max_days:
            raise ValidationException(
                f"Date range too large. Maximum {max_days} days allowed, requested {span} days"
            )

        appointment_type = await self.load_appointment_type(clinic_id, appointment_type_id)
        if not appointment_type:
            raise NotFoundException("Appointment type not found")
        provider = await self.load_provider(clinic_id, provider_id)
        if not provider:
            raise NotFoundException("Provider not found or inactive")

        slots: list[TimeSlot] = []
        for offset in range(span + 1):
            day = start_date + timedelta(days=offset)
            try:
                slots.extend(await self.provider_slots(provider, appointment_type, day))
            except ValueError as e:
                logger.warning(
                    "availability_day_skipped",
                    provider_id=str(provider.id),
                    day=day.isoformat(),
                    error=str(e),
                )
                continue
            if len(slots) >= MAX_RANGE_SLOTS:
                logger.warning(
                    "availability_range_truncated",
                    provider_id=str(provider.id),
                    last_day=day.isoformat(),
                    slots=len(slots),
                )
                break
        return slots

    # ------------------------------------------------------------------
    # Single-interval check (used inside write transactions)
    # ------------------------------------------------------------------

    async def check_interval(
        self,
        provider: Provider,
        appointment_type: AppointmentType,
        start: datetime,
        end: datetime,
        exclude_appointment_id: UUID | None = None,
    ) -> ConflictCheck:
        """
        Check whether one interval can be booked with a provider.

        The buffered interval must sit inside the provider's working window
        for that (provider-local) day and clash with no live booking.
        """
        start = ensure_utc(start)
        end = ensure_utc(end)
        before, after = effective_buffers(provider, appointment_type)
        closed = self._outside_working_hours(provider, start, end, before, after)
        if closed:
            return closed

        existing = await self.booked_intervals(provider, start, end, exclude_appointment_id)
        return has_conflict(start, end, existing, before, after, timezone=provider.timezone)

    @staticmethod
    def _outside_working_hours(
        provider: Provider,
        start: datetime,
        end: datetime,
        before: int,
        after: int,
    ) -> ConflictCheck | None:
        """A failed check when the buffered interval leaves the working window."""
        local_day = to_local(start, provider.timezone).date()
        hours = provider.working_hours.for_date(local_day)
        if not hours.is_open:
            return ConflictCheck(conflict=True, reason="Provider does not work on this day")

        work_start = resolve_wall_clock(local_day, hours.start, provider.timezone)  # type: ignore[arg-type]
        work_end = resolve_wall_clock(local_day, hours.end, provider.timezone)  # type: ignore[arg-type]
        if start - timedelta(minutes=before) < work_start or end + timedelta(minutes=after) > work_end:
            return ConflictCheck(conflict=True, reason="Outside provider working hours")
        return None

    async def check_intervals(
        self,
        clinic_id: UUID,
        provider_id: UUID,
        appointment_type_id: UUID,
        intervals: list[tuple[datetime, datetime]],
    ) -> list[IntervalAvailability]:
        """
        Check many candidate intervals for one provider at once.

        Bookings for the whole span are loaded in a single query, then each
        interval goes through the same rules as :meth:`check_interval`.

        Raises:
            NotFoundException: If the provider or appointment type does not exist
        """
        if not intervals:
            return []

        appointment_type = await self.load_appointment_type(clinic_id, appointment_type_id)
        if not appointment_type:
            raise NotFoundException("Appointment type not found")
        provider = await self.load_provider(clinic_id, provider_id)
        if not provider:
            raise NotFoundException("Provider not found or inactive")

        candidates = [(ensure_utc(start), ensure_utc(end)) for start, end in intervals]
        before, after = effective_buffers(provider, appointment_type)
        existing = await self.booked_intervals(
            provider,
            min(start for start, _ in candidates),
            max(end for _, end in candidates),
        )

        results: list[IntervalAvailability] = []
        for start, end in candidates:
            check = self._outside_working_hours(provider, start, end, before, after) or has_conflict(
                start, end, existing, before, after, timezone=provider.timezone
            )
            results.append(
                IntervalAvailability(
                    start=start, end=end, available=check.available, reason=check.reason
                )
            )
        return results

    async def get_appointment_conflicts(
        self,
        clinic_id: UUID,
        provider_id: UUID,
        start: datetime,
        end: datetime,
        appointment_type_id: UUID,
    ) -> AppointmentConflicts:
        """
        List every live appointment that clashes with an interval.

        Raises:
            NotFoundException: If the provider or appointment type does not exist
        """
        appointment_type = await self.load_appointment_type(clinic_id, appointment_type_id)
        if not appointment_type:
            raise NotFoundException("Appointment type not found")
        provider = await self.load_provider(clinic_id, provider_id)
        if not provider:
            raise NotFoundException("Provider not found or inactive")

        start = ensure_utc(start)
        end = ensure_utc(end)
        before, after = effective_buffers(provider, appointment_type)
        existing = await self.booked_intervals(provider, start, end)
        clashing = find_conflicts(start, end, existing, before, after)

        return AppointmentConflicts(
            has_conflict=bool(clashing),
            reason=f"{len(clashing)} conflict(s) found" if clashing else None,
            conflicting_appointment_ids=[c.appointment_id for c in clashing if c.appointment_id],
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def get_provider_utilization(
        self,
        clinic_id: UUID,
        provider_id: UUID,
        start_date: date,
        end_date: date,
    ) -> ProviderUtilization:
        """
        Booked time against working time for a provider over a date range.

        Args:
            clinic_id: Tenant
            provider_id: Provider ID
            start_date: First calendar day (inclusive)
            end_date: Last calendar day (inclusive)

        Raises:
            NotFoundException: If the provider does not exist
            ValidationException: If the range is inverted
        """
        if end_date < start_date:
            raise ValidationException("end_date must not be before start_date")

        provider = await self.load_provider(clinic_id, provider_id)
        if not provider:
            raise NotFoundException("Provider not found or inactive")

        working_minutes = 0
        day = start_date
        while day <= end_date:
            working_minutes += provider.working_hours.for_date(day).working_minutes
            day += timedelta(days=1)

        range_start, _ = local_day_bounds(start_date, provider.timezone)
        _, range_end = local_day_bounds(end_date, provider.timezone)
        stmt = select(
            appointments.c.status,
            appointments.c.scheduled_start,
            appointments.c.scheduled_end,
        ).where(
            and_(
                appointments.c.clinic_id == clinic_id,
                appointments.c.provider_id == provider_id,
                appointments.c.scheduled_start >= range_start,
                appointments.c.scheduled_start < range_end,
            )
        )
        result = await self.db.execute(stmt)

        counts = StatusCounts()
        booked_minutes = 0
        for row in result.mappings().all():
            status = row["status"]
            if status == "completed":
                counts.completed += 1
            elif status == "cancelled":
                counts.cancelled += 1
            elif status == "no_show":
                counts.no_show += 1
            else:
                counts.scheduled += 1
            if status not in INACTIVE_STATUSES:
                booked_minutes += minutes_between(row["scheduled_start"], row["scheduled_end"])

        rate = round(booked_minutes / working_minutes * 100, 2) if working_minutes else 0.0

        return ProviderUtilization(
            provider_id=provider.id,
            working_minutes=working_minutes,
            booked_minutes=booked_minutes,
            utilization_rate=rate,
            appointments=counts,
        )
