"""Appointment service: transactional booking, rescheduling and status changes.

Every write runs inside one explicit transaction that re-checks availability
against live data before committing, so a slot shown as free by the
(non-transactional) listing can still be rejected here with a conflict.
Domain failures are returned as :class:`SchedulingResult` failures; only
infrastructure errors propagate.
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.exceptions import (
    AppException,
    ConflictException,
    InvalidStateTransitionException,
    NotFoundException,
    ValidationException,
)
from app.core.redis_client import CacheManager
from app.core.timeutils import ensure_utc, utcnow
from app.database import transaction
from app.models.appointments import appointments
from app.schemas.appointment_types import effective_buffers
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    BatchStatusResult,
    RescheduleBy,
)
from app.schemas.scheduling import SchedulingResult
from app.services.availability_service import AvailabilityService
from app.services.status_machine import RESCHEDULABLE_STATUSES, transition

logger = structlog.get_logger()

T = TypeVar("T")

# PostgreSQL serialization_failure / deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_write_conflict(exc: DBAPIError) -> bool:
    """True when a database error means a concurrent booking won the race."""
    if isinstance(exc, IntegrityError):
        return True
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


class AppointmentService:
    """Service for managing appointments."""

    def __init__(
        self,
        db: AsyncSession,
        cache_manager: CacheManager | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize service with database session, optional cache and clock."""
        self.db = db
        self.availability = AvailabilityService(db, cache_manager)
        self.clock = clock

    async def _run_transaction(
        self,
        operation: str,
        work: Callable[[], Awaitable[T]],
        **log_context: Any,
    ) -> SchedulingResult[T]:
        """
        Run ``work`` in one transaction and wrap the outcome.

        Domain exceptions abort the transaction and become failed results.
        Unique-index violations and serialization failures raised by the
        database at write or commit time are reported as conflicts.
        """
        try:
            async with transaction(self.db, settings.scheduling_isolation_level):
                data = await work()
        except AppException as e:
            logger.info(f"{operation}_rejected", error=e.message, error_code=e.code, **log_context)
            return SchedulingResult.fail(e)
        except DBAPIError as e:
            if not is_write_conflict(e):
                raise
            logger.warning(f"{operation}_write_conflict", error=str(e.orig), **log_context)
            return SchedulingResult.fail(
                ConflictException("Time slot was taken by a concurrent booking")
            )
        return SchedulingResult.ok(data)

    async def _fetch(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        for_update: bool = False,
    ) -> dict[str, Any]:
        """
        Load one appointment row of the clinic, optionally locking it.

        Raises:
            NotFoundException: If appointment not found
        """
        stmt = select(appointments).where(
            and_(
                appointments.c.id == appointment_id,
                appointments.c.clinic_id == clinic_id,
            )
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _write(self, appointment_id: UUID, values: dict[str, Any]) -> AppointmentResponse:
        """Apply field updates to one appointment and return the new state."""
        values["updated_at"] = self.clock()
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.mappings().one()
        return AppointmentResponse.model_validate(dict(row))

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def create_appointment(
        self,
        clinic_id: UUID,
        data: AppointmentCreate,
        created_by: UUID,
    ) -> SchedulingResult[AppointmentResponse]:
        """
        Book a new appointment.

        Args:
            clinic_id: Tenant
            data: Booking request
            created_by: ID of the user making the booking

        Returns:
            Result with the created appointment, or a validation / not found /
            conflict failure
        """

        async def work() -> AppointmentResponse:
            required = {
                "clinic_id": clinic_id,
                "patient_id": data.patient_id,
                "provider_id": data.provider_id,
                "appointment_type_id": data.appointment_type_id,
                "scheduled_start": data.scheduled_start,
                "created_by": created_by,
            }
            missing = [name for name, value in required.items() if value is None]
            if missing:
                raise ValidationException(f"Missing required fields: {', '.join(missing)}")

            appointment_type = await self.availability.load_appointment_type(
                clinic_id, data.appointment_type_id  # type: ignore[arg-type]
            )
            if not appointment_type:
                raise NotFoundException("Appointment type not found")

            provider = await self.availability.load_provider(
                clinic_id, data.provider_id, for_update=True  # type: ignore[arg-type]
            )
            if not provider:
                raise NotFoundException("Provider not found or inactive")

            scheduled_start = ensure_utc(data.scheduled_start)  # type: ignore[arg-type]
            scheduled_end = scheduled_start + timedelta(minutes=appointment_type.duration)

            check = await self.availability.check_interval(
                provider, appointment_type, scheduled_start, scheduled_end
            )
            if check.conflict:
                raise ConflictException(f"Time slot unavailable: {check.reason}")

            before, after = effective_buffers(provider, appointment_type)
            status = (
                AppointmentStatus.SCHEDULED
                if appointment_type.requires_approval
                else AppointmentStatus.CONFIRMED
            )
            now = self.clock()
            values = {
                "clinic_id": clinic_id,
                "patient_id": data.patient_id,
                "provider_id": provider.id,
                "appointment_type_id": appointment_type.id,
                "scheduled_start": scheduled_start,
                "scheduled_end": scheduled_end,
                "buffer_before": before,
                "buffer_after": after,
                "status": status.value,
                "priority": data.priority.value,
                "notes": data.notes,
                "reschedule_history": [],
                "created_by": created_by,
                "created_at": now,
                "updated_at": now,
            }
            stmt = insert(appointments).values(**values).returning(appointments)
            result = await self.db.execute(stmt)
            return AppointmentResponse.model_validate(dict(result.mappings().one()))

        result = await self._run_transaction(
            "appointment_booking",
            work,
            clinic_id=str(clinic_id),
            provider_id=str(data.provider_id),
        )
        if result.success and result.data:
            self.availability.invalidate(clinic_id)
            logger.info(
                "appointment_booked",
                appointment_id=str(result.data.id),
                provider_id=str(result.data.provider_id),
                scheduled_start=result.data.scheduled_start.isoformat(),
                status=result.data.status.value,
            )
        return result

    # ------------------------------------------------------------------
    # Reschedule / cancel
    # ------------------------------------------------------------------

    async def reschedule_appointment(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        new_start: datetime,
        reason: str,
        reschedule_by: RescheduleBy,
    ) -> SchedulingResult[AppointmentResponse]:
        """
        Move an appointment to a new start time.

        The new interval is re-checked with the appointment itself excluded.
        On success one history entry is appended and the status goes back to
        ``scheduled``; on any failure the stored appointment is untouched.
        """

        async def work() -> AppointmentResponse:
            current = await self._fetch(clinic_id, appointment_id, for_update=True)
            status = AppointmentStatus(current["status"])
            if status not in RESCHEDULABLE_STATUSES:
                raise InvalidStateTransitionException(
                    f"Cannot reschedule an appointment that is {status.value}"
                )

            appointment_type = await self.availability.load_appointment_type(
                clinic_id, current["appointment_type_id"]
            )
            if not appointment_type:
                raise NotFoundException("Appointment type not found")

            provider = await self.availability.load_provider(
                clinic_id, current["provider_id"], for_update=True
            )
            if not provider:
                raise NotFoundException("Provider not found or inactive")

            start = ensure_utc(new_start)
            end = start + timedelta(minutes=appointment_type.duration)
            check = await self.availability.check_interval(
                provider, appointment_type, start, end, exclude_appointment_id=appointment_id
            )
            if check.conflict:
                raise ConflictException(f"New time slot unavailable: {check.reason}")

            before, after = effective_buffers(provider, appointment_type)
            entry = {
                "old_date": ensure_utc(current["scheduled_start"]).isoformat(),
                "new_date": start.isoformat(),
                "reason": reason,
                "reschedule_by": RescheduleBy(reschedule_by).value,
                "timestamp": self.clock().isoformat(),
            }
            history = list(current.get("reschedule_history") or [])
            history.append(entry)

            return await self._write(
                appointment_id,
                {
                    "scheduled_start": start,
                    "scheduled_end": end,
                    "buffer_before": before,
                    "buffer_after": after,
                    "status": AppointmentStatus.SCHEDULED.value,
                    "reschedule_history": history,
                },
            )

        result = await self._run_transaction(
            "appointment_reschedule",
            work,
            appointment_id=str(appointment_id),
        )
        if result.success:
            self.availability.invalidate(clinic_id)
            logger.info(
                "appointment_rescheduled",
                appointment_id=str(appointment_id),
                new_start=ensure_utc(new_start).isoformat(),
                reschedule_by=RescheduleBy(reschedule_by).value,
            )
        return result

    async def cancel_appointment(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        reason: str,
    ) -> SchedulingResult[AppointmentResponse]:
        """
        Cancel an appointment.

        Completed appointments (and other terminal states) cannot be cancelled.
        """

        async def work() -> AppointmentResponse:
            current = await self._fetch(clinic_id, appointment_id, for_update=True)
            values = transition(current, AppointmentStatus.CANCELLED, self.clock())
            values["cancellation_reason"] = reason
            return await self._write(appointment_id, values)

        result = await self._run_transaction(
            "appointment_cancel",
            work,
            appointment_id=str(appointment_id),
        )
        if result.success:
            self.availability.invalidate(clinic_id)
            logger.info("appointment_cancelled", appointment_id=str(appointment_id))
        return result

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------

    async def update_status(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
        new_status: AppointmentStatus,
    ) -> SchedulingResult[AppointmentResponse]:
        """Move an appointment along the status state machine."""

        async def work() -> AppointmentResponse:
            current = await self._fetch(clinic_id, appointment_id, for_update=True)
            values = transition(current, new_status, self.clock())
            return await self._write(appointment_id, values)

        result = await self._run_transaction(
            "appointment_status_change",
            work,
            appointment_id=str(appointment_id),
            status=new_status.value,
        )
        if result.success:
            if new_status in (AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW):
                self.availability.invalidate(clinic_id)
            logger.info(
                "appointment_status_changed",
                appointment_id=str(appointment_id),
                status=new_status.value,
            )
        return result

    async def batch_update_status(
        self,
        clinic_id: UUID,
        appointment_ids: list[UUID],
        new_status: AppointmentStatus,
    ) -> SchedulingResult[BatchStatusResult]:
        """
        Apply one status change to several appointments in a single transaction.

        Appointments that are missing or cannot make the transition are
        skipped and reported in ``warnings``; the rest are committed together.
        """
        now = self.clock()

        async def work() -> BatchStatusResult:
            updated = 0
            failed: list[str] = []
            for appointment_id in appointment_ids:
                try:
                    current = await self._fetch(clinic_id, appointment_id, for_update=True)
                    values = transition(current, new_status, now)
                except AppException as e:
                    failed.append(f"{appointment_id}: {e.message}")
                    continue
                await self._write(appointment_id, values)
                updated += 1
            return BatchStatusResult(updated=updated, failed=failed)

        result = await self._run_transaction(
            "appointment_batch_status",
            work,
            status=new_status.value,
            count=len(appointment_ids),
        )
        if result.success and result.data:
            if result.data.failed:
                result.warnings = result.data.failed
            if result.data.updated:
                self.availability.invalidate(clinic_id)
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_appointment(
        self,
        clinic_id: UUID,
        appointment_id: UUID,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found in the clinic
        """
        row = await self._fetch(clinic_id, appointment_id)
        return AppointmentResponse.model_validate(row)

    async def list_appointments(
        self,
        clinic_id: UUID,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List clinic appointments with filtering and pagination.

        Args:
            clinic_id: Tenant
            filters: Filter and pagination parameters

        Returns:
            Paginated list ordered by scheduled start
        """
        conditions = [appointments.c.clinic_id == clinic_id]

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.provider_id:
            conditions.append(appointments.c.provider_id == filters.provider_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.from_date:
            conditions.append(appointments.c.scheduled_start >= ensure_utc(filters.from_date))

        if filters.to_date:
            conditions.append(appointments.c.scheduled_start <= ensure_utc(filters.to_date))

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.scheduled_start.asc())
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        items = [AppointmentResponse.model_validate(dict(row)) for row in result.mappings().all()]

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )
