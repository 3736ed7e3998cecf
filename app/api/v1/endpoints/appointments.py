"""Appointment endpoints."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from app.core.exceptions import ERROR_STATUS_CODES
from app.dependencies import Cache, CurrentUser, DatabaseSession
from app.schemas.appointments import (
    AppointmentBatchStatusUpdate,
    AppointmentCancelRequest,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentRescheduleRequest,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    BatchStatusResult,
)
from app.schemas.scheduling import (
    AppointmentConflicts,
    IntervalAvailability,
    IntervalCheckRequest,
    ProviderUtilization,
    SchedulingResult,
    TimeSlot,
)
from app.services.appointment_service import AppointmentService
from app.services.availability_service import AvailabilityService

router = APIRouter()


def result_response(
    result: SchedulingResult[Any],
    success_status: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Render a service result, mapping its error code to an HTTP status."""
    if result.success:
        status_code = success_status
    else:
        status_code = ERROR_STATUS_CODES.get(result.error_code or "", status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json"))


# ----------------------------------------------------------------------
# Availability
# ----------------------------------------------------------------------


@router.get(
    "/availability",
    response_model=list[TimeSlot],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List available slots",
)
async def get_available_slots(
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    appointment_type_id: UUID = Query(...),
    day: date = Query(..., alias="date"),
    provider_id: UUID | None = Query(None),
    exclude_appointment_id: UUID | None = Query(None),
) -> list[TimeSlot]:
    """
    List bookable slots for an appointment type on a date.

    Results are advisory: booking re-checks the chosen slot.
    """
    service = AvailabilityService(db, cache)
    return await service.get_available_slots(
        current_user.clinic_id,
        appointment_type_id,
        day,
        provider_id=provider_id,
        exclude_appointment_id=exclude_appointment_id,
    )


@router.get(
    "/providers/{provider_id}/availability",
    response_model=list[TimeSlot],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List available slots for a provider",
)
async def get_provider_availability(
    provider_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
    appointment_type_id: UUID = Query(...),
    day: date = Query(..., alias="date"),
) -> list[TimeSlot]:
    """List bookable slots for one provider."""
    service = AvailabilityService(db, cache)
    return await service.get_available_slots(
        current_user.clinic_id,
        appointment_type_id,
        day,
        provider_id=provider_id,
    )


@router.get(
    "/providers/{provider_id}/availability/range",
    response_model=list[TimeSlot],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List available slots for a provider over several days",
)
async def get_provider_availability_range(
    provider_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    appointment_type_id: UUID = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> list[TimeSlot]:
    """List bookable slots from ``start_date`` to ``end_date`` (at most 90 days apart)."""
    service = AvailabilityService(db)
    return await service.get_availability_range(
        current_user.clinic_id, provider_id, appointment_type_id, start_date, end_date
    )


@router.post(
    "/providers/{provider_id}/availability/check",
    response_model=list[IntervalAvailability],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Check several intervals for a provider",
)
async def check_provider_intervals(
    provider_id: UUID,
    request: IntervalCheckRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> list[IntervalAvailability]:
    """Report, per interval, whether it can be booked right now."""
    service = AvailabilityService(db)
    return await service.check_intervals(
        current_user.clinic_id,
        provider_id,
        request.appointment_type_id,
        [(interval.start, interval.end) for interval in request.intervals],
    )


@router.get(
    "/conflicts",
    response_model=AppointmentConflicts,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Find conflicting appointments",
)
async def get_appointment_conflicts(
    current_user: CurrentUser,
    db: DatabaseSession,
    provider_id: UUID = Query(...),
    appointment_type_id: UUID = Query(...),
    start: datetime = Query(...),
    end: datetime = Query(...),
) -> AppointmentConflicts:
    """List live appointments that clash with an interval."""
    service = AvailabilityService(db)
    return await service.get_appointment_conflicts(
        current_user.clinic_id, provider_id, start, end, appointment_type_id
    )


@router.get(
    "/providers/{provider_id}/utilization",
    response_model=ProviderUtilization,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Provider utilization",
)
async def get_provider_utilization(
    provider_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
    start_date: date = Query(...),
    end_date: date = Query(...),
) -> ProviderUtilization:
    """Booked time against working time over a date range."""
    service = AvailabilityService(db)
    return await service.get_provider_utilization(
        current_user.clinic_id, provider_id, start_date, end_date
    )


# ----------------------------------------------------------------------
# Booking and lifecycle
# ----------------------------------------------------------------------


@router.post(
    "/",
    response_model=SchedulingResult[AppointmentResponse],
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> JSONResponse:
    """
    Book a new appointment in the caller's clinic.

    Args:
        data: Booking request
        current_user: Authenticated caller
        db: Database session
        cache: Availability cache

    Returns:
        Result envelope with the created appointment (201), or the failure
        with 422, 404 or 409
    """
    service = AppointmentService(db, cache)
    result = await service.create_appointment(current_user.clinic_id, data, current_user.user_id)
    return result_response(result, status.HTTP_201_CREATED)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    current_user: CurrentUser,
    db: DatabaseSession,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    provider_id: UUID | None = Query(None),
    patient_id: UUID | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List clinic appointments with filtering.

    Args:
        current_user: Authenticated caller
        db: Database session
        status_filter: Filter by status
        provider_id: Filter by provider ID
        patient_id: Filter by patient ID
        from_date: Scheduled on or after
        to_date: Scheduled on or before
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        provider_id=provider_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )

    service = AppointmentService(db)
    return await service.list_appointments(current_user.clinic_id, filters)


@router.post(
    "/batch-status",
    response_model=SchedulingResult[BatchStatusResult],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update status of several appointments",
)
async def batch_update_status(
    data: AppointmentBatchStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> JSONResponse:
    """Apply one status change to several appointments; skipped ones are listed as warnings."""
    service = AppointmentService(db, cache)
    result = await service.batch_update_status(
        current_user.clinic_id, data.appointment_ids, data.status
    )
    return result_response(result)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: CurrentUser,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If the appointment is not in the caller's clinic
    """
    service = AppointmentService(db)
    return await service.get_appointment(current_user.clinic_id, appointment_id)


@router.post(
    "/{appointment_id}/reschedule",
    response_model=SchedulingResult[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentRescheduleRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> JSONResponse:
    """Move an appointment to a new start time."""
    service = AppointmentService(db, cache)
    result = await service.reschedule_appointment(
        current_user.clinic_id,
        appointment_id,
        data.new_start,
        data.reason,
        data.reschedule_by,
    )
    return result_response(result)


@router.post(
    "/{appointment_id}/cancel",
    response_model=SchedulingResult[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancelRequest,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> JSONResponse:
    """Cancel an appointment with a reason."""
    service = AppointmentService(db, cache)
    result = await service.cancel_appointment(current_user.clinic_id, appointment_id, data.reason)
    return result_response(result)


@router.patch(
    "/{appointment_id}/status",
    response_model=SchedulingResult[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    current_user: CurrentUser,
    db: DatabaseSession,
    cache: Cache,
) -> JSONResponse:
    """
    Move an appointment along its lifecycle (confirm, check in, start, complete, no-show).

    Returns:
        Result envelope; 409 when the transition is not allowed
    """
    service = AppointmentService(db, cache)
    result = await service.update_status(current_user.clinic_id, appointment_id, data.status)
    return result_response(result)
