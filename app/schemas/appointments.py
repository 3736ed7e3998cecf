"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentPriority(str, Enum):
    """Appointment priority enumeration (informational only)."""

    ROUTINE = "routine"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class RescheduleBy(str, Enum):
    """Who requested a reschedule."""

    PATIENT = "patient"
    CLINIC = "clinic"


class RescheduleEntry(BaseModel):
    """One entry of an appointment's reschedule history."""

    old_date: datetime
    new_date: datetime
    reason: str
    reschedule_by: RescheduleBy
    timestamp: datetime


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    patient_id: UUID | None = None
    provider_id: UUID | None = None
    appointment_type_id: UUID | None = None
    scheduled_start: datetime | None = None
    notes: str | None = Field(None, max_length=500)
    priority: AppointmentPriority = AppointmentPriority.ROUTINE


class AppointmentRescheduleRequest(BaseModel):
    """Schema for moving an appointment to a new start time."""

    new_start: datetime
    reason: str = Field(..., min_length=1, max_length=500)
    reschedule_by: RescheduleBy = RescheduleBy.CLINIC


class AppointmentCancelRequest(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str = Field(..., min_length=1, max_length=500)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus


class AppointmentBatchStatusUpdate(BaseModel):
    """Schema for updating the status of several appointments at once."""

    appointment_ids: list[UUID] = Field(..., min_length=1, max_length=100)
    status: AppointmentStatus


class BatchStatusResult(BaseModel):
    """Outcome of a batch status update."""

    updated: int
    failed: list[str]


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    clinic_id: UUID
    patient_id: UUID
    provider_id: UUID
    appointment_type_id: UUID
    scheduled_start: datetime
    scheduled_end: datetime
    buffer_before: int
    buffer_after: int
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    checked_in_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    duration: int | None = None
    wait_time: int | None = None
    status: AppointmentStatus
    priority: AppointmentPriority
    notes: str | None = None
    cancellation_reason: str | None = None
    reschedule_history: list[RescheduleEntry] = Field(default_factory=list)
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("reschedule_history", mode="before")
    @classmethod
    def default_history(cls, v: list | None) -> list:
        """Stored history may be NULL on legacy rows."""
        return v or []


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    provider_id: UUID | None = None
    patient_id: UUID | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
