"""Appointment type schemas and buffer policy."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.providers import Provider


class AppointmentCategory(str, Enum):
    """Appointment type category enumeration."""

    CONSULTATION = "consultation"
    CLEANING = "cleaning"
    TREATMENT = "treatment"
    SURGERY = "surgery"
    EMERGENCY = "emergency"


class AppointmentTypeBase(BaseModel):
    """Base appointment type schema."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    category: AppointmentCategory = AppointmentCategory.CONSULTATION
    duration: int = Field(..., ge=15, le=480)
    buffer_before: int | None = Field(None, ge=0, le=120)
    buffer_after: int | None = Field(None, ge=0, le=120)
    requires_approval: bool = False
    allow_online_booking: bool = True
    is_active: bool = True


class AppointmentTypeCreate(AppointmentTypeBase):
    """Schema for creating an appointment type."""


class AppointmentType(AppointmentTypeBase):
    """Appointment type as loaded from storage."""

    id: UUID
    clinic_id: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


def effective_buffers(provider: Provider, appointment_type: AppointmentType) -> tuple[int, int]:
    """
    Resolve the buffers for booking a type with a provider.

    The type's override wins wherever it is set (including an explicit 0);
    otherwise the provider default applies.

    Returns:
        (buffer_before, buffer_after) in minutes
    """
    before = (
        appointment_type.buffer_before
        if appointment_type.buffer_before is not None
        else provider.buffer_before
    )
    after = (
        appointment_type.buffer_after
        if appointment_type.buffer_after is not None
        else provider.buffer_after
    )
    return before, after
