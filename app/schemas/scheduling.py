"""Scheduling schemas: time slots, conflict reports and the result envelope."""

from datetime import datetime
from typing import Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.exceptions import AppException

T = TypeVar("T")


class TimeSlot(BaseModel):
    """A bookable (start, end) pair for a provider and appointment type."""

    start: datetime
    end: datetime
    available: bool = True
    provider_id: UUID
    appointment_type_id: UUID


class ConflictCheck(BaseModel):
    """Outcome of checking one interval against existing bookings."""

    conflict: bool
    reason: str | None = None
    appointment_id: UUID | None = None

    @property
    def available(self) -> bool:
        """Inverse of ``conflict``."""
        return not self.conflict


class TimeInterval(BaseModel):
    """A candidate [start, end) interval."""

    start: datetime
    end: datetime

    @model_validator(mode="after")
    def validate_order(self) -> "TimeInterval":
        """start must be before end."""
        if self.start >= self.end:
            raise ValueError("start must be before end")
        return self


class IntervalCheckRequest(BaseModel):
    """Several candidate intervals for one provider and appointment type."""

    appointment_type_id: UUID
    intervals: list[TimeInterval] = Field(default_factory=list, max_length=100)


class IntervalAvailability(BaseModel):
    """Whether one candidate interval can be booked."""

    start: datetime
    end: datetime
    available: bool
    reason: str | None = None


class AppointmentConflicts(BaseModel):
    """All live appointments that clash with an interval."""

    has_conflict: bool
    reason: str | None = None
    conflicting_appointment_ids: list[UUID] = Field(default_factory=list)


class StatusCounts(BaseModel):
    """Appointment counts by outcome."""

    scheduled: int = 0
    completed: int = 0
    cancelled: int = 0
    no_show: int = 0


class ProviderUtilization(BaseModel):
    """Booked vs. working time for a provider over a date range."""

    provider_id: UUID
    working_minutes: int
    booked_minutes: int
    utilization_rate: float
    appointments: StatusCounts


class SchedulingResult(BaseModel, Generic[T]):
    """Success/failure envelope returned by the transactional operations."""

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    warnings: list[str] | None = None

    @classmethod
    def ok(cls, data: T, warnings: list[str] | None = None) -> "SchedulingResult[T]":
        """Build a successful result."""
        return cls(success=True, data=data, warnings=warnings or None)

    @classmethod
    def fail(cls, exc: AppException) -> "SchedulingResult[T]":
        """Build a failed result from a domain exception."""
        return cls(success=False, error=exc.message, error_code=exc.code)
