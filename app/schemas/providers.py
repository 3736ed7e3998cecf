"""Provider schemas, including the weekly working-hours model."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.timeutils import (
    InvalidTimeFormat,
    Weekday,
    get_zone,
    minutes_since_midnight,
    weekday_of,
)


class DayHours(BaseModel):
    """Working window for one day of the week."""

    start: str | None = None
    end: str | None = None
    is_working: bool = True

    @field_validator("start", "end")
    @classmethod
    def validate_time_format(cls, v: str | None) -> str | None:
        """Validate HH:MM format when a time is given."""
        if v in (None, ""):
            return None
        try:
            minutes_since_midnight(v)
        except InvalidTimeFormat as e:
            raise ValueError("Invalid time format. Use HH:MM (e.g. 09:00)") from e
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "DayHours":
        """A working day needs both ends, with start before end."""
        if self.is_working and (not self.start or not self.end):
            raise ValueError("start and end are required on a working day")
        if self.start and self.end:
            if minutes_since_midnight(self.start) >= minutes_since_midnight(self.end):
                raise ValueError("start must be before end")
        return self

    @property
    def is_open(self) -> bool:
        """True when slots can be offered on this day."""
        return self.is_working and bool(self.start) and bool(self.end)

    @property
    def working_minutes(self) -> int:
        """Length of the working window in minutes (0 when off)."""
        if not self.is_open:
            return 0
        return minutes_since_midnight(self.end) - minutes_since_midnight(self.start)  # type: ignore[arg-type]


def default_day_hours(day: Weekday) -> DayHours:
    """Mon-Fri 09:00-18:00, weekends off."""
    if day in (Weekday.SATURDAY, Weekday.SUNDAY):
        return DayHours(start=None, end=None, is_working=False)
    return DayHours(start="09:00", end="18:00", is_working=True)


class WorkingHours(BaseModel):
    """Weekly working hours keyed by day of week."""

    days: dict[Weekday, DayHours] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def accept_flat_mapping(cls, data: object) -> object:
        """Accept the stored document shape ``{"monday": {...}, ...}``."""
        if isinstance(data, dict) and "days" not in data:
            return {"days": data}
        return data

    @model_validator(mode="after")
    def fill_missing_days(self) -> "WorkingHours":
        """Every weekday gets an entry."""
        for day in Weekday:
            if day not in self.days:
                self.days[day] = default_day_hours(day)
        return self

    def for_day(self, day: Weekday) -> DayHours:
        """Working window for a weekday."""
        return self.days[day]

    def for_date(self, value: date) -> DayHours:
        """Working window for a calendar date."""
        return self.for_day(weekday_of(value))

    def to_document(self) -> dict[str, dict]:
        """Serialize to the stored JSON shape."""
        return {day.value: self.days[day].model_dump() for day in Weekday}


class ProviderBase(BaseModel):
    """Base provider schema with scheduling fields."""

    name: str = Field(..., min_length=1, max_length=100)
    timezone: str = Field(default="America/Sao_Paulo", max_length=64)
    buffer_before: int = Field(default=15, ge=0, le=60)
    buffer_after: int = Field(default=15, ge=0, le=60)
    is_active: bool = True
    appointment_type_ids: list[UUID] = Field(default_factory=list)
    working_hours: WorkingHours = Field(default_factory=WorkingHours)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Timezone must be a known IANA name."""
        try:
            get_zone(v)
        except ValueError as e:
            raise ValueError(str(e)) from e
        return v

    def offers(self, appointment_type_id: UUID) -> bool:
        """True when this provider offers the appointment type."""
        return appointment_type_id in self.appointment_type_ids


class ProviderCreate(ProviderBase):
    """Schema for creating a provider."""

    email: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=20)


class Provider(ProviderBase):
    """Provider as loaded from storage."""

    id: UUID
    clinic_id: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
