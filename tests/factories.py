"""Row builders and time helpers shared by the database-backed tests."""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import appointment_types, appointments, providers

# 2030-01-07 is a Monday; Sao Paulo is UTC-3 all year
MONDAY = datetime(2030, 1, 7).date()
SAO_PAULO = "America/Sao_Paulo"


def local_time(hour: int, minute: int = 0, day=MONDAY) -> datetime:
    """Sao Paulo wall-clock time on ``day`` as an aware UTC datetime."""
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC) + timedelta(hours=3)


def working_hours(**overrides) -> dict:
    """Mon-Fri 08:00-18:00, weekends off, with per-day overrides."""
    hours = {
        day: {"start": "08:00", "end": "18:00", "is_working": True}
        for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
    }
    hours["saturday"] = {"start": None, "end": None, "is_working": False}
    hours["sunday"] = {"start": None, "end": None, "is_working": False}
    hours.update(overrides)
    return hours


async def insert_appointment_type(db: AsyncSession, clinic_id: UUID, **values) -> UUID:
    type_id = values.pop("id", uuid4())
    row = {
        "id": type_id,
        "clinic_id": clinic_id,
        "name": "Cleaning",
        "category": "cleaning",
        "duration": 60,
        **values,
    }
    await db.execute(insert(appointment_types).values(**row))
    await db.commit()
    return type_id


async def insert_provider(
    db: AsyncSession,
    clinic_id: UUID,
    type_ids: list[UUID],
    **values,
) -> UUID:
    provider_id = values.pop("id", uuid4())
    row = {
        "id": provider_id,
        "clinic_id": clinic_id,
        "name": "Dr. Ana Souza",
        "timezone": SAO_PAULO,
        "buffer_before": 15,
        "buffer_after": 15,
        "working_hours": working_hours(),
        "appointment_type_ids": [str(t) for t in type_ids],
        **values,
    }
    await db.execute(insert(providers).values(**row))
    await db.commit()
    return provider_id


async def insert_appointment(
    db: AsyncSession,
    clinic_id: UUID,
    provider_id: UUID,
    appointment_type_id: UUID,
    start: datetime,
    minutes: int = 60,
    **values,
) -> UUID:
    appointment_id = values.pop("id", uuid4())
    row = {
        "id": appointment_id,
        "clinic_id": clinic_id,
        "patient_id": uuid4(),
        "provider_id": provider_id,
        "appointment_type_id": appointment_type_id,
        "scheduled_start": start,
        "scheduled_end": start + timedelta(minutes=minutes),
        "buffer_before": 15,
        "buffer_after": 15,
        "status": "confirmed",
        "created_by": uuid4(),
        **values,
    }
    await db.execute(insert(appointments).values(**row))
    await db.commit()
    return appointment_id

