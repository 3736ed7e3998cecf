"""Tests for the availability service against the database."""

from datetime import timedelta
from uuid import uuid4

import pytest

from app.core.exceptions import NotFoundException, ValidationException
from app.services import availability_service
from app.services.availability_service import AvailabilityService
from app.services.slot_generator import generate_slots
from tests.factories import (
    MONDAY,
    insert_appointment,
    insert_appointment_type,
    insert_provider,
    local_time,
    working_hours,
)


@pytest.mark.asyncio
async def test_slots_for_empty_day(db_session, clinic_id, provider_id, cleaning_type_id):
    service = AvailabilityService(db_session)

    slots = await service.get_available_slots(clinic_id, cleaning_type_id, MONDAY)

    assert len(slots) == 35
    assert slots[0].start == local_time(8, 15)
    assert slots[0].end == local_time(9, 15)
    assert slots[0].provider_id == provider_id


@pytest.mark.asyncio
async def test_booked_time_is_excluded(db_session, clinic_id, provider_id, cleaning_type_id):
    await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(10)
    )
    service = AvailabilityService(db_session)

    slots = await service.get_available_slots(clinic_id, cleaning_type_id, MONDAY)
    starts = {slot.start for slot in slots}

    assert local_time(10) not in starts
    assert local_time(10, 30) not in starts
    assert local_time(11, 15) in starts
    assert local_time(8, 45) in starts


@pytest.mark.asyncio
async def test_cancelled_and_no_show_free_their_time(
    db_session, clinic_id, provider_id, cleaning_type_id
):
    await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(10), status="cancelled"
    )
    await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(14), status="no_show"
    )
    service = AvailabilityService(db_session)

    slots = await service.get_available_slots(clinic_id, cleaning_type_id, MONDAY)

    assert len(slots) == 35


@pytest.mark.asyncio
async def test_exclude_appointment(db_session, clinic_id, provider_id, cleaning_type_id):
    appointment_id = await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(10)
    )
    service = AvailabilityService(db_session)

    slots = await service.get_available_slots(
        clinic_id, cleaning_type_id, MONDAY, exclude_appointment_id=appointment_id
    )

    assert local_time(10) in {slot.start for slot in slots}


@pytest.mark.asyncio
async def test_slots_across_providers_sorted(db_session, clinic_id, provider_id, cleaning_type_id):
    second = await insert_provider(
        db_session,
        clinic_id,
        [cleaning_type_id],
        name="Dr. Bruno Lima",
        working_hours=working_hours(monday={"start": "13:00", "end": "15:00", "is_working": True}),
    )
    service = AvailabilityService(db_session)

    slots = await service.get_available_slots(clinic_id, cleaning_type_id, MONDAY)

    assert [s.start for s in slots] == sorted(s.start for s in slots)
    assert {s.provider_id for s in slots} == {provider_id, second}

    only_second = await service.get_available_slots(
        clinic_id, cleaning_type_id, MONDAY, provider_id=second
    )
    # 13:00-15:00 fits 13:00, 13:15, 13:30 as buffered candidates
    assert [s.start for s in only_second] == [
        local_time(13, 15),
        local_time(13, 30),
        local_time(13, 45),
    ]


@pytest.mark.asyncio
async def test_providers_not_offering_type_are_skipped(
    db_session, clinic_id, provider_id, cleaning_type_id
):
    other_type = await insert_appointment_type(db_session, clinic_id, name="Surgery", duration=120)
    service = AvailabilityService(db_session)

    assert await service.get_available_slots(clinic_id, other_type, MONDAY) == []


@pytest.mark.asyncio
async def test_misconfigured_provider_is_skipped(
    db_session, clinic_id, provider_id, cleaning_type_id
):
    await insert_provider(
        db_session,
        clinic_id,
        [cleaning_type_id],
        working_hours=working_hours(monday={"start": "18:00", "end": "08:00", "is_working": True}),
    )
    service = AvailabilityService(db_session)

    slots = await service.get_available_slots(clinic_id, cleaning_type_id, MONDAY)

    assert {s.provider_id for s in slots} == {provider_id}


@pytest.mark.asyncio
async def test_unknown_type_raises(db_session, clinic_id, provider_id):
    service = AvailabilityService(db_session)

    with pytest.raises(NotFoundException):
        await service.get_available_slots(clinic_id, uuid4(), MONDAY)


@pytest.mark.asyncio
async def test_other_clinic_cannot_see_type(db_session, provider_id, cleaning_type_id):
    service = AvailabilityService(db_session)

    with pytest.raises(NotFoundException):
        await service.get_available_slots(uuid4(), cleaning_type_id, MONDAY)


@pytest.mark.asyncio
async def test_check_interval(db_session, clinic_id, provider_id, cleaning_type_id):
    await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(10)
    )
    service = AvailabilityService(db_session)
    provider = await service.load_provider(clinic_id, provider_id)
    appointment_type = await service.load_appointment_type(clinic_id, cleaning_type_id)
    hour = timedelta(hours=1)

    clash = await service.check_interval(
        provider, appointment_type, local_time(10, 30), local_time(10, 30) + hour
    )
    assert clash.conflict
    assert clash.reason == "Conflicts with appointment at 10:00"

    adjacent = await service.check_interval(
        provider, appointment_type, local_time(11, 15), local_time(11, 15) + hour
    )
    assert not adjacent.conflict

    early = await service.check_interval(
        provider, appointment_type, local_time(8), local_time(8) + hour
    )
    assert early.reason == "Outside provider working hours"

    sunday = local_time(10, day=MONDAY - timedelta(days=1))
    closed = await service.check_interval(provider, appointment_type, sunday, sunday + hour)
    assert closed.reason == "Provider does not work on this day"


@pytest.mark.asyncio
async def test_get_appointment_conflicts(db_session, clinic_id, provider_id, cleaning_type_id):
    first = await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(9)
    )
    second = await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(11)
    )
    service = AvailabilityService(db_session)

    report = await service.get_appointment_conflicts(
        clinic_id, provider_id, local_time(9, 30), local_time(11, 30), cleaning_type_id
    )

    assert report.has_conflict
    assert set(report.conflicting_appointment_ids) == {first, second}


@pytest.mark.asyncio
async def test_provider_utilization(db_session, clinic_id, provider_id, cleaning_type_id):
    await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(9), status="completed"
    )
    await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(11)
    )
    await insert_appointment(
        db_session, clinic_id, provider_id, cleaning_type_id, local_time(14), status="cancelled"
    )
    service = AvailabilityService(db_session)

    report = await service.get_provider_utilization(clinic_id, provider_id, MONDAY, MONDAY)

    assert report.working_minutes == 600
    assert report.booked_minutes == 120
    assert report.utilization_rate == 20.0
    assert report.appointments.completed == 1
    assert report.appointments.scheduled == 1
    assert report.appointments.cancelled == 1


@pytest.mark.asyncio
async def test_provider_utilization_inverted_range(db_session, clinic_id, provider_id):
    service = AvailabilityService(db_session)

    with pytest.raises(ValidationException):
        await service.get_provider_utilization(
            clinic_id, provider_id, MONDAY, MONDAY - timedelta(days=1)
        )


@pytest.mark.asyncio
async def test_other_clinic_bookings_are_ignored(
    db_session, clinic_id, provider_id, cleaning_type_id
):
    await insert_appointment(db_session, uuid4(), provider_id, cleaning_type_id, local_time(10))
    service = AvailabilityService(db_session)

    slots = await service.get_available_slots(clinic_id, cleaning_type_id, MONDAY)

    assert len(slots) == 35
    assert local_time(10) in {slot.start for slot in slots}


# ----------------------------------------------------------------------
# Multi-day availability
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_availability_range_covers_each_working_day(
    db_session, clinic_id, provider_id, cleaning_type_id
):
    service = AvailabilityService(db_session)

    slots = await service.get_availability_range(
        clinic_id, provider_id, cleaning_type_id, MONDAY, MONDAY + timedelta(days=6)
    )

    # Monday to Friday, weekend off
    assert len(slots) == 5 * 35
    assert slots[0].start == local_time(8, 15)
    assert slots[-1].start == local_time(16, 45, day=MONDAY + timedelta(days=4))


@pytest.mark.asyncio
async def test_availability_range_inverted(db_session, clinic_id, provider_id, cleaning_type_id):
    service = AvailabilityService(db_session)

    with pytest.raises(ValidationException):
        await service.get_availability_range(
            clinic_id, provider_id, cleaning_type_id, MONDAY, MONDAY - timedelta(days=1)
        )


@pytest.mark.asyncio
async def test_availability_range_limit(db_session, clinic_id, provider_id, cleaning_type_id):
    service = AvailabilityService(db_session)

    with pytest.raises(ValidationException) as exc_info:
        await service.get_availability_range(
            clinic_id, provider_id, cleaning_type_id, MONDAY, MONDAY + timedelta(days=91)
        )
    assert "Maximum 90 days" in exc_info.value.message

    with pytest.raises(ValidationException):
        await service.get_availability_range(
            clinic_id, provider_id, cleaning_type_id, MONDAY, MONDAY + timedelta(days=3), max_days=2
        )


@pytest.mark.asyncio
async def test_availability_range_skips_failing_day(
    db_session, clinic_id, provider_id, cleaning_type_id, monkeypatch
):
    tuesday = MONDAY + timedelta(days=1)

    def fail_on_tuesday(provider, appointment_type, day, *args, **kwargs):
        if day == tuesday:
            raise ValueError("broken working hours")
        return generate_slots(provider, appointment_type, day, *args, **kwargs)

    monkeypatch.setattr(availability_service, "generate_slots", fail_on_tuesday)
    service = AvailabilityService(db_session)

    slots = await service.get_availability_range(
        clinic_id, provider_id, cleaning_type_id, MONDAY, MONDAY + timedelta(days=2)
    )

    assert len(slots) == 2 * 35
    assert not any(slot.start.date() == tuesday for slot in slots)


@pytest.mark.asyncio
async def test_availability_range_unknown_provider(db_session, clinic_id, cleaning_type_id):
    service = AvailabilityService(db_session)

    with pytest.raises(NotFoundException):
        await service.get_availability_range(
            clinic_id, uuid4(), cleaning_type_id, MONDAY, MONDAY
        )


# ----------------------------------------------------------------------
# Batch interval checks
# ----------------------------------------------------------------------


@pytest.mark.asyncio
async def test_check_intervals(db_session, clinic_id, provider_id, cleaning_type_id, monkeypatch):
    await insert_appointment(db_session, clinic_id, provider_id, cleaning_type_id, local_time(10))
    service = AvailabilityService(db_session)
    loads = []
    booked_intervals = AvailabilityService.booked_intervals

    async def counting_booked_intervals(self, *args, **kwargs):
        loads.append(args)
        return await booked_intervals(self, *args, **kwargs)

    monkeypatch.setattr(AvailabilityService, "booked_intervals", counting_booked_intervals)
    hour = timedelta(hours=1)

    results = await service.check_intervals(
        clinic_id,
        provider_id,
        cleaning_type_id,
        [
            (local_time(10, 30), local_time(10, 30) + hour),
            (local_time(11, 15), local_time(11, 15) + hour),
            (local_time(8), local_time(8) + hour),
            (local_time(15, day=MONDAY + timedelta(days=1)), local_time(16, day=MONDAY + timedelta(days=1))),
        ],
    )

    assert len(loads) == 1
    assert [r.available for r in results] == [False, True, False, True]
    assert results[0].reason == "Conflicts with appointment at 10:00"
    assert results[2].reason == "Outside provider working hours"
    assert results[1].start == local_time(11, 15)


@pytest.mark.asyncio
async def test_check_intervals_empty(db_session, clinic_id):
    service = AvailabilityService(db_session)

    assert await service.check_intervals(clinic_id, uuid4(), uuid4(), []) == []


@pytest.mark.asyncio
async def test_check_intervals_unknown_type(db_session, clinic_id, provider_id):
    service = AvailabilityService(db_session)
    hour = timedelta(hours=1)

    with pytest.raises(NotFoundException):
        await service.check_intervals(
            clinic_id, provider_id, uuid4(), [(local_time(10), local_time(10) + hour)]
        )
