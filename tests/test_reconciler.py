from datetime import date
from uuid import uuid4

import pytest
from sqlmodel import select

from app.db.models import TimeSlot
from app.services.appointment_service import AppointmentService
from app.services.schedule_service import ScheduleService

from conftest import make_schedule

TUESDAY = date(2024, 6, 4)
MORNING = [{"startTime": "09:00", "endTime": "11:00"}]
RANGE = dict(valid_from=date(2024, 6, 3), valid_to=date(2024, 6, 5))


@pytest.fixture
def service(session, locks, notifier):
    return ScheduleService(session, locks, notifier)


@pytest.fixture
def schedule_for(service, doctor):
    async def _create(days=MORNING):
        schedule, _ = await service.create_schedule(doctor, make_schedule(days, **RANGE))
        return schedule
    return _create


@pytest.mark.asyncio
async def test_valid_appointment_is_left_alone(session, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    appointment = await add_appointment(TUESDAY, "09:30")

    report = await service.update_schedule(
        doctor.id, schedule.id, make_schedule([{"startTime": "09:00", "endTime": "12:00"}], **RANGE)
    )

    await session.refresh(appointment)
    assert appointment.preferred_time == "09:30"
    assert not appointment.unresolved_conflict
    assert report.unchanged == [appointment.id]
    assert report.rescheduled == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_displaced_appointment_moves_to_earliest_slot(session, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    appointment = await add_appointment(TUESDAY, "09:30")

    report = await service.update_schedule(
        doctor.id, schedule.id, make_schedule([{"startTime": "10:00", "endTime": "12:00"}], **RANGE)
    )

    await session.refresh(appointment)
    assert appointment.preferred_time == "10:00"
    assert len(report.rescheduled) == 1
    moved = report.rescheduled[0]
    assert (moved.old_time, moved.new_time, moved.notified) == ("09:30", "10:00", True)
    assert len(notifier.sent) == 1
    assert notifier.sent[0]["to"] == "patient@clinixnote.com"
    assert notifier.sent[0]["subject"] == "Appointment Time Updated"
    assert "09:30" in notifier.sent[0]["html"] and "10:00" in notifier.sent[0]["html"]


@pytest.mark.asyncio
async def test_no_slot_left_flags_conflict_without_notifying(session, locks, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    appointment = await add_appointment(TUESDAY, "09:30")

    # Tuesday drops out entirely
    report = await service.update_schedule(
        doctor.id, schedule.id,
        make_schedule([{"day": "Monday", "startTime": "09:00", "endTime": "11:00"}], **RANGE),
    )

    await session.refresh(appointment)
    assert appointment.preferred_time == "09:30"
    assert appointment.unresolved_conflict
    assert report.unresolved == [appointment.id]
    assert notifier.sent == []

    conflicts = await AppointmentService(session, locks, notifier).get_doctor_appointments(doctor.id, conflicts_only=True)
    assert [a.id for a in conflicts] == [appointment.id]


@pytest.mark.asyncio
async def test_conflict_flag_clears_once_slot_returns(session, service, schedule_for, add_appointment, doctor):
    schedule = await schedule_for()
    appointment = await add_appointment(TUESDAY, "09:30", unresolved_conflict=True)

    await service.update_schedule(doctor.id, schedule.id, make_schedule(MORNING, **RANGE))

    await session.refresh(appointment)
    assert not appointment.unresolved_conflict


@pytest.mark.asyncio
async def test_notification_failure_does_not_stop_other_repairs(session, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    first = await add_appointment(date(2024, 6, 3), "09:00", contact="first@clinixnote.com")
    second = await add_appointment(TUESDAY, "09:00", contact="second@clinixnote.com")
    notifier.fail_for.add("first@clinixnote.com")

    report = await service.update_schedule(
        doctor.id, schedule.id, make_schedule([{"startTime": "10:00", "endTime": "11:00"}], **RANGE)
    )

    await session.refresh(first)
    await session.refresh(second)
    assert first.preferred_time == second.preferred_time == "10:00"
    assert [(r.appointment_id, r.notified) for r in report.rescheduled] == [(first.id, False), (second.id, True)]
    assert [m["to"] for m in notifier.sent] == ["second@clinixnote.com"]
    assert report.failed == []


@pytest.mark.asyncio
async def test_displaced_appointments_do_not_share_a_slot(session, service, schedule_for, add_appointment, doctor):
    schedule = await schedule_for()
    early = await add_appointment(TUESDAY, "09:00")
    later = await add_appointment(TUESDAY, "09:30")

    await service.update_schedule(
        doctor.id, schedule.id, make_schedule([{"startTime": "10:00", "endTime": "11:00"}], **RANGE)
    )

    await session.refresh(early)
    await session.refresh(later)
    assert {early.preferred_time, later.preferred_time} == {"10:00", "10:30"}


@pytest.mark.asyncio
async def test_confirmed_booking_survives_regeneration(session, locks, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    appointment = await add_appointment(TUESDAY, "09:30")
    patient_id = uuid4()
    await AppointmentService(session, locks, notifier).confirm_appointment(appointment.id, patient_id)

    await service.update_schedule(
        doctor.id, schedule.id, make_schedule([{"startTime": "09:00", "endTime": "12:00"}], **RANGE)
    )

    result = await session.execute(
        select(TimeSlot).where(TimeSlot.doctor_id == doctor.id, TimeSlot.is_booked == True)
    )
    booked = result.scalars().all()
    assert [(s.start_time, s.booked_by) for s in booked] == [("09:30", patient_id)]


@pytest.mark.asyncio
async def test_cancelled_appointments_are_ignored(session, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    appointment = await add_appointment(TUESDAY, "09:30", status="Cancelled")

    report = await service.update_schedule(
        doctor.id, schedule.id, make_schedule([{"startTime": "10:00", "endTime": "11:00"}], **RANGE)
    )

    await session.refresh(appointment)
    assert appointment.preferred_time == "09:30"
    assert report.unchanged == report.unresolved == []
    assert report.rescheduled == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_appointments_sharing_a_time_both_stay(session, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    first = await add_appointment(TUESDAY, "09:30", contact="first@clinixnote.com")
    second = await add_appointment(TUESDAY, "09:30", contact="second@clinixnote.com")

    report = await service.update_schedule(doctor.id, schedule.id, make_schedule(MORNING, **RANGE))

    await session.refresh(first)
    await session.refresh(second)
    assert first.preferred_time == second.preferred_time == "09:30"
    assert sorted(report.unchanged) == sorted([first.id, second.id])
    assert report.rescheduled == []
    assert notifier.sent == []


@pytest.mark.asyncio
async def test_older_pending_request_does_not_push_out_confirmed_patient(session, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    pending = await add_appointment(TUESDAY, "09:30", contact="pending@clinixnote.com")
    patient_id = uuid4()
    confirmed = await add_appointment(
        TUESDAY, "09:30", contact="confirmed@clinixnote.com", status="Confirmed", booked_by=patient_id
    )

    report = await service.update_schedule(doctor.id, schedule.id, make_schedule(MORNING, **RANGE))

    await session.refresh(pending)
    await session.refresh(confirmed)
    assert pending.preferred_time == confirmed.preferred_time == "09:30"
    assert report.unchanged[0] == confirmed.id
    assert report.rescheduled == []
    assert notifier.sent == []

    result = await session.execute(
        select(TimeSlot).where(TimeSlot.doctor_id == doctor.id, TimeSlot.is_booked == True)
    )
    assert [(s.start_time, s.booked_by) for s in result.scalars().all()] == [("09:30", patient_id)]


@pytest.mark.asyncio
async def test_pending_request_on_a_confirmed_slot_is_left_alone(session, locks, service, schedule_for, add_appointment, doctor, notifier):
    schedule = await schedule_for()
    confirmed = await add_appointment(TUESDAY, "09:30", contact="confirmed@clinixnote.com")
    patient_id = uuid4()
    await AppointmentService(session, locks, notifier).confirm_appointment(confirmed.id, patient_id)
    pending = await add_appointment(TUESDAY, "09:30", contact="pending@clinixnote.com")

    report = await service.update_schedule(
        doctor.id, schedule.id, make_schedule([{"startTime": "09:00", "endTime": "12:00"}], **RANGE)
    )

    await session.refresh(pending)
    assert pending.preferred_time == "09:30"
    assert report.rescheduled == []
    assert [m["subject"] for m in notifier.sent] == ["Appointment Confirmed"]
