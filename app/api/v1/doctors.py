from fastapi import APIRouter, Depends, Query, status
from typing import List
from uuid import UUID

from app.api.deps import get_appointment_service, get_current_doctor, get_schedule_service
from app.core.utils import parse_date
from app.db.models import Doctor
from app.schemas.appointment import AppointmentResponse, ScheduleUpdated
from app.schemas.schedule import (
    GenerateSlotsRequest,
    ScheduleCreate,
    ScheduleCreated,
    ScheduleResponse,
    ScheduleUpdate,
    SlotsGenerated,
)
from app.schemas.time_slot import BookSlotRequest, BookSlotResponse, TimeSlotResponse
from app.services.appointment_service import AppointmentService
from app.services.schedule_service import ScheduleService

router = APIRouter()

@router.post("/schedule", response_model=ScheduleCreated, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    request: ScheduleCreate,
    doctor: Doctor = Depends(get_current_doctor),
    service: ScheduleService = Depends(get_schedule_service)
):
    schedule, count = await service.create_schedule(doctor, request)
    return ScheduleCreated(message="Schedule saved & slots generated!", schedule_id=schedule.id, slots=count)

@router.post("/generate-slots", response_model=SlotsGenerated, status_code=status.HTTP_201_CREATED)
async def generate_slots(
    request: GenerateSlotsRequest,
    doctor: Doctor = Depends(get_current_doctor),
    service: ScheduleService = Depends(get_schedule_service)
):
    count = await service.regenerate_slots(doctor.id, request.schedule_id)
    return SlotsGenerated(message="Time slots generated successfully", slots=count)

@router.put("/schedule/{schedule_id}", response_model=ScheduleUpdated)
async def update_schedule(
    schedule_id: UUID,
    request: ScheduleUpdate,
    doctor: Doctor = Depends(get_current_doctor),
    service: ScheduleService = Depends(get_schedule_service)
):
    report = await service.update_schedule(doctor.id, schedule_id, request)
    return ScheduleUpdated(
        message="Schedule updated, slots regenerated, affected patients notified.",
        report=report
    )

@router.get("/timeslots", response_model=List[TimeSlotResponse])
async def get_available_slots(
    doctor_id: UUID = Query(alias="doctorId"),
    date: str = Query(), # YYYY-MM-DD
    service: ScheduleService = Depends(get_schedule_service)
):
    return await service.available_slots(doctor_id, parse_date(date))

@router.put("/timeslots/book/{slot_id}", response_model=BookSlotResponse)
async def book_slot(
    slot_id: UUID,
    request: BookSlotRequest,
    service: ScheduleService = Depends(get_schedule_service)
):
    slot = await service.book_slot(slot_id, request.booked_by)
    return BookSlotResponse(message="Timeslot booked successfully", slot=TimeSlotResponse.model_validate(slot))

@router.get("/appointments", response_model=List[AppointmentResponse])
async def get_my_appointments(
    doctor: Doctor = Depends(get_current_doctor),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_doctor_appointments(doctor.id)

@router.get("/appointments/conflicts", response_model=List[AppointmentResponse])
async def get_unresolved_conflicts(
    doctor: Doctor = Depends(get_current_doctor),
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_doctor_appointments(doctor.id, conflicts_only=True)

@router.get("/{doctor_id}/schedule", response_model=List[ScheduleResponse])
async def get_doctor_schedules(
    doctor_id: UUID,
    service: ScheduleService = Depends(get_schedule_service)
):
    return await service.list_schedules(doctor_id)
