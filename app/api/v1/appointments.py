from fastapi import APIRouter, Depends, status
from typing import List
from uuid import UUID

from app.api.deps import get_appointment_service
from app.schemas.appointment import (
    AppointmentConfirm,
    AppointmentMessage,
    AppointmentResponse,
    QuickAppointmentCreate,
)
from app.services.appointment_service import AppointmentService

router = APIRouter()

@router.post("/quick-appointments", response_model=AppointmentMessage, status_code=status.HTTP_201_CREATED)
async def create_quick_appointment(
    request: QuickAppointmentCreate,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.create_quick_appointment(request)
    return AppointmentMessage(
        message="Quick appointment created successfully",
        appointment=AppointmentResponse.model_validate(appointment)
    )

@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.list_appointments()

@router.get("/user/{contact}", response_model=List[AppointmentResponse])
async def get_user_appointments(
    contact: str,
    service: AppointmentService = Depends(get_appointment_service)
):
    return await service.get_user_appointments(contact)

@router.put("/{appointment_id}/confirm", response_model=AppointmentMessage)
async def confirm_appointment(
    appointment_id: UUID,
    request: AppointmentConfirm,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.confirm_appointment(appointment_id, request.booked_by)
    return AppointmentMessage(
        message="Appointment confirmed successfully",
        appointment=AppointmentResponse.model_validate(appointment)
    )

@router.delete("/{appointment_id}/decline", response_model=AppointmentMessage)
async def decline_appointment(
    appointment_id: UUID,
    service: AppointmentService = Depends(get_appointment_service)
):
    appointment = await service.decline_appointment(appointment_id)
    return AppointmentMessage(
        message="Appointment cancelled and email sent",
        appointment=AppointmentResponse.model_validate(appointment)
    )
