from pydantic import ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel
from uuid import UUID
from datetime import date, datetime
from typing import List

from app.core import exceptions
from app.core.utils import parse_hhmm
from app.schemas.schedule import CamelModel

class QuickAppointmentCreate(CamelModel):
    name: str
    contact: EmailStr
    doctor: UUID
    preferred_date: date
    preferred_time: str
    save_info: bool = False

    @field_validator("preferred_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        try:
            return parse_hhmm(value).strftime("%H:%M")
        except exceptions.ValidationError:
            raise ValueError("preferredTime must be HH:MM")

class AppointmentConfirm(CamelModel):
    booked_by: UUID

class AppointmentResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    doctor_id: UUID
    name: str
    contact: str
    preferred_date: date
    preferred_time: str
    status: str
    booked_by: UUID | None = None
    save_info: bool
    unresolved_conflict: bool
    created_at: datetime

class AppointmentMessage(CamelModel):
    message: str
    appointment: AppointmentResponse

class RescheduledAppointment(CamelModel):
    appointment_id: UUID
    preferred_date: date
    old_time: str
    new_time: str
    notified: bool

class ReconcileReport(CamelModel):
    slots_created: int = 0
    unchanged: List[UUID] = []
    rescheduled: List[RescheduledAppointment] = []
    unresolved: List[UUID] = []
    failed: List[UUID] = []

class ScheduleUpdated(CamelModel):
    message: str
    report: ReconcileReport
