from sqlmodel import SQLModel
from .doctor import Doctor
from .schedule import Schedule
from .time_slot import TimeSlot
from .appointment import Appointment

__all__ = [
    "SQLModel",
    "Doctor",
    "Schedule",
    "TimeSlot",
    "Appointment",
]
