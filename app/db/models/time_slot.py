from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Index
from typing import Optional, TYPE_CHECKING
from datetime import datetime
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from .doctor import Doctor

class TimeSlot(SQLModel, table=True):
    __tablename__ = "time_slots"
    __table_args__ = (Index("ix_time_slots_doctor_date", "doctor_id", "date"),)

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id")
    date: datetime # slot start
    start_time: str # HH:MM
    end_time: str # HH:MM
    is_booked: bool = Field(default=False)
    booked_by: Optional[UUID] = None

    doctor: "Doctor" = Relationship(back_populates="time_slots")
