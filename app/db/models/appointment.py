from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime
from typing import Optional, TYPE_CHECKING
from datetime import date, datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

if TYPE_CHECKING:
    from .doctor import Doctor

class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    name: str
    contact: str # patient email
    preferred_date: date = Field(index=True)
    preferred_time: str # HH:MM
    status: str = Field(default="Pending") # Pending, Confirmed, Cancelled
    booked_by: Optional[UUID] = None
    save_info: bool = Field(default=False)
    unresolved_conflict: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    doctor: "Doctor" = Relationship(back_populates="appointments")
