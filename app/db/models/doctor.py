from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import DateTime
from typing import Optional, List, TYPE_CHECKING
from datetime import datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

if TYPE_CHECKING:
    from .schedule import Schedule
    from .time_slot import TimeSlot
    from .appointment import Appointment

class Doctor(SQLModel, table=True):
    __tablename__ = "doctors"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    name: str
    email: Optional[str] = Field(default=None, index=True)
    specialization: Optional[str] = None
    status: str = Field(default="Approved") # Pending, Approved, Rejected
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    schedules: List["Schedule"] = Relationship(back_populates="doctor")
    time_slots: List["TimeSlot"] = Relationship(back_populates="doctor")
    appointments: List["Appointment"] = Relationship(back_populates="doctor")
