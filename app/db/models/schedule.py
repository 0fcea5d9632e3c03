from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import JSON, Column, DateTime
from typing import List, TYPE_CHECKING
from datetime import date, datetime
from uuid import UUID, uuid4

from app.core.utils import utcnow

if TYPE_CHECKING:
    from .doctor import Doctor

class Schedule(SQLModel, table=True):
    __tablename__ = "schedules"
    id: UUID = Field(default_factory=uuid4, primary_key=True)
    doctor_id: UUID = Field(foreign_key="doctors.id", index=True)
    mode: str # per_weekday, uniform
    days: List[dict] = Field(default=[], sa_column=Column(JSON, nullable=False))
    slot_duration: int
    valid_from: date
    valid_to: date
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    doctor: "Doctor" = Relationship(back_populates="schedules")
