from pydantic import ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import Optional
from uuid import UUID

from app.schemas.schedule import CamelModel

class TimeSlotResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    doctor_id: UUID
    date: datetime
    start_time: str
    end_time: str
    is_booked: bool
    booked_by: Optional[UUID] = None

class BookSlotRequest(CamelModel):
    booked_by: UUID

class BookSlotResponse(CamelModel):
    message: str
    slot: TimeSlotResponse
