from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from app.core import exceptions
from app.core.utils import normalize_weekday, parse_hhmm

class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class DayRule(CamelModel):
    day: Optional[str] = None
    start_time: str
    end_time: str

    @field_validator("day")
    @classmethod
    def check_day(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return normalize_weekday(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time(cls, value: str) -> str:
        try:
            parsed = parse_hhmm(value)
        except exceptions.ValidationError:
            raise ValueError("Time must be HH:MM")
        return parsed.strftime("%H:%M")

    @model_validator(mode="after")
    def check_window(self) -> "DayRule":
        if self.start_time >= self.end_time:
            raise ValueError("startTime must be before endTime")
        return self

class ScheduleCreate(CamelModel):
    days: List[DayRule] = Field(min_length=1)
    slot_duration: int = Field(gt=0)
    valid_from: date
    valid_to: date

    @model_validator(mode="after")
    def check_range(self) -> "ScheduleCreate":
        if self.valid_from > self.valid_to:
            raise ValueError("validFrom must not be after validTo")
        return self

class ScheduleUpdate(ScheduleCreate):
    pass

class GenerateSlotsRequest(CamelModel):
    schedule_id: UUID

class ScheduleResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    doctor_id: UUID
    mode: str
    days: List[DayRule]
    slot_duration: int
    valid_from: date
    valid_to: date
    created_at: datetime
    updated_at: datetime

class ScheduleCreated(CamelModel):
    message: str
    schedule_id: UUID
    slots: int

class SlotsGenerated(CamelModel):
    message: str
    slots: int
