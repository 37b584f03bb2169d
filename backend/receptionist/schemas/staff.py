"""Staff schedule schemas (working hours and time off).

Shown inside the staff step but owned by the scheduling backend.
Overlapping shifts are allowed here; the scheduling backend resolves them.
"""

from datetime import datetime, time

from pydantic import Field, field_validator, model_validator

from receptionist.schemas.steps import CamelModel
from receptionist.schemas.validators import parse_time_of_day


class StaffWorkingHours(CamelModel):
    day_of_week: int = Field(ge=0, le=6)  # 0 = Sunday
    start: time
    end: time

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_hhmm(cls, v):
        if isinstance(v, str) and len(v) <= 5:
            return parse_time_of_day(v)
        return v

    @model_validator(mode="after")
    def _start_before_end(self):
        if self.start >= self.end:
            raise ValueError("Shift end must be after its start")
        return self


class StaffTimeOff(CamelModel):
    time_min: datetime
    time_max: datetime
    reason: str | None = None

    @model_validator(mode="after")
    def _ordered(self):
        if self.time_min >= self.time_max:
            raise ValueError("Time off must end after it starts")
        return self


class StaffHoursUpdate(CamelModel):
    hours: list[StaffWorkingHours] = []


class StaffTimeOffUpdate(CamelModel):
    ranges: list[StaffTimeOff] = []
