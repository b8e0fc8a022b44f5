from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from patient_portal.services.timefmt import normalize_slot_time, to_12_hour


class TimeSlot(BaseModel):
    """A bookable time for one doctor on one day."""

    model_config = ConfigDict(frozen=True)

    time: str  # HH:MM, 24h
    available: bool = False

    @field_validator("time", mode="before")
    def _normalize_time(cls, value):
        return normalize_slot_time(str(value))

    @property
    def display_time(self) -> str:
        return to_12_hour(self.time)


class DaySchedule(BaseModel):
    """All slots of one calendar day in a resolved range."""

    model_config = ConfigDict(frozen=True)

    date: str  # YYYY-MM-DD
    slots: tuple[TimeSlot, ...] = ()

    @field_validator("date", mode="before")
    def _normalize_date(cls, value):
        if isinstance(value, date):
            return value.isoformat()
        return date.fromisoformat(str(value)[:10]).isoformat()

    @property
    def available_slots(self) -> List[TimeSlot]:
        return [slot for slot in self.slots if slot.available]

    @property
    def has_availability(self) -> bool:
        return any(slot.available for slot in self.slots)

    @property
    def is_fully_booked(self) -> bool:
        return bool(self.slots) and not self.has_availability


class AvailabilityRangeResponse(BaseModel):
    doctor_id: int
    start_date: str
    end_date: str
    schedule: List[DaySchedule]
    available_dates: List[str] = Field(default_factory=list)
    booked_dates: List[str] = Field(default_factory=list)


class DaySlotsResponse(BaseModel):
    doctor_id: int
    date: str
    slots: List[TimeSlot]
    message: Optional[str] = None
