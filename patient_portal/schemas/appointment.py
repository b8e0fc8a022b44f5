from __future__ import annotations

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from patient_portal.services.timefmt import to_24_hour


class AppointmentStatus(str, Enum):
    UPCOMING = "upcoming"
    PAST = "past"
    CANCELLED = "cancelled"


CANCELLATION_REASONS = (
    "Schedule conflict",
    "Personal emergency",
    "Health improved",
    "Found another doctor",
    "Other",
)
OTHER_REASON = "Other"


def _iso_date(value) -> str:
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError as exc:
        raise ValueError(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


class Appointment(BaseModel):
    id: int
    doctor_id: Optional[int] = None
    doctor_name: Optional[str] = None
    doctor_image: Optional[str] = None
    branch: Optional[str] = None
    department: Optional[str] = None
    department_icon: Optional[str] = None
    appointment_date: str  # YYYY-MM-DD
    appointment_time: str
    appointment_datetime: Optional[str] = None
    status: str  # upcoming | past | cancelled, as reported by the backend
    cancellation_reason: Optional[str] = None

    @field_validator("status", mode="before")
    def _normalize_status(cls, value):
        return str(value).strip().lower()

    @property
    def is_cancelled(self) -> bool:
        return self.status == AppointmentStatus.CANCELLED.value


class AppointmentStats(BaseModel):
    upcoming: int = 0
    past: int = 0


class BookingRequest(BaseModel):
    doctor_id: int
    branch_id: int
    department_id: int
    appointment_date: str  # YYYY-MM-DD
    appointment_time: str  # HH:MM:SS on the wire
    reason: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("appointment_date", mode="before")
    def _canonical_date(cls, value):
        return _iso_date(value)

    @field_validator("appointment_time", mode="before")
    def _wire_time(cls, value):
        return to_24_hour(str(value))


class BookingResponse(BaseModel):
    status: str
    appointment_id: Optional[int] = None
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    message: Optional[str] = None


class RescheduleRequest(BaseModel):
    appointment_date: str
    appointment_time: str  # HH:MM:SS on the wire

    @field_validator("appointment_date", mode="before")
    def _canonical_date(cls, value):
        return _iso_date(value)

    @field_validator("appointment_time", mode="before")
    def _wire_time(cls, value):
        return to_24_hour(str(value))


class CancelRequest(BaseModel):
    cancellation_reason: str = Field(..., description="Free text or one of the fixed reasons")

    @field_validator("cancellation_reason")
    def _require_reason(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("A cancellation reason is required")
        return normalized


class MutationResponse(BaseModel):
    status: str
    appointment_id: int
    message: Optional[str] = None
