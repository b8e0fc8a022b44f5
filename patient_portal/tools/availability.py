from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from patient_portal.config import Settings, get_settings
from patient_portal.dependencies.services import get_availability_resolver
from patient_portal.schemas.availability import AvailabilityRangeResponse, DaySlotsResponse
from patient_portal.services import AvailabilityResolver
from patient_portal.services.availability import (
    available_dates,
    booked_dates,
    default_window,
    slots_for,
)
from patient_portal.services.exceptions import ServiceError
from patient_portal.tools.errors import http_error

router = APIRouter()


@router.get("/range", response_model=AvailabilityRangeResponse)
async def availability_range(
    doctor_id: int = Query(..., description="Doctor whose slots to resolve"),
    start_date: Optional[date] = Query(None, description="YYYY-MM-DD, defaults to today"),
    end_date: Optional[date] = Query(None, description="YYYY-MM-DD, defaults to the booking window end"),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
    settings: Settings = Depends(get_settings),
):
    window_start, window_end = default_window(date.today(), settings.availability_window_days)
    start = start_date or window_start
    end = end_date or window_end
    try:
        schedule = await resolver.resolve_range(doctor_id, start, end)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return AvailabilityRangeResponse(
        doctor_id=doctor_id,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        schedule=schedule,
        available_dates=sorted(available_dates(schedule)),
        booked_dates=sorted(booked_dates(schedule)),
    )


@router.get("/slots", response_model=DaySlotsResponse)
async def day_slots(
    doctor_id: int = Query(...),
    day: date = Query(..., alias="date", description="YYYY-MM-DD"),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
):
    try:
        schedule = await resolver.resolve_range(doctor_id, day, day)
    except ServiceError as exc:
        raise http_error(exc) from exc
    slots = slots_for(schedule, day.isoformat())
    return DaySlotsResponse(
        doctor_id=doctor_id,
        date=day.isoformat(),
        slots=slots,
        message=None if slots else "No available slots for this date.",
    )
