from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from patient_portal.dependencies.services import get_availability_resolver
from patient_portal.schemas.calendar import CalendarMonth
from patient_portal.services import AvailabilityResolver
from patient_portal.services.availability import available_dates, booked_dates
from patient_portal.services.calendar import CalendarGrid, days_in_month
from patient_portal.services.exceptions import ServiceError
from patient_portal.tools.errors import http_error

router = APIRouter()


@router.get("/month", response_model=CalendarMonth)
async def calendar_month(
    year: Optional[int] = Query(None, ge=1, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    doctor_id: Optional[int] = Query(None, description="Classify days against this doctor's slots"),
    selected_date: Optional[str] = Query(None, description="YYYY-MM-DD to highlight"),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
):
    """Return the classified month grid, optionally against a doctor's availability."""
    if (year is None) != (month is None):
        raise HTTPException(status_code=422, detail="year and month must be given together")

    grid = CalendarGrid(year, month)
    available: set[str] = set()
    booked: set[str] = set()
    if doctor_id is not None:
        count, _ = days_in_month(grid.year, grid.month)
        try:
            schedule = await resolver.resolve_range(
                doctor_id,
                date(grid.year, grid.month, 1),
                date(grid.year, grid.month, count),
            )
        except ServiceError as exc:
            raise http_error(exc) from exc
        available = available_dates(schedule)
        booked = booked_dates(schedule)

    return grid.month_view(available, booked, selected_date)
