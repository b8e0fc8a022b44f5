from typing import List

from fastapi import APIRouter, Depends

from patient_portal.dependencies.services import get_appointment_service
from patient_portal.schemas.appointment import (
    Appointment,
    AppointmentStats,
    BookingRequest,
    BookingResponse,
    CancelRequest,
    MutationResponse,
    RescheduleRequest,
)
from patient_portal.services import AppointmentService
from patient_portal.services.exceptions import ServiceError
from patient_portal.tools.errors import http_error

router = APIRouter()


@router.get("/stats", response_model=AppointmentStats)
async def appointment_stats(
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.stats()
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/upcoming", response_model=List[Appointment])
async def upcoming_appointments(
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.upcoming()
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.get("/past", response_model=List[Appointment])
async def past_appointments(
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.past()
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/book", response_model=BookingResponse)
async def book_appointment(
    req: BookingRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.book(req)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/{appointment_id}/reschedule", response_model=MutationResponse)
async def reschedule_appointment(
    appointment_id: int,
    req: RescheduleRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.reschedule(appointment_id, req.appointment_date, req.appointment_time)
    except ServiceError as exc:
        raise http_error(exc) from exc


@router.post("/{appointment_id}/cancel", response_model=MutationResponse)
async def cancel_appointment(
    appointment_id: int,
    req: CancelRequest,
    service: AppointmentService = Depends(get_appointment_service),
):
    try:
        return await service.cancel(appointment_id, req.cancellation_reason)
    except ServiceError as exc:
        raise http_error(exc) from exc
