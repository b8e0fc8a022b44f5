from __future__ import annotations

import logging
from typing import Any, List

from pydantic import ValidationError

from patient_portal.clients.backend import PortalBackendClient
from patient_portal.schemas.appointment import (
    Appointment,
    AppointmentStats,
    AppointmentStatus,
    BookingRequest,
    BookingResponse,
    CancelRequest,
    MutationResponse,
    RescheduleRequest,
)
from patient_portal.services.exceptions import ServiceError, ValidationGateError
from patient_portal.services.mock_store import AppointmentRepository, get_mock_store

logger = logging.getLogger(__name__)


def gate_request(model, **fields: Any):
    """Build a request model, turning validation failures into a local gate."""

    try:
        return model(**fields)
    except ValidationError as exc:
        message = "; ".join(error["msg"] for error in exc.errors())
        raise ValidationGateError(message, cause=exc) from exc


class AppointmentService:
    def __init__(
        self,
        client: PortalBackendClient,
        *,
        repository: AppointmentRepository | None = None,
    ) -> None:
        self._client = client
        self._repository = repository
        if self._client.use_mock_data:
            self._repository = repository or get_mock_store().appointments

    def _mock_repository(self) -> AppointmentRepository:
        if not self._repository:
            raise RuntimeError("Mock appointment repository not configured")
        return self._repository

    async def stats(self) -> AppointmentStats:
        logger.info("Fetching appointment stats")
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return await self._mock_repository().stats()

        data = await self._client.get("/my-appointments/stats")
        return self._parse(AppointmentStats, data or {}, "Failed to load appointment stats")

    async def upcoming(self) -> List[Appointment]:
        logger.info("Listing upcoming appointments")
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return await self._mock_repository().list_upcoming()

        data = await self._client.get("/my-appointments/upcoming")
        return [self._parse(Appointment, item, "Failed to load appointments") for item in data or []]

    async def past(self) -> List[Appointment]:
        logger.info("Listing past appointments")
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return await self._mock_repository().list_past()

        data = await self._client.get("/my-appointments/past")
        return [self._parse(Appointment, item, "Failed to load appointments") for item in data or []]

    async def book(self, request: BookingRequest) -> BookingResponse:
        logger.info(
            "Booking doctor %s on %s at %s",
            request.doctor_id,
            request.appointment_date,
            request.appointment_time,
        )
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return await self._mock_repository().book(request)

        data = await self._client.post("/appointments", request.model_dump(exclude_none=True))
        appointment = data.get("appointment", data) if isinstance(data, dict) else {}
        return BookingResponse(
            status=AppointmentStatus.UPCOMING.value,
            appointment_id=appointment.get("id"),
            appointment_date=appointment.get("appointment_date", request.appointment_date),
            appointment_time=appointment.get("appointment_time", request.appointment_time),
            message="Appointment booked successfully",
        )

    async def reschedule(self, appointment_id: int, new_date: str, new_time: str) -> MutationResponse:
        request = gate_request(
            RescheduleRequest,
            appointment_date=new_date,
            appointment_time=new_time,
        )
        logger.info(
            "Rescheduling appointment %s to %s %s",
            appointment_id,
            request.appointment_date,
            request.appointment_time,
        )
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return await self._mock_repository().reschedule(appointment_id, request)

        await self._client.post(f"/appointments/{appointment_id}/reschedule", request.model_dump())
        return MutationResponse(
            status=AppointmentStatus.UPCOMING.value,
            appointment_id=appointment_id,
            message="Appointment rescheduled successfully",
        )

    async def cancel(self, appointment_id: int, reason: str | None) -> MutationResponse:
        request = gate_request(CancelRequest, cancellation_reason=reason or "")
        logger.info("Cancelling appointment %s", appointment_id)
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return await self._mock_repository().cancel(appointment_id, request.cancellation_reason)

        await self._client.post(f"/appointments/{appointment_id}/cancel", request.model_dump())
        return MutationResponse(
            status=AppointmentStatus.CANCELLED.value,
            appointment_id=appointment_id,
            message="Appointment cancelled successfully",
        )

    @staticmethod
    def _parse(model, data: Any, message: str):
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.exception("Portal backend returned a malformed %s", model.__name__)
            raise ServiceError(message, cause=exc) from exc
