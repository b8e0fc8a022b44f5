"""Screen-level state for the appointments area of the portal.

These classes hold what the portal's profile page and booking page keep on
screen: appointment lists, the slot picker dialogs and the transient toast.
They never patch appointment data locally; every successful mutation is
followed by a re-fetch, and failures only produce a notification.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional

from patient_portal.schemas.appointment import (
    CANCELLATION_REASONS,
    OTHER_REASON,
    Appointment,
    AppointmentStats,
    BookingRequest,
    BookingResponse,
    MutationResponse,
)
from patient_portal.schemas.availability import TimeSlot
from patient_portal.schemas.calendar import CalendarMonth
from patient_portal.services.appointment import AppointmentService, gate_request
from patient_portal.services.availability import AvailabilityResolver, AvailabilityView, default_window
from patient_portal.services.calendar import CalendarGrid
from patient_portal.services.exceptions import (
    DownstreamServiceError,
    ServiceError,
    SlotConflictError,
    ValidationGateError,
)
from patient_portal.services.notifications import NotificationCenter
from patient_portal.services.timefmt import normalize_slot_time

logger = logging.getLogger(__name__)


def resolve_cancellation_reason(selected: str | None, custom: str | None = None) -> Optional[str]:
    """Return the reason to submit, or ``None`` while the form is incomplete."""

    reason = custom if selected == OTHER_REASON else selected
    if reason is None or not reason.strip():
        return None
    return reason.strip()


def _failure_message(exc: ServiceError, default: str) -> str:
    if isinstance(exc, DownstreamServiceError) and exc.status_code is None:
        return default
    return str(exc) or default


class SlotPicker:
    """Date and time selection over a freshly resolved availability window."""

    def __init__(
        self,
        doctor_id: int,
        resolver: AvailabilityResolver,
        *,
        window_days: int = 30,
        today: Callable[[], date] | None = None,
    ) -> None:
        self.doctor_id = doctor_id
        self._today = today or date.today
        self._window_days = window_days
        self.availability = AvailabilityView(resolver)
        self.calendar = CalendarGrid(today=self._today)
        self.selected_date: Optional[str] = None
        self.selected_time: Optional[str] = None

    async def open(self) -> bool:
        """Resolve availability for the dialog's window; never reuses an earlier snapshot."""

        self.selected_date = None
        self.selected_time = None
        start, end = default_window(self._today(), self._window_days)
        return await self.availability.load(self.doctor_id, start, end)

    def close(self) -> None:
        self.availability.close()

    @property
    def error(self) -> Optional[ServiceError]:
        return self.availability.error

    @property
    def loading(self) -> bool:
        return self.availability.loading

    def month_view(self) -> CalendarMonth:
        return self.calendar.month_view(
            self.availability.available_dates,
            self.availability.booked_dates,
            self.selected_date,
        )

    def select_day(self, day: int) -> Optional[str]:
        chosen = self.calendar.on_select(
            day,
            self.availability.available_dates,
            self.availability.booked_dates,
        )
        if chosen is not None and chosen != self.selected_date:
            self.selected_date = chosen
            self.selected_time = None
        return chosen

    def select_date(self, iso_date: str) -> Optional[str]:
        """Navigate to the month of ``iso_date`` and select it if it is open."""

        try:
            target = date.fromisoformat(iso_date)
        except ValueError:
            return None
        self.calendar.go_to(target.year, target.month)
        return self.select_day(target.day)

    @property
    def time_slots(self) -> List[TimeSlot]:
        if not self.selected_date:
            return []
        return self.availability.slots_for(self.selected_date)

    def select_time(self, value: str) -> bool:
        try:
            wanted = normalize_slot_time(value)
        except ValueError:
            return False
        if any(slot.time == wanted for slot in self.time_slots):
            self.selected_time = wanted
            return True
        return False

    def _require_selection(self) -> tuple[str, str]:
        if not self.selected_date or not self.selected_time:
            raise ValidationGateError("Please select a date and time")
        if all(slot.time != self.selected_time for slot in self.time_slots):
            raise ValidationGateError("The selected time is no longer available")
        return self.selected_date, self.selected_time

    async def _refresh_after_conflict(self) -> None:
        logger.info("Slot conflict for doctor %s, re-resolving availability", self.doctor_id)
        self.selected_time = None
        start, end = default_window(self._today(), self._window_days)
        await self.availability.load(self.doctor_id, start, end)
        if self.selected_date and self.selected_date not in self.availability.available_dates:
            self.selected_date = None


class RescheduleDialog(SlotPicker):
    def __init__(
        self,
        appointment: Appointment,
        resolver: AvailabilityResolver,
        service: AppointmentService,
        **kwargs,
    ) -> None:
        if appointment.doctor_id is None:
            raise ValidationGateError("This appointment has no doctor to reschedule with")
        super().__init__(appointment.doctor_id, resolver, **kwargs)
        self.appointment = appointment
        self._service = service

    async def confirm(self) -> MutationResponse:
        new_date, new_time = self._require_selection()
        try:
            return await self._service.reschedule(self.appointment.id, new_date, new_time)
        except SlotConflictError:
            await self._refresh_after_conflict()
            raise


class BookingDialog(SlotPicker):
    def __init__(
        self,
        doctor_id: int,
        branch_id: int,
        department_id: int,
        resolver: AvailabilityResolver,
        service: AppointmentService,
        **kwargs,
    ) -> None:
        super().__init__(doctor_id, resolver, **kwargs)
        self.branch_id = branch_id
        self.department_id = department_id
        self._service = service
        self.reason: Optional[str] = None
        self.notes: Optional[str] = None

    async def confirm(self) -> BookingResponse:
        appointment_date, appointment_time = self._require_selection()
        request = gate_request(
            BookingRequest,
            doctor_id=self.doctor_id,
            branch_id=self.branch_id,
            department_id=self.department_id,
            appointment_date=appointment_date,
            appointment_time=appointment_time,
            reason=self.reason,
            notes=self.notes,
        )
        try:
            return await self._service.book(request)
        except SlotConflictError:
            await self._refresh_after_conflict()
            raise


class CancelDialog:
    """Reason picker shown before an appointment is cancelled."""

    reasons = CANCELLATION_REASONS

    def __init__(self, appointment: Appointment) -> None:
        self.appointment = appointment
        self.selected_reason: Optional[str] = None
        self.custom_reason: Optional[str] = None

    @property
    def reason(self) -> Optional[str]:
        return resolve_cancellation_reason(self.selected_reason, self.custom_reason)

    @property
    def can_submit(self) -> bool:
        return self.reason is not None


class AppointmentsView:
    """The profile page's appointments area: stats, both lists and the toast."""

    def __init__(
        self,
        service: AppointmentService,
        resolver: AvailabilityResolver,
        *,
        notifications: NotificationCenter | None = None,
        window_days: int = 30,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._service = service
        self._resolver = resolver
        self._window_days = window_days
        self._today = today
        self.notifications = notifications or NotificationCenter()
        self.stats = AppointmentStats()
        self.upcoming: List[Appointment] = []
        self.past: List[Appointment] = []
        self.loading = False
        self.error: Optional[str] = None

    async def refresh(self) -> bool:
        self.loading = True
        try:
            stats = await self._service.stats()
            upcoming = await self._service.upcoming()
            past = await self._service.past()
        except ServiceError as exc:
            logger.warning("Failed to load appointments: %s", exc)
            self.error = "Failed to load appointments"
            return False
        finally:
            self.loading = False
        self.stats, self.upcoming, self.past = stats, upcoming, past
        self.error = None
        return True

    def find(self, appointment_id: int) -> Optional[Appointment]:
        return next((item for item in self.upcoming if item.id == appointment_id), None)

    async def open_reschedule(self, appointment_id: int) -> Optional[RescheduleDialog]:
        appointment = self.find(appointment_id)
        if appointment is None:
            return None
        try:
            dialog = RescheduleDialog(
                appointment,
                self._resolver,
                self._service,
                window_days=self._window_days,
                today=self._today,
            )
        except ValidationGateError as exc:
            self.notifications.error(str(exc))
            return None
        await dialog.open()
        return dialog

    def open_booking(self, doctor_id: int, branch_id: int, department_id: int) -> BookingDialog:
        return BookingDialog(
            doctor_id,
            branch_id,
            department_id,
            self._resolver,
            self._service,
            window_days=self._window_days,
            today=self._today,
        )

    def open_cancel(self, appointment_id: int) -> Optional[CancelDialog]:
        appointment = self.find(appointment_id)
        return CancelDialog(appointment) if appointment is not None else None

    async def confirm_cancel(self, dialog: CancelDialog) -> bool:
        return await self.cancel(dialog.appointment.id, dialog.reason)

    async def cancel(self, appointment_id: int, reason: str | None) -> bool:
        try:
            await self._service.cancel(appointment_id, reason)
        except ServiceError as exc:
            self.notifications.error(_failure_message(exc, "Failed to cancel appointment"))
            return False
        self.notifications.success("Appointment cancelled successfully")
        await self.refresh()
        return True

    async def reschedule(self, dialog: RescheduleDialog) -> bool:
        try:
            await dialog.confirm()
        except ServiceError as exc:
            self.notifications.error(_failure_message(exc, "Failed to reschedule appointment"))
            return False
        self.notifications.success("Appointment rescheduled successfully")
        dialog.close()
        await self.refresh()
        return True

    async def book(self, dialog: BookingDialog) -> bool:
        try:
            await dialog.confirm()
        except ServiceError as exc:
            self.notifications.error(_failure_message(exc, "Failed to book appointment"))
            return False
        self.notifications.success("Appointment booked successfully")
        dialog.close()
        await self.refresh()
        return True
