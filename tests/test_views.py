import asyncio
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from patient_portal.config import Settings
from patient_portal.dependencies.services import get_appointments_view
from patient_portal.schemas.appointment import BookingRequest
from patient_portal.services.appointment import AppointmentService
from patient_portal.services.availability import AvailabilityResolver
from patient_portal.services.exceptions import DownstreamServiceError
from patient_portal.services.notifications import NotificationCenter
from patient_portal.services.views import AppointmentsView, resolve_cancellation_reason

UPCOMING_ID = 5001
PAST_ID = 5002


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class CountingResolver(AvailabilityResolver):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.calls = 0

    async def resolve_range(self, doctor_id, start_date, end_date):
        self.calls += 1
        return await super().resolve_range(doctor_id, start_date, end_date)


@pytest.fixture
def view(client, store, today) -> AppointmentsView:
    service = AppointmentService(client, repository=store.appointments)
    resolver = CountingResolver(client, repository=store.schedules)
    return AppointmentsView(
        service,
        resolver,
        notifications=NotificationCenter(timeout=5.0, clock=FakeClock()),
        today=lambda: today,
    )


def _take_slot(store, appointment_date: str, appointment_time: str) -> None:
    asyncio.run(
        store.appointments.book(
            BookingRequest(
                doctor_id=100,
                branch_id=1,
                department_id=10,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
            )
        )
    )


def test_cancel_success_refetches_lists(view) -> None:
    asyncio.run(view.refresh())
    assert [item.id for item in view.upcoming] == [UPCOMING_ID]

    assert asyncio.run(view.cancel(UPCOMING_ID, "Health improved")) is True

    assert view.upcoming == []
    assert view.stats.past == 3
    assert view.notifications.current.kind == "success"
    assert view.notifications.current.message == "Appointment cancelled successfully"


def test_cancel_failure_only_notifies(view) -> None:
    asyncio.run(view.refresh())

    assert asyncio.run(view.cancel(PAST_ID, "Health improved")) is False

    assert [item.id for item in view.upcoming] == [UPCOMING_ID]
    assert view.stats.upcoming == 1
    assert view.notifications.current.kind == "error"
    assert view.notifications.current.message == "Past appointments cannot be cancelled"


def test_cancel_without_reason_is_blocked(view) -> None:
    asyncio.run(view.refresh())

    assert asyncio.run(view.cancel(UPCOMING_ID, resolve_cancellation_reason("Other", "  "))) is False

    assert view.notifications.current.kind == "error"
    assert view.stats.upcoming == 1


def test_cancel_dialog_requires_custom_text_for_other(view) -> None:
    asyncio.run(view.refresh())
    dialog = view.open_cancel(UPCOMING_ID)

    assert dialog.can_submit is False
    dialog.selected_reason = "Other"
    assert dialog.can_submit is False
    dialog.custom_reason = "Travelling"
    assert dialog.reason == "Travelling"

    assert asyncio.run(view.confirm_cancel(dialog)) is True
    assert view.upcoming == []
    assert view.open_cancel(PAST_ID) is None


def test_unreachable_backend_uses_generic_message(today) -> None:
    service = MagicMock()
    service.cancel = AsyncMock(side_effect=DownstreamServiceError("Unable to reach portal backend"))
    view = AppointmentsView(service, MagicMock(), today=lambda: today)

    assert asyncio.run(view.cancel(UPCOMING_ID, "Health improved")) is False

    assert view.notifications.current.message == "Failed to cancel appointment"


def test_each_reschedule_open_resolves_fresh_availability(view, store) -> None:
    asyncio.run(view.refresh())

    first = asyncio.run(view.open_reschedule(UPCOMING_ID))
    assert first.select_date("2026-10-25") == "2026-10-25"
    assert "10:00" in [slot.time for slot in first.time_slots]
    first.close()

    _take_slot(store, "2026-10-25", "10:00 AM")
    second = asyncio.run(view.open_reschedule(UPCOMING_ID))

    assert view._resolver.calls == 2
    assert second.selected_date is None
    second.select_date("2026-10-25")
    assert "10:00" not in [slot.time for slot in second.time_slots]


def test_open_reschedule_for_unknown_appointment(view) -> None:
    asyncio.run(view.refresh())

    assert asyncio.run(view.open_reschedule(PAST_ID)) is None


def test_reschedule_success_closes_dialog_and_refetches(view) -> None:
    asyncio.run(view.refresh())
    dialog = asyncio.run(view.open_reschedule(UPCOMING_ID))
    dialog.select_date("2026-10-25")
    assert dialog.select_time("11:00 AM") is True

    assert asyncio.run(view.reschedule(dialog)) is True

    assert dialog.availability.closed is True
    assert (view.upcoming[0].appointment_date, view.upcoming[0].appointment_time) == (
        "2026-10-25",
        "11:00:00",
    )
    assert view.notifications.current.message == "Appointment rescheduled successfully"


def test_reschedule_conflict_refreshes_slots_and_keeps_dialog(view, store) -> None:
    asyncio.run(view.refresh())
    dialog = asyncio.run(view.open_reschedule(UPCOMING_ID))
    dialog.select_date("2026-10-25")
    dialog.select_time("10:00")

    _take_slot(store, "2026-10-25", "10:00")

    assert asyncio.run(view.reschedule(dialog)) is False

    assert view.notifications.current.kind == "error"
    assert view.notifications.current.message == "The selected time slot is no longer available"
    assert dialog.availability.closed is False
    assert dialog.selected_date == "2026-10-25"
    assert dialog.selected_time is None
    assert "10:00" not in [slot.time for slot in dialog.time_slots]
    assert view.upcoming[0].appointment_date == "2026-10-22"


def test_dialog_ignores_unavailable_picks(view) -> None:
    asyncio.run(view.refresh())
    dialog = asyncio.run(view.open_reschedule(UPCOMING_ID))

    assert dialog.select_date("2026-10-23") is None  # Friday, nothing open
    assert dialog.select_date("2026-10-12") is None  # past
    assert dialog.select_date("not-a-date") is None
    dialog.select_date("2026-10-22")
    assert dialog.select_time("09:30 AM") is False  # the appointment's own booked slot
    assert dialog.select_time("later") is False


def test_booking_dialog_flow(view) -> None:
    dialog = view.open_booking(102, 2, 12)
    asyncio.run(dialog.open())

    assert asyncio.run(view.book(dialog)) is False
    assert view.notifications.current.message == "Please select a date and time"

    month = dialog.month_view()
    assert month.title == "October 2026"
    dialog.select_date("2026-10-20")
    assert dialog.select_time("08:50 AM") is True
    dialog.reason = "Check-up"

    assert asyncio.run(view.book(dialog)) is True
    assert view.stats.upcoming == 2
    assert view.notifications.current.message == "Appointment booked successfully"


def test_notifications_expire_after_timeout() -> None:
    clock = FakeClock()
    center = NotificationCenter(timeout=5.0, clock=clock)

    center.success("Saved")
    clock.now += 4.9
    assert center.current.message == "Saved"

    clock.now += 0.2
    assert center.current is None

    center.error("Failed")
    center.dismiss()
    assert center.current is None


@pytest.mark.parametrize(
    ("selected", "custom", "expected"),
    [
        ("Schedule conflict", None, "Schedule conflict"),
        ("Other", "  Moving abroad ", "Moving abroad"),
        ("Other", "", None),
        (None, "ignored", None),
    ],
)
def test_resolve_cancellation_reason(selected, custom, expected) -> None:
    assert resolve_cancellation_reason(selected, custom) == expected


def test_view_factory_uses_configured_timeouts(client) -> None:
    settings = Settings(notification_timeout=2.0, availability_window_days=14)

    view = get_appointments_view(client=client, settings=settings)
    before = time.monotonic()
    toast = view.notifications.success("Saved")

    assert view._window_days == 14
    assert before + 2.0 <= toast.expires_at <= time.monotonic() + 2.0
