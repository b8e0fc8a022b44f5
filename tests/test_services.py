import asyncio
import json
import sys
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from patient_portal.clients.backend import PortalBackendClient
from patient_portal.schemas.appointment import BookingRequest
from patient_portal.services.appointment import AppointmentService, gate_request
from patient_portal.services.directory import DirectoryService
from patient_portal.services.exceptions import (
    DownstreamServiceError,
    SlotConflictError,
    ValidationGateError,
)

UPCOMING_ID = 5001  # doctor 100, Thursday 22 October 09:30
PAST_ID = 5002
CANCELLED_ID = 5003


def _service(client, store) -> AppointmentService:
    return AppointmentService(client, repository=store.appointments)


def _booking(**overrides) -> BookingRequest:
    fields = {
        "doctor_id": 100,
        "branch_id": 1,
        "department_id": 10,
        "appointment_date": "2026-10-22",
        "appointment_time": "10:00 AM",
        "reason": "Chest pain follow-up",
    }
    fields.update(overrides)
    return BookingRequest(**fields)


def test_mock_stats_and_lists(client, store) -> None:
    service = _service(client, store)

    stats = asyncio.run(service.stats())
    upcoming = asyncio.run(service.upcoming())
    past = asyncio.run(service.past())

    assert client.latency_called is True
    assert (stats.upcoming, stats.past) == (1, 2)
    assert [item.id for item in upcoming] == [UPCOMING_ID]
    assert upcoming[0].doctor_name == "Dr. Sara Haddad"
    assert upcoming[0].appointment_time == "09:30:00"
    assert {item.id: item.status for item in past} == {PAST_ID: "past", CANCELLED_ID: "cancelled"}
    assert past[0].id == PAST_ID  # most recent first


def test_booking_request_converts_display_time_to_wire_format() -> None:
    assert _booking(appointment_time="05:10 PM").appointment_time == "17:10:00"


def test_mock_booking_takes_the_slot(client, store) -> None:
    service = _service(client, store)

    response = asyncio.run(service.book(_booking()))

    assert response.status == "upcoming"
    assert response.appointment_time == "10:00:00"
    assert store.appointments.is_taken(100, "2026-10-22", "10:00:00") is True
    assert asyncio.run(service.stats()).upcoming == 2


def test_mock_booking_of_taken_slot_conflicts(client, store) -> None:
    service = _service(client, store)

    with pytest.raises(SlotConflictError) as excinfo:
        asyncio.run(service.book(_booking(appointment_time="09:30 AM")))

    assert excinfo.value.status_code == 409


def test_mock_booking_rejects_doctor_outside_branch(client, store) -> None:
    service = _service(client, store)

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(service.book(_booking(branch_id=2)))

    assert excinfo.value.status_code == 422


def test_malformed_dates_are_gated(client, store) -> None:
    service = _service(client, store)
    fields = {
        "doctor_id": 100,
        "branch_id": 1,
        "department_id": 10,
        "appointment_date": "22/10/2026",
        "appointment_time": "10:00 AM",
    }

    with pytest.raises(ValidationGateError):
        gate_request(BookingRequest, **fields)
    with pytest.raises(ValidationGateError):
        asyncio.run(service.reschedule(UPCOMING_ID, "22/10/2026", "10:00 AM"))


def test_booking_request_stores_canonical_date() -> None:
    assert _booking(appointment_date=date(2026, 10, 22)).appointment_date == "2026-10-22"


@pytest.mark.skipif(sys.version_info < (3, 11), reason="basic ISO dates need Python 3.11")
def test_compact_date_cannot_double_book_a_slot(client, store) -> None:
    service = _service(client, store)
    request = _booking(appointment_date="20261022", appointment_time="09:30 AM")

    assert request.appointment_date == "2026-10-22"
    with pytest.raises(SlotConflictError):
        asyncio.run(service.book(request))
    assert asyncio.run(service.stats()).upcoming == 1


@pytest.mark.skipif(sys.version_info < (3, 11), reason="basic ISO dates need Python 3.11")
def test_compact_date_reschedule_is_stored_canonically(client, store) -> None:
    service = _service(client, store)

    asyncio.run(service.reschedule(UPCOMING_ID, "20261025", "11:30 AM"))

    record = asyncio.run(store.appointments.get(UPCOMING_ID))
    assert record["appointment_date"] == "2026-10-25"


def test_mock_reschedule_moves_appointment(client, store) -> None:
    service = _service(client, store)

    response = asyncio.run(service.reschedule(UPCOMING_ID, "2026-10-25", "11:30 AM"))

    assert response.appointment_id == UPCOMING_ID
    upcoming = asyncio.run(service.upcoming())
    assert (upcoming[0].appointment_date, upcoming[0].appointment_time) == ("2026-10-25", "11:30:00")
    assert store.appointments.is_taken(100, "2026-10-22", "09:30:00") is False


def test_mock_reschedule_to_own_slot_is_allowed(client, store) -> None:
    service = _service(client, store)

    asyncio.run(service.reschedule(UPCOMING_ID, "2026-10-22", "09:30"))

    assert asyncio.run(service.stats()).upcoming == 1


def test_mock_reschedule_to_day_off_conflicts(client, store) -> None:
    service = _service(client, store)

    with pytest.raises(SlotConflictError):
        asyncio.run(service.reschedule(UPCOMING_ID, "2026-10-23", "09:00 AM"))


def test_mock_cancel_moves_appointment_to_past(client, store) -> None:
    service = _service(client, store)

    response = asyncio.run(service.cancel(UPCOMING_ID, "  Schedule conflict "))

    assert response.status == "cancelled"
    stats = asyncio.run(service.stats())
    assert (stats.upcoming, stats.past) == (0, 3)
    record = asyncio.run(store.appointments.get(UPCOMING_ID))
    assert record["cancellation_reason"] == "Schedule conflict"


def test_mock_cancel_rejects_past_and_unknown(client, store) -> None:
    service = _service(client, store)

    with pytest.raises(DownstreamServiceError) as past:
        asyncio.run(service.cancel(PAST_ID, "Health improved"))
    with pytest.raises(DownstreamServiceError) as cancelled:
        asyncio.run(service.cancel(CANCELLED_ID, "Health improved"))
    with pytest.raises(DownstreamServiceError) as missing:
        asyncio.run(service.cancel(9999, "Health improved"))

    assert past.value.status_code == 422
    assert cancelled.value.status_code == 422
    assert missing.value.status_code == 404


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_cancel_without_reason_never_reaches_backend(reason) -> None:
    client = MagicMock()
    client.use_mock_data = False
    client.post = AsyncMock()
    service = AppointmentService(client)

    with pytest.raises(ValidationGateError):
        asyncio.run(service.cancel(UPCOMING_ID, reason))

    client.post.assert_not_awaited()


def _live_service(handler) -> AppointmentService:
    client = PortalBackendClient(
        "https://portal.test/api",
        use_mock_data=False,
        token="secret",
        transport=httpx.MockTransport(handler),
    )
    return AppointmentService(client)


def test_live_mutations_post_to_backend_endpoints() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"success": True, "message": "ok", "data": None})

    service = _live_service(handler)
    asyncio.run(service.cancel(42, "Found another doctor"))
    asyncio.run(service.reschedule(42, "2026-11-02", "05:10 PM"))

    assert calls == [
        ("POST", "/api/appointments/42/cancel", {"cancellation_reason": "Found another doctor"}),
        (
            "POST",
            "/api/appointments/42/reschedule",
            {"appointment_date": "2026-11-02", "appointment_time": "17:10:00"},
        ),
    ]


def test_live_booking_returns_created_appointment() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert request.url.path == "/api/appointments"
        assert body["appointment_time"] == "10:00:00"
        assert "notes" not in body
        return httpx.Response(
            201,
            json={
                "success": True,
                "message": "created",
                "data": {"appointment": {"id": 77, "appointment_date": "2026-10-22", "appointment_time": "10:00:00"}},
            },
        )

    response = asyncio.run(_live_service(handler).book(_booking()))

    assert response.appointment_id == 77
    assert response.status == "upcoming"


def test_live_conflict_surfaces_as_slot_conflict() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"success": False, "message": "Slot already booked"})

    with pytest.raises(SlotConflictError) as excinfo:
        asyncio.run(_live_service(handler).reschedule(42, "2026-11-02", "09:00"))

    assert str(excinfo.value) == "Slot already booked"


def test_live_lists_parse_backend_payloads() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/stats"):
            data = {"upcoming": 3, "past": 5}
        else:
            data = [
                {
                    "id": 9,
                    "doctor_id": 100,
                    "doctor_name": "Dr. Sara Haddad",
                    "appointment_date": "2026-10-22",
                    "appointment_time": "09:30:00",
                    "status": "Upcoming",
                }
            ]
        return httpx.Response(200, json={"success": True, "message": "ok", "data": data})

    service = _live_service(handler)
    stats = asyncio.run(service.stats())
    upcoming = asyncio.run(service.upcoming())

    assert (stats.upcoming, stats.past) == (3, 5)
    assert upcoming[0].status == "upcoming"
    assert upcoming[0].is_cancelled is False


def test_mock_directory_lists(client, store) -> None:
    service = DirectoryService(client, repository=store.directory)

    branches = asyncio.run(service.branches())
    departments = asyncio.run(service.departments())
    doctors = asyncio.run(service.doctors(branch_id=1))
    initial = asyncio.run(service.initial_data())

    assert [branch.name for branch in branches] == [
        "Central Hospital",
        "Harbour Outpatient Centre",
        "North Clinic",
    ]
    cardiology = next(item for item in departments if item.name == "Cardiology")
    assert [doctor.id for doctor in cardiology.doctors] == [100, 103]
    assert [doctor.id for doctor in doctors] == [101, 100]
    assert len(initial.doctors) == 4


def test_live_doctors_unwraps_paginated_payload() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "success": True,
                "message": "ok",
                "data": {
                    "current_page": 1,
                    "data": [{"id": 102, "name": "Dr. Lina Farouk", "department_id": 12, "branch_id": 2}],
                },
            },
        )

    client = PortalBackendClient(
        "https://portal.test/api", use_mock_data=False, transport=httpx.MockTransport(handler)
    )
    doctors = asyncio.run(DirectoryService(client).doctors(branch_id=2))

    assert seen["params"] == {"active": "true", "branch_id": "2", "per_page": "100"}
    assert [doctor.name for doctor in doctors] == ["Dr. Lina Farouk"]
