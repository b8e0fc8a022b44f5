import asyncio

import httpx
import pytest

from patient_portal.clients.backend import PortalBackendClient
from patient_portal.services.exceptions import DownstreamServiceError, SlotConflictError


def _client(handler) -> PortalBackendClient:
    return PortalBackendClient(
        "https://portal.test/api/",
        use_mock_data=False,
        token="secret",
        transport=httpx.MockTransport(handler),
    )


def test_missing_base_url_forces_mock_mode() -> None:
    client = PortalBackendClient(None, use_mock_data=False)

    assert client.use_mock_data is True
    with pytest.raises(RuntimeError):
        asyncio.run(client.get("/branches"))


def test_get_unwraps_envelope_and_drops_empty_params() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        return httpx.Response(200, json={"success": True, "message": "ok", "data": [{"id": 1}]})

    data = asyncio.run(_client(handler).get("/doctors", params={"branch_id": 2, "department_id": None}))

    assert data == [{"id": 1}]
    assert seen["url"] == "https://portal.test/api/doctors?branch_id=2"
    assert seen["headers"]["Authorization"] == "Bearer secret"
    assert seen["headers"]["Accept"] == "application/json"


def test_unsuccessful_envelope_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "message": "Doctor inactive"})

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(_client(handler).post("/appointments", {"doctor_id": 1}))

    assert str(excinfo.value) == "Doctor inactive"


def test_conflict_status_maps_to_slot_conflict() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"success": False})

    with pytest.raises(SlotConflictError) as excinfo:
        asyncio.run(_client(handler).post("/appointments/1/reschedule", {}))

    assert excinfo.value.status_code == 409
    assert str(excinfo.value) == "Portal backend returned an error response"


def test_error_status_keeps_backend_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"success": False, "message": "Appointment not found"})

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(_client(handler).post("/appointments/9/cancel", {"cancellation_reason": "x"}))

    assert excinfo.value.status_code == 404
    assert str(excinfo.value) == "Appointment not found"


def test_transport_failure_has_no_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(_client(handler).get("/branches"))

    assert excinfo.value.status_code is None
    assert isinstance(excinfo.value.cause, httpx.ConnectError)


def test_non_json_body_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>maintenance</html>")

    with pytest.raises(DownstreamServiceError) as excinfo:
        asyncio.run(_client(handler).get("/branches"))

    assert excinfo.value.status_code == 200


def test_close_releases_http_client() -> None:
    client = _client(lambda request: httpx.Response(200, json={"success": True, "data": {}}))

    asyncio.run(client.close())
    data = asyncio.run(client.get("/appointments/initial-data"))

    assert data == {}
