from __future__ import annotations

import logging
from typing import Any, List

from patient_portal.clients.backend import PortalBackendClient
from patient_portal.schemas.directory import Branch, Department, Doctor, InitialBookingData
from patient_portal.services.exceptions import DownstreamServiceError, ServiceError
from patient_portal.services.mock_store import DirectoryRepository, get_mock_store

logger = logging.getLogger(__name__)

DOCTOR_PAGE_SIZE = 100


class DirectoryService:
    """Service responsible for branch, department and doctor lookups."""

    def __init__(
        self,
        client: PortalBackendClient,
        *,
        repository: DirectoryRepository | None = None,
    ) -> None:
        self._client = client
        self._repository = repository
        if self._client.use_mock_data:
            self._repository = repository or get_mock_store().directory

    def _mock_repository(self) -> DirectoryRepository:
        if not self._repository:
            raise RuntimeError("Mock directory repository not configured")
        return self._repository

    async def branches(self) -> List[Branch]:
        logger.info("Listing active branches")
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return self._mock_repository().branches()

        data = await self._client.get("/branches", params={"active": "true"})
        return _parse_list(Branch, data, "branches")

    async def departments(self, *, with_doctors: bool = True) -> List[Department]:
        logger.info("Listing active departments (with_doctors=%s)", with_doctors)
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return self._mock_repository().departments(with_doctors=with_doctors)

        params = {"active": "true"}
        if with_doctors:
            params["with_doctors"] = "true"
        data = await self._client.get("/departments", params=params)
        return _parse_list(Department, data, "departments")

    async def doctors(
        self,
        *,
        branch_id: int | None = None,
        department_id: int | None = None,
    ) -> List[Doctor]:
        logger.info("Listing doctors for branch %s, department %s", branch_id, department_id)
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return self._mock_repository().doctors(branch_id=branch_id, department_id=department_id)

        data = await self._client.get(
            "/doctors",
            params={
                "active": "true",
                "branch_id": branch_id,
                "department_id": department_id,
                "per_page": DOCTOR_PAGE_SIZE,
            },
        )
        # paginated payload: the doctors sit under data.data
        if isinstance(data, dict):
            data = data.get("data", [])
        return _parse_list(Doctor, data, "doctors")

    async def initial_data(self) -> InitialBookingData:
        logger.info("Loading initial booking data")
        if self._client.use_mock_data:
            await self._client.simulate_latency()
            return self._mock_repository().initial_data()

        data = await self._client.get("/appointments/initial-data")
        try:
            return InitialBookingData.model_validate(data or {})
        except ValueError as exc:
            raise ServiceError("Failed to load booking data", cause=exc) from exc


def _parse_list(model: Any, data: Any, label: str) -> List[Any]:
    if isinstance(data, dict) and label in data:
        data = data[label]
    if not isinstance(data, list):
        raise DownstreamServiceError(f"Unexpected {label} payload from portal backend")
    try:
        return [model.model_validate(item) for item in data]
    except ValueError as exc:
        logger.exception("Malformed %s payload from portal backend", label)
        raise ServiceError(f"Failed to load {label}", cause=exc) from exc
