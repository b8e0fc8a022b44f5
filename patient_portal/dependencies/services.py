from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from patient_portal.clients.backend import PortalBackendClient
from patient_portal.config import Settings, get_settings
from patient_portal.services import (
    AppointmentService,
    AvailabilityResolver,
    DirectoryService,
)
from patient_portal.services.notifications import NotificationCenter
from patient_portal.services.views import AppointmentsView


@lru_cache(maxsize=1)
def get_backend_client_cached() -> PortalBackendClient:
    settings = get_settings()
    return PortalBackendClient(
        settings.api_base_url,
        timeout=settings.api_timeout,
        use_mock_data=settings.use_mock_data,
        token=settings.api_token,
    )


def get_backend_client(settings: Settings = Depends(get_settings)) -> PortalBackendClient:
    return get_backend_client_cached()


def get_appointment_service(
    client: PortalBackendClient = Depends(get_backend_client),
) -> AppointmentService:
    return AppointmentService(client)


def get_availability_resolver(
    client: PortalBackendClient = Depends(get_backend_client),
) -> AvailabilityResolver:
    return AvailabilityResolver(client)


def get_directory_service(
    client: PortalBackendClient = Depends(get_backend_client),
) -> DirectoryService:
    return DirectoryService(client)


def get_appointments_view(
    client: PortalBackendClient = Depends(get_backend_client),
    settings: Settings = Depends(get_settings),
) -> AppointmentsView:
    return AppointmentsView(
        AppointmentService(client),
        AvailabilityResolver(client),
        notifications=NotificationCenter(settings.notification_timeout),
        window_days=settings.availability_window_days,
    )
