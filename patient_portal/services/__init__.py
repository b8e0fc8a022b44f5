"""Service package public API definitions.

Service implementations are imported lazily: ``patient_portal.clients.backend``
imports ``patient_portal.services.exceptions``, which executes this module
first, and an eager import of the services (which in turn import the client)
would be circular.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "AppointmentService",
    "AvailabilityResolver",
    "DirectoryService",
    "FilterChainController",
]

_SERVICE_MODULES = {
    "AppointmentService": "appointment",
    "AvailabilityResolver": "availability",
    "DirectoryService": "directory",
    "FilterChainController": "filters",
}


def __getattr__(name: str) -> Any:
    if name not in _SERVICE_MODULES:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module = import_module(f".{_SERVICE_MODULES[name]}", __name__)
    attr = getattr(module, name)
    globals()[name] = attr
    return attr


if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .appointment import AppointmentService as AppointmentService
    from .availability import AvailabilityResolver as AvailabilityResolver
    from .directory import DirectoryService as DirectoryService
    from .filters import FilterChainController as FilterChainController
