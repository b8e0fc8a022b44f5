from fastapi import HTTPException

from patient_portal.services.exceptions import (
    DownstreamServiceError,
    ServiceError,
    SlotConflictError,
    ValidationGateError,
)


def http_error(exc: ServiceError) -> HTTPException:
    """Map a service failure onto the status code the router returns."""

    if isinstance(exc, ValidationGateError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, SlotConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, DownstreamServiceError) and exc.status_code in (404, 422):
        return HTTPException(status_code=exc.status_code, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))
