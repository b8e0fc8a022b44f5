
class ServiceError(Exception):
    """Base exception for service layer failures."""

    def __init__(self, message: str, *, cause: Exception | None = None):
        super().__init__(message)
        self.cause = cause


class DownstreamServiceError(ServiceError):
    """Raised when the portal backend fails or returns an error response."""

    def __init__(self, message: str, status_code: int | None = None, *, cause: Exception | None = None):
        super().__init__(message, cause=cause)
        self.status_code = status_code


class SlotConflictError(DownstreamServiceError):
    """Raised when the backend rejects a slot that is no longer free."""

    def __init__(self, message: str = "The selected time slot is no longer available", *, cause: Exception | None = None):
        super().__init__(message, status_code=409, cause=cause)


class ValidationGateError(ServiceError):
    """Raised when a request is blocked locally before reaching the backend."""


class AvailabilityError(ServiceError):
    """Raised when a doctor's schedule could not be fetched."""
