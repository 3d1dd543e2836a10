"""Domain errors.

Each error is an ``HTTPException`` so route functions can let it propagate and
FastAPI renders the right status code. Non-HTTP callers (the bus worker) catch
``EventManagerError``.
"""
from fastapi import HTTPException, status


class EventManagerError(HTTPException):
    """Base class for all errors raised by the service layer."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, detail: str):
        super().__init__(status_code=self.status_code, detail=detail)

    def __str__(self) -> str:
        return str(self.detail)


class NotFoundError(EventManagerError):
    """Event or guest entry does not exist."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(EventManagerError):
    """Duplicate invitation or venue not available."""

    status_code = status.HTTP_409_CONFLICT


class PreconditionFailedError(EventManagerError):
    """Operation not allowed in the guest's current state."""

    status_code = status.HTTP_412_PRECONDITION_FAILED


class UpstreamUnavailableError(EventManagerError):
    """Booking service or event bus could not be reached."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
