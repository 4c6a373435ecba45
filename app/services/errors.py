"""
Service-layer errors.

Services raise these with a human-readable message; the HTTP layer turns
them into a JSON error with the carried status code (see app.routes.error_handlers).
"""

from fastapi import status


class ConnectServiceError(Exception):
    """Base class for errors raised by services and use cases."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(ConnectServiceError):
    status_code = status.HTTP_400_BAD_REQUEST


class Forbidden(ConnectServiceError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(ConnectServiceError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidState(ConnectServiceError):
    """A transition was attempted from a state that does not allow it."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, current_status: str | None = None):
        super().__init__(message)
        self.current_status = current_status


class DuplicateRequest(ConnectServiceError):
    status_code = status.HTTP_409_CONFLICT


class AlreadyApproved(ConnectServiceError):
    status_code = status.HTTP_409_CONFLICT


class ProviderError(ConnectServiceError):
    """The identity verification provider failed or answered with an error."""

    status_code = status.HTTP_502_BAD_GATEWAY


class Unexpected(ConnectServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
