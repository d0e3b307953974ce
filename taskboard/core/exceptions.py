from typing import Any, Optional

from fastapi import status


class ServiceError(Exception):
    """
    Base class for failures raised by the service layer.

    The message is part of the public contract and is returned to the
    caller verbatim by the exception handler in ``taskboard.main``.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal"

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class Unauthenticated(ServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthenticated"


class Forbidden(ServiceError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class NotFound(ServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "NotFound"


class Conflict(ServiceError):
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class BadRequest(ServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "BadRequest"


class Internal(ServiceError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Internal"
