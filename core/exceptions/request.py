from core.exceptions.base import AbstractException


class InvalidRequestException(AbstractException):
    status_code = 400
    default_error_code = "INVALID_REQUEST"


class ConflictException(AbstractException):
    """Raised when the target resource is not in a state that allows the change."""

    status_code = 409
    default_error_code = "CONFLICT"


class ServiceUnavailableException(AbstractException):
    status_code = 503
    default_error_code = "SERVICE_UNAVAILABLE"
