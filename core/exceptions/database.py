from core.exceptions.base import AbstractException


class NotFoundException(AbstractException):
    status_code = 404
    default_error_code = "NOT_FOUND"
