from typing import Any, Optional


class AbstractException(Exception):
    """
    Base class for exceptions that are rendered as an HTTP error response.
    Subclasses only pick the status code and a default error code.
    """

    status_code: int = 500
    default_error_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "message": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            body["details"] = self.details
        return body
