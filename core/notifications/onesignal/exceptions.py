from typing import Any, Optional


class OneSignalException(Exception):
    """Raised when the OneSignal REST API refuses a notification."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[Any] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors
