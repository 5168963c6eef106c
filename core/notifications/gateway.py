from typing import List, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from core.notifications.firebase_cloud_messaging.schema import FCMMulticastMessage


class PushErrorCode:
    """
    Provider-neutral delivery error codes. The names follow the FCM error
    taxonomy; another provider has to map its own codes onto these.
    """

    INTERNAL_ERROR = "internal-error"
    SERVER_UNAVAILABLE = "server-unavailable"
    NOT_REGISTERED = "registration-token-not-registered"
    INVALID_TOKEN = "invalid-registration-token"
    INVALID_ARGUMENT = "invalid-argument"
    MISMATCHED_CREDENTIAL = "mismatched-credential"
    QUOTA_EXCEEDED = "message-rate-exceeded"
    UNKNOWN = "unknown-error"

    TRANSIENT = frozenset({INTERNAL_ERROR, SERVER_UNAVAILABLE})
    # Codes that condemn the token itself. INVALID_ARGUMENT is about the
    # message, so it never prunes.
    PERMANENT = frozenset({NOT_REGISTERED, INVALID_TOKEN, MISMATCHED_CREDENTIAL})

    @classmethod
    def is_transient(cls, code: Optional[str]) -> bool:
        return code in cls.TRANSIENT

    @classmethod
    def is_permanent(cls, code: Optional[str]) -> bool:
        return code in cls.PERMANENT


class PushSendResult(BaseModel):
    """Outcome of a send for one device token."""

    token: str
    success: bool
    message_id: Optional[str] = Field(None, description="Provider message id")
    error_code: Optional[str] = Field(None, description="PushErrorCode value")
    error_message: Optional[str] = None


@runtime_checkable
class PushGateway(Protocol):
    """
    The multicast send capability the dispatcher depends on. Per-token failures
    come back as results; a refusal of the whole send raises PushGatewayError.
    """

    async def send_multicast(
        self,
        message: FCMMulticastMessage,
        tokens: List[str],
        dry_run: bool = False,
    ) -> List[PushSendResult]: ...


class PushGatewayError(Exception):
    """
    The provider refused a whole send before trying any token. Carries a
    PushErrorCode so callers can tell a bad message from an outage.
    """

    push_error_code: str = PushErrorCode.UNKNOWN

    def __init__(self, message: str, push_error_code: Optional[str] = None):
        super().__init__(message)
        self.error_message = message
        if push_error_code:
            self.push_error_code = push_error_code
