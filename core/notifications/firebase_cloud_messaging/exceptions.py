from typing import Optional

from core.notifications.gateway import PushErrorCode, PushGatewayError


class FirebaseException(PushGatewayError):
    """
    Base for Firebase Cloud Messaging failures. Each subclass names the FCM
    code it stands for and the provider-neutral code the dispatcher acts on.
    """

    default_fcm_code: str = "UNKNOWN_ERROR"
    push_error_code: str = PushErrorCode.UNKNOWN

    def __init__(self, message: str, fcm_error_code: Optional[str] = None):
        super().__init__(message)
        self.fcm_error_code = fcm_error_code or self.default_fcm_code


class FirebaseConfigurationError(FirebaseException):
    """Credentials are missing or cannot be parsed."""

    default_fcm_code = "CONFIGURATION_ERROR"


class FirebaseInvalidArgumentError(FirebaseException):
    default_fcm_code = "INVALID_ARGUMENT"
    push_error_code = PushErrorCode.INVALID_ARGUMENT


class FirebaseInvalidTokenError(FirebaseException):
    """The provider says the token is not a well-formed registration token."""

    default_fcm_code = "INVALID_ARGUMENT"
    push_error_code = PushErrorCode.INVALID_TOKEN


class FirebaseUnregisteredTokenError(FirebaseException):
    """The device token was unregistered; it will never work again."""

    default_fcm_code = "UNREGISTERED"
    push_error_code = PushErrorCode.NOT_REGISTERED


class FirebaseSenderIdMismatchError(FirebaseException):
    """The token belongs to a different Firebase project."""

    default_fcm_code = "SENDER_ID_MISMATCH"
    push_error_code = PushErrorCode.MISMATCHED_CREDENTIAL


class FirebaseQuotaExceededError(FirebaseException):
    default_fcm_code = "QUOTA_EXCEEDED"
    push_error_code = PushErrorCode.QUOTA_EXCEEDED


class FirebaseInternalError(FirebaseException):
    default_fcm_code = "INTERNAL"
    push_error_code = PushErrorCode.INTERNAL_ERROR


class FirebaseUnavailableError(FirebaseException):
    default_fcm_code = "UNAVAILABLE"
    push_error_code = PushErrorCode.SERVER_UNAVAILABLE


class FirebaseUnknownError(FirebaseException):
    pass
