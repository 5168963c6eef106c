import json
import logging
import os
from typing import Optional, Dict, Any, List

import firebase_admin
from fastapi.concurrency import run_in_threadpool
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from core.notifications.firebase_cloud_messaging.exceptions import (
    FirebaseConfigurationError,
    FirebaseException,
    FirebaseInternalError,
    FirebaseInvalidArgumentError,
    FirebaseInvalidTokenError,
    FirebaseQuotaExceededError,
    FirebaseSenderIdMismatchError,
    FirebaseUnavailableError,
    FirebaseUnknownError,
    FirebaseUnregisteredTokenError,
)
from core.notifications.firebase_cloud_messaging.schema import FCMMulticastMessage
from core.notifications.gateway import PushSendResult

logger = logging.getLogger(__name__)

# send_each refuses larger lists outright
FCM_BATCH_LIMIT = 500


def initialize_firebase(
    service_account_path: Optional[str] = None,
    service_account_json: Optional[str] = None,
) -> firebase_admin.App:
    """
    Initialize the process-wide Firebase Admin app once. Calling it again
    returns the app that is already running.

    Raises:
        FirebaseConfigurationError: credentials are missing or unparseable.
    """
    # Check if an app is already initialized to prevent re-initialization errors
    if firebase_admin._apps:
        logger.info("Firebase already initialized.")
        return firebase_admin.get_app()

    try:
        if service_account_path:
            if not os.path.exists(service_account_path):
                raise FirebaseConfigurationError(
                    f"Service account file not found: {service_account_path}"
                )
            cred = credentials.Certificate(service_account_path)
        elif service_account_json:
            cred = credentials.Certificate(json.loads(service_account_json))
        elif os.getenv("GOOGLE_APPLICATION_CREDENTIALS"):
            cred = credentials.ApplicationDefault()
        else:
            raise FirebaseConfigurationError("No valid Firebase credentials provided")

        app = firebase_admin.initialize_app(cred)
        logger.info("Firebase initialized successfully")
        return app
    except FirebaseConfigurationError:
        raise
    except (ValueError, IOError) as e:
        # json.JSONDecodeError is a ValueError, so is a malformed certificate
        raise FirebaseConfigurationError(f"Failed to initialize Firebase: {e}") from e


def _short(token: str) -> str:
    return f"{token[:10]}..."


class FirebaseCloudMessagingCore:
    """
    FCM implementation of the push gateway. Sends one message per token and
    reports a result for every token instead of raising on partial failure.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    @classmethod
    def from_credentials(
        cls,
        service_account_path: Optional[str] = None,
        service_account_json: Optional[str] = None,
    ) -> "FirebaseCloudMessagingCore":
        app = initialize_firebase(service_account_path, service_account_json)
        return cls(app=app)

    async def send_multicast(
        self,
        message: FCMMulticastMessage,
        tokens: List[str],
        dry_run: bool = False,
    ) -> List[PushSendResult]:
        """
        Send the message to every token, at most FCM_BATCH_LIMIT per SDK call.
        The SDK call is blocking, so it runs on the threadpool.

        Returns:
            One PushSendResult per token, in the order of ``tokens``.

        Raises:
            FirebaseException: FCM refused a whole batch before trying any
                token. No per-token result exists in that case.
        """
        results: List[PushSendResult] = []
        for start in range(0, len(tokens), FCM_BATCH_LIMIT):
            chunk = tokens[start : start + FCM_BATCH_LIMIT]
            results.extend(await self._send_batch(message, chunk, dry_run))

        if results:
            logger.info(
                f"FCM sent to {len(results)} tokens: "
                f"{sum(r.success for r in results)} success, "
                f"{sum(not r.success for r in results)} failed"
            )
        return results

    async def _send_batch(
        self, message: FCMMulticastMessage, tokens: List[str], dry_run: bool
    ) -> List[PushSendResult]:
        firebase_messages = [
            self._build_firebase_message(message, token) for token in tokens
        ]
        try:
            batch = await run_in_threadpool(
                messaging.send_each, firebase_messages, dry_run, self.app
            )
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            error = self._translate_exception(e)
            logger.error(
                f"FCM refused a batch of {len(tokens)} tokens "
                f"[{error.push_error_code}]: {error.error_message}"
            )
            raise error from e

        results: List[PushSendResult] = []
        for token, response in zip(tokens, batch.responses):
            if response.success:
                results.append(
                    PushSendResult(
                        token=token,
                        success=True,
                        message_id=response.message_id,
                    )
                )
                continue

            error = self._translate_exception(response.exception)
            logger.warning(
                f"FCM send failed for token {_short(token)} "
                f"[{error.push_error_code}]: {error.error_message}"
            )
            results.append(
                PushSendResult(
                    token=token,
                    success=False,
                    error_code=error.push_error_code,
                    error_message=error.error_message,
                )
            )
        return results

    @staticmethod
    def _translate_exception(error: Optional[Exception]) -> FirebaseException:
        """Map a Firebase Admin SDK error onto our exception types."""
        code = getattr(error, "code", None)
        if isinstance(error, messaging.UnregisteredError):
            return FirebaseUnregisteredTokenError(str(error), fcm_error_code=code)
        if isinstance(error, messaging.SenderIdMismatchError):
            return FirebaseSenderIdMismatchError(str(error), fcm_error_code=code)
        if isinstance(error, messaging.QuotaExceededError):
            return FirebaseQuotaExceededError(str(error), fcm_error_code=code)
        if isinstance(error, firebase_exceptions.InvalidArgumentError) and (
            "registration token" in str(error).lower()
        ):
            # Only this form of INVALID_ARGUMENT is about the token itself
            return FirebaseInvalidTokenError(str(error), fcm_error_code=code)
        if isinstance(error, (firebase_exceptions.InvalidArgumentError, ValueError)):
            return FirebaseInvalidArgumentError(str(error))
        if isinstance(error, firebase_exceptions.UnavailableError):
            return FirebaseUnavailableError(str(error), fcm_error_code=code)
        if isinstance(
            error,
            (firebase_exceptions.InternalError, firebase_exceptions.DeadlineExceededError),
        ):
            return FirebaseInternalError(str(error), fcm_error_code=code)
        return FirebaseUnknownError(f"Unexpected error: {error}")

    def _build_firebase_message(
        self, message: FCMMulticastMessage, token: str
    ) -> messaging.Message:
        """
        Build Firebase message from FCMMulticastMessage model for a single token.
        """
        kwargs: Dict[str, Any] = {"token": token}

        if message.notification:
            kwargs["notification"] = messaging.Notification(
                title=message.notification.title,
                body=message.notification.body,
                image=message.notification.image,
            )

        if message.data:
            kwargs["data"] = message.data

        if message.android:
            android_notification = None
            if message.notification:
                android_notification = messaging.AndroidNotification(
                    title=message.notification.title,
                    body=message.notification.body,
                    tag=message.android.tag,
                    click_action=message.android.click_action,
                    channel_id=message.android.channel_id,
                    priority=message.android.notification_priority.value,
                    visibility=message.android.visibility,
                    default_sound=True,
                    default_vibrate_timings=True,
                )
            kwargs["android"] = messaging.AndroidConfig(
                collapse_key=message.android.collapse_key,
                priority=message.android.priority.value,
                ttl=message.android.ttl,
                notification=android_notification,
            )

        if message.apns:
            apns_alert = None
            if message.notification:
                apns_alert = messaging.ApsAlert(
                    title=message.notification.title,
                    body=message.notification.body,
                )
            kwargs["apns"] = messaging.APNSConfig(
                headers=message.apns.headers,
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        alert=apns_alert,
                        badge=message.apns.badge,
                        sound=message.apns.sound,
                        content_available=message.apns.content_available,
                        category=message.apns.category,
                    )
                ),
            )

        if message.webpush:
            webpush_notification = None
            if message.notification:
                actions = [
                    messaging.WebpushNotificationAction(
                        action=action["action"], title=action["title"]
                    )
                    for action in (message.webpush.actions or [])
                ]
                webpush_notification = messaging.WebpushNotification(
                    title=message.notification.title,
                    body=message.notification.body,
                    icon=message.webpush.icon,
                    badge=message.webpush.badge,
                    actions=actions or None,
                    require_interaction=message.webpush.require_interaction or None,
                )
            kwargs["webpush"] = messaging.WebpushConfig(
                headers=message.webpush.headers,
                notification=webpush_notification,
                fcm_options=(
                    messaging.WebpushFCMOptions(link=message.webpush.link)
                    if message.webpush.link
                    else None
                ),
            )

        return messaging.Message(**kwargs)
