import asyncio
import logging
from typing import Annotated, List, Optional, Set
from urllib.parse import urlencode

from apps.api.device.schema import AllGuards, FlatResidents, TokenSelector
from apps.api.device.service import TokenDirectoryDependency
from apps.api.notification.dependency import PublicBaseUrlDependency
from apps.api.notification.schema import (
    ActionType,
    DispatchResult,
    NotificationPayload,
)
from apps.api.visitor.models import VisitorRequest
from apps.api.visitor.schema import InformationalStatus, VisitorStatus
from apps.api.visitor.service import RequestStoreDependency
from apps.settings import settings
from core.architecture.service import AbstractService
from core.db.core import SessionDep
from core.db.mixins import utc_now
from core.exceptions.request import InvalidRequestException
from core.notifications.dependency import PushGatewayDependency
from core.notifications.firebase_cloud_messaging.schema import (
    AndroidConfig,
    APNSConfig,
    FCMMulticastMessage,
    FCMNotification,
    WebpushConfig,
)
from core.notifications.gateway import PushErrorCode, PushGatewayError

logger = logging.getLogger(__name__)

VISITOR_CHANNEL_ID = "visitor_requests"
VISITOR_ACTIONS = [
    {"action": "approve", "title": "Approve"},
    {"action": "reject", "title": "Reject"},
]

# (title, body template, audience) per status change
STATUS_MESSAGES = {
    VisitorStatus.APPROVED.value: ("Visitor Approved", "{name} was approved for flat {flat}.", "guards"),
    VisitorStatus.REJECTED.value: ("Visitor Rejected", "{name} was rejected for flat {flat}.", "guards"),
    VisitorStatus.ENTERED.value: ("Visitor Entered", "{name} has entered the premises.", "flat"),
    VisitorStatus.EXITED.value: ("Visitor Left", "{name} has left the premises.", "flat"),
    InformationalStatus.ARRIVED.value: ("Visitor Arrived", "{name} has arrived at the gate.", "flat"),
    InformationalStatus.WAITING_APPROVAL.value: (
        "New Visitor Request",
        "{name} is waiting for your approval.",
        "flat",
    ),
}


def _short(token: str) -> str:
    return f"{token[:10]}..."


class NotificationDispatcher(AbstractService):
    """
    Resolves recipients for an event and pushes to them with bounded retry,
    pruning tokens the provider reports as permanently dead.
    """

    DEPENDENCIES = {
        "session": SessionDep,
        "directory": TokenDirectoryDependency,
        "store": RequestStoreDependency,
        "gateway": PushGatewayDependency,
        "base_url": PublicBaseUrlDependency,
    }

    def __init__(
        self,
        session: SessionDep,
        directory: TokenDirectoryDependency,
        store: RequestStoreDependency,
        gateway: PushGatewayDependency,
        base_url: PublicBaseUrlDependency,
        **kwargs,
    ):
        super().__init__(session=session, **kwargs)
        self.session = session
        self.directory = directory
        self.store = store
        self.gateway = gateway
        self.base_url = (base_url or "").rstrip("/")

    async def dispatch(
        self,
        residency_id: str,
        selector: TokenSelector,
        payload: NotificationPayload,
        request_id: Optional[str] = None,
    ) -> DispatchResult:
        """
        Push ``payload`` to the selected principals plus the residency admin.

        A dispatch scoped to ``request_id`` is sent at most once: it is skipped
        when the request was already notified or is no longer pending, and the
        request is marked notified after the first confirmed delivery.
        Per-token failures are returned as counts; a payload the provider
        rejects outright raises InvalidRequestException.
        """
        request: Optional[VisitorRequest] = None
        if request_id:
            request = await self.store.read_detailed(residency_id, request_id)
            if request.notification_sent:
                logger.info(f"Notification already sent for request {request_id}")
                return DispatchResult(skipped_reason="already_sent")
            if request.status != VisitorStatus.PENDING.value:
                logger.info(f"Request {request_id} is no longer pending")
                return DispatchResult(skipped_reason="not_pending")
        elif payload.action_type == ActionType.VISITOR_REQUEST:
            raise InvalidRequestException(
                "A visitor request notification needs a request id",
                error_code="REQUEST_ID_REQUIRED",
            )

        if self.gateway is None or not settings.PUSH_ENABLED:
            logger.warning(
                f"Push is not configured; dropping notification for {residency_id}"
            )
            return DispatchResult(skipped_reason="push_unavailable")

        tokens: Set[str] = await self.directory.resolve_tokens(residency_id, selector)
        tokens |= await self.directory.admin_tokens(residency_id)
        if not tokens:
            logger.info(f"No registered devices for {selector!r} in {residency_id}")
            return DispatchResult(skipped_reason="no_tokens")

        message = self.build_message(residency_id, payload, request)
        result = await self._send_with_retry(residency_id, message, sorted(tokens))

        if request is not None and result.success_count > 0:
            await self.store.mark_notification_sent(residency_id, request.id)

        logger.info(
            f"Dispatch to {residency_id}: {result.success_count} delivered, "
            f"{result.failure_count} failed, {result.invalidated_count} pruned"
        )
        return result

    async def dispatch_visitor_request(
        self, residency_id: str, request_id: str
    ) -> DispatchResult:
        """The first push for a new request, to its flat and the admin."""
        request = await self.store.read(residency_id, request_id)
        payload = NotificationPayload(
            title="New Visitor Request",
            body=f"{request.visitor_name} is requesting entry.",
            action_type=ActionType.VISITOR_REQUEST,
        )
        return await self.dispatch(
            residency_id,
            FlatResidents(flat_id=request.flat_id),
            payload,
            request_id=request.id,
        )

    async def notify_status_change(
        self,
        residency_id: str,
        request: VisitorRequest,
        status: str,
        actor: Optional[str] = None,
    ) -> DispatchResult:
        """
        Secondary notification after a status change: the gate on approve or
        reject, the flat for everything the gate reports.
        """
        title, template, audience = STATUS_MESSAGES[status]
        request = await self.store.read_detailed(residency_id, request.id)
        flat = request.flat.number if request.flat is not None else ""
        payload = NotificationPayload(
            title=title,
            body=template.format(name=request.visitor_name or "Visitor", flat=flat),
            action_type=ActionType.STATUS_UPDATE,
            data={
                "requestId": request.id,
                "status": status,
                "visitorName": request.visitor_name,
                "flatId": request.flat_id,
                "actionBy": actor or "",
            },
        )
        selector = (
            AllGuards() if audience == "guards" else FlatResidents(flat_id=request.flat_id)
        )
        return await self.dispatch(residency_id, selector, payload)

    def action_url(self, residency_id: str, request: VisitorRequest, action: str) -> str:
        query = urlencode(
            {
                "action": action,
                "residencyId": residency_id,
                "requestId": request.id,
                "approvalToken": request.approval_token,
            }
        )
        return f"{self.base_url}/action?{query}"

    def build_message(
        self,
        residency_id: str,
        payload: NotificationPayload,
        request: Optional[VisitorRequest] = None,
    ) -> FCMMulticastMessage:
        data = dict(payload.data)
        data.update(
            {
                "actionType": payload.action_type.value,
                "residencyId": residency_id,
                "timestamp": utc_now().isoformat(),
            }
        )
        is_visitor_request = payload.action_type == ActionType.VISITOR_REQUEST
        if request is not None:
            flat = request.flat
            block = flat.block if flat is not None else None
            data.update(
                {
                    "requestId": request.id,
                    "visitorName": request.visitor_name,
                    "flatId": request.flat_id,
                    "block": block.name if block is not None else "",
                    "flat": flat.number if flat is not None else "",
                }
            )
            if is_visitor_request:
                data["actionUrlApprove"] = self.action_url(residency_id, request, "approve")
                data["actionUrlReject"] = self.action_url(residency_id, request, "reject")

        # FCM refuses a webpush link that is not https
        link = self.base_url + "/" if self.base_url.startswith("https://") else None
        return FCMMulticastMessage(
            notification=FCMNotification(title=payload.title, body=payload.body),
            data=data,
            android=AndroidConfig(
                channel_id=VISITOR_CHANNEL_ID,
                tag=request.id if request is not None else None,
            ),
            apns=APNSConfig(
                headers={"apns-priority": "10"},
                badge=1,
                content_available=True,
                category=ActionType.VISITOR_REQUEST.value if is_visitor_request else None,
            ),
            webpush=WebpushConfig(
                headers={"Urgency": "high"},
                link=link,
                actions=VISITOR_ACTIONS if is_visitor_request else None,
                require_interaction=is_visitor_request,
            ),
        )

    async def _send_with_retry(
        self, residency_id: str, message: FCMMulticastMessage, tokens: List[str]
    ) -> DispatchResult:
        max_retries = max(settings.PUSH_MAX_RETRIES, 0)
        result = DispatchResult()
        dead_tokens: List[str] = []
        pending = list(tokens)

        for attempt in range(max_retries + 1):
            if not pending:
                break
            if attempt > 0:
                logger.info(f"Retry attempt {attempt} for {len(pending)} tokens")
                await asyncio.sleep(attempt * settings.PUSH_RETRY_BACKOFF_SECONDS)

            try:
                outcomes = await self.gateway.send_multicast(message, pending)
            except PushGatewayError as e:
                # Refused before any token was tried, so nothing is pruned
                if PushErrorCode.is_transient(e.push_error_code) and attempt < max_retries:
                    continue
                if e.push_error_code == PushErrorCode.INVALID_ARGUMENT:
                    raise InvalidRequestException(
                        "Push provider rejected the notification payload",
                        error_code="PUSH_PAYLOAD_REJECTED",
                        details={"reason": e.error_message},
                    ) from e
                logger.error(
                    f"Push send refused for {len(pending)} tokens "
                    f"[{e.push_error_code}]: {e.error_message}"
                )
                result.failure_count += len(pending)
                break

            retry: List[str] = []
            for outcome in outcomes:
                if outcome.success:
                    result.success_count += 1
                elif PushErrorCode.is_transient(outcome.error_code) and attempt < max_retries:
                    retry.append(outcome.token)
                else:
                    result.failure_count += 1
                    if PushErrorCode.is_permanent(outcome.error_code):
                        dead_tokens.append(outcome.token)
            pending = retry

        for token in dead_tokens:
            logger.info(f"Pruning dead token {_short(token)}")
            if await self.directory.invalidate(residency_id, token):
                result.invalidated_count += 1
        return result


NotificationDispatcherDependency = Annotated[
    NotificationDispatcher, NotificationDispatcher.get_dependency()
]
