from fastapi import APIRouter

from apps.api.auth.dependency import AdminDependency, GuardDependency
from apps.api.device.schema import AllResidents, FlatResidents, SinglePrincipal
from apps.api.notification.schema import (
    ActionType,
    BroadcastRequest,
    DispatchResult,
    NotificationPayload,
    OneSignalResponse,
    OneSignalVisitorRequest,
    SendNotificationRequest,
    TargetType,
    VisitorNotificationRequest,
)
from apps.api.notification.service import NotificationDispatcherDependency
from apps.api.user.schema import PrincipalRef, PrincipalRole
from apps.api.user.service import UserServiceDependency
from apps.api.visitor.service import RequestStoreDependency
from core.exceptions.request import ServiceUnavailableException
from core.notifications.dependency import OneSignalClientDependency
from core.notifications.onesignal.exceptions import OneSignalException

router = APIRouter(prefix="/notification", tags=["Notifications"])


@router.post("/send", summary="Send a notification to residents, a flat or a user")
async def send_notification_endpoint(
    body: SendNotificationRequest,
    dispatcher: NotificationDispatcherDependency,
    admin: AdminDependency,
) -> DispatchResult:
    if body.target_type == TargetType.RESIDENTS:
        selector = AllResidents()
    elif body.target_type == TargetType.SPECIFIC_FLAT:
        selector = FlatResidents(flat_id=body.target_id)
    else:
        selector = SinglePrincipal(
            principal=PrincipalRef(role=PrincipalRole.RESIDENT, username=body.target_id)
        )
    payload = NotificationPayload(title=body.title, body=body.body, data=body.data)
    return await dispatcher.dispatch(admin.residency_id, selector, payload)


@router.post("/broadcast", summary="Broadcast to every resident")
async def broadcast_endpoint(
    body: BroadcastRequest,
    dispatcher: NotificationDispatcherDependency,
    admin: AdminDependency,
) -> DispatchResult:
    payload = NotificationPayload(
        title=body.title,
        body=body.body,
        action_type=ActionType.ADMIN_BROADCAST,
        data={**body.data, "type": "admin-broadcast"},
    )
    return await dispatcher.dispatch(admin.residency_id, AllResidents(), payload)


@router.post("/visitor", summary="Send the first push for a pending visitor request")
async def visitor_notification_endpoint(
    body: VisitorNotificationRequest,
    dispatcher: NotificationDispatcherDependency,
    principal: GuardDependency,
) -> DispatchResult:
    """
    Safe to call repeatedly: once the request was delivered, or once it
    left pending, nothing is sent.
    """
    return await dispatcher.dispatch_visitor_request(
        principal.residency_id, body.request_id
    )


@router.post("/onesignal/visitor", summary="Visitor request through OneSignal")
async def onesignal_visitor_endpoint(
    body: OneSignalVisitorRequest,
    store: RequestStoreDependency,
    user_service: UserServiceDependency,
    onesignal: OneSignalClientDependency,
    principal: GuardDependency,
) -> OneSignalResponse:
    if onesignal is None:
        raise ServiceUnavailableException(
            "OneSignal is not configured", error_code="ONESIGNAL_NOT_CONFIGURED"
        )

    request = await store.read(principal.residency_id, body.request_id)
    resident = await user_service.get_resident(
        principal.residency_id, body.resident_username
    )
    payload = onesignal.build_payload(
        external_ids=[resident.username],
        heading="New Visitor Request",
        content=f"{request.visitor_name} is requesting entry.",
        data={"requestId": request.id, "residencyId": principal.residency_id},
        buttons=[
            {"id": "approve", "text": "Approve"},
            {"id": "reject", "text": "Reject"},
        ],
    )
    try:
        result = await onesignal.send(payload)
    except OneSignalException as e:
        raise ServiceUnavailableException(
            str(e), error_code="ONESIGNAL_FAILED", details={"errors": e.errors}
        ) from e
    return OneSignalResponse(notification_id=result.get("id"))
