import logging
from typing import List

from fastapi import APIRouter, status

from apps.api.auth.dependency import GuardDependency, PrincipalDependency
from apps.api.notification.hooks import PostCommitHooks
from apps.api.notification.service import NotificationDispatcherDependency
from apps.api.user.schema import PrincipalRole
from apps.api.user.service import UserServiceDependency
from apps.api.visitor.schema import (
    InformationalStatus,
    StatusUpdateRequest,
    StatusUpdateResponse,
    VisitorRequestCreate,
    VisitorRequestResponse,
    VisitorStatus,
    VisitorStatusView,
    VisitorSubmitResponse,
)
from apps.api.visitor.service import RequestStoreDependency
from core.exceptions.authentication import ForbiddenException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/visitor", tags=["Visitors"])

INFORMATIONAL = {s.value for s in InformationalStatus}


@router.post(
    "/submit",
    status_code=status.HTTP_201_CREATED,
    summary="Submit a visitor request from the gate kiosk",
)
async def submit_visitor_endpoint(
    body: VisitorRequestCreate,
    store: RequestStoreDependency,
    dispatcher: NotificationDispatcherDependency,
) -> VisitorSubmitResponse:
    """
    Creates the request and pushes it to the flat's residents and the admin.
    The request stands even if the push fails.
    """
    request = await store.create(body.residency_id, body)

    hooks = PostCommitHooks()
    hooks.add(dispatcher.dispatch_visitor_request, body.residency_id, request.id)
    await hooks.run()
    return VisitorSubmitResponse(request_id=request.id)


@router.get(
    "/status/{residency_id}/{request_id}",
    summary="Status page data for the visitor",
)
async def visitor_status_endpoint(
    residency_id: str, request_id: str, store: RequestStoreDependency
) -> VisitorStatusView:
    request = await store.read_detailed(residency_id, request_id)
    flat = request.flat
    return VisitorStatusView(
        id=request.id,
        visitor_name=request.visitor_name,
        status=request.status,
        block_name=flat.block.name if flat is not None and flat.block else None,
        flat_number=flat.number if flat is not None else None,
        updated_at=request.updated_at,
    )


@router.get("/list", summary="Visitor requests visible to the caller")
async def list_visitors_endpoint(
    store: RequestStoreDependency,
    user_service: UserServiceDependency,
    principal: PrincipalDependency,
) -> List[VisitorRequestResponse]:
    if principal.role == PrincipalRole.RESIDENT:
        resident = await user_service.get_resident(
            principal.residency_id, principal.username
        )
        return await store.list_for_resident(principal.residency_id, resident)
    if principal.role == PrincipalRole.GUARD:
        return await store.list_for_guard(principal.residency_id)
    raise ForbiddenException(
        "Only residents and guards list visitors", error_code="ROLE_NOT_ALLOWED"
    )


@router.post("/update-status", summary="Gate-side status update")
async def update_status_endpoint(
    body: StatusUpdateRequest,
    store: RequestStoreDependency,
    dispatcher: NotificationDispatcherDependency,
    guard: GuardDependency,
) -> StatusUpdateResponse:
    """
    ``entered``/``exited`` (or ``departed``) move the request;
    ``arrived``/``waiting_approval`` only notify the flat.
    """
    if body.residency_id and body.residency_id != guard.residency_id:
        raise ForbiddenException(
            "Not a member of this residency", error_code="RESIDENCY_MISMATCH"
        )
    residency_id = guard.residency_id

    if body.status in INFORMATIONAL:
        request = await store.read(residency_id, body.request_id)
    elif body.status in (VisitorStatus.APPROVED.value, VisitorStatus.REJECTED.value):
        raise ForbiddenException(
            "Residents decide on visitors; use the action endpoints",
            error_code="DECISION_NOT_ALLOWED",
        )
    else:
        request = await store.transition(
            residency_id, body.request_id, VisitorStatus(body.status), actor=guard.username
        )

    result = None
    hooks = PostCommitHooks()

    async def notify():
        nonlocal result
        result = await dispatcher.notify_status_change(
            residency_id, request, body.status, actor=guard.username
        )

    hooks.add(notify)
    await hooks.run()
    return StatusUpdateResponse(
        status=request.status if body.status not in INFORMATIONAL else body.status,
        notified=result.success_count if result is not None else 0,
    )
