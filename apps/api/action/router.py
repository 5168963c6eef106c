import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Body, Query, status
from fastapi.responses import RedirectResponse

from apps.api.action.schema import (
    ActionCredentials,
    ActionRequestBody,
    ActionResult,
    InAppActionRequest,
    VisitorAction,
    VisitorDecisionRequest,
    VisitorDetailsResponse,
)
from apps.api.action.service import ActionHandlerDependency
from apps.api.auth.dependency import AdminDependency, ResidentDependency
from apps.api.visitor.schema import (
    RequestInspectionResponse,
    TestResults,
    VisitorRequestResponse,
)
from apps.api.visitor.service import RequestStoreDependency
from core.exceptions.base import AbstractException
from core.exceptions.database import NotFoundException
from core.exceptions.request import InvalidRequestException

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Visitor Actions"])


def _parse_action(value: Optional[str]) -> VisitorAction:
    try:
        return VisitorAction(value)
    except ValueError:
        raise InvalidRequestException(
            "action must be 'approve' or 'reject'", error_code="INVALID_ACTION"
        )


@router.get("/action", summary="Approve or reject from a plain link click")
async def action_link_endpoint(
    handler: ActionHandlerDependency,
    action: Optional[str] = Query(None),
    residency_id: Optional[str] = Query(None, alias="residencyId"),
    request_id: Optional[str] = Query(None, alias="requestId"),
    approval_token: Optional[str] = Query(None, alias="approvalToken"),
) -> RedirectResponse:
    """Always ends on the app root; a browser never sees JSON here."""
    try:
        if not request_id:
            raise InvalidRequestException("requestId is required")
        result = await handler.handle_action(
            residency_id,
            request_id,
            _parse_action(action),
            ActionCredentials(approval_token=approval_token),
        )
        logger.info(f"Link action on {request_id}: {result.model_dump()}")
    except AbstractException as e:
        logger.info(f"Link action on {request_id} refused: {e.message}")
    return RedirectResponse("/", status_code=status.HTTP_302_FOUND)


@router.post("/action", summary="Approve or reject from a notification button")
async def action_endpoint(
    handler: ActionHandlerDependency,
    body: Optional[ActionRequestBody] = Body(None),
    action: Optional[str] = Query(None),
    residency_id: Optional[str] = Query(None, alias="residencyId"),
    request_id: Optional[str] = Query(None, alias="requestId"),
    approval_token: Optional[str] = Query(None, alias="approvalToken"),
) -> ActionResult:
    """
    Called by the background relay with the action URL from the push
    payload. An unknown request answers ``{success: false, notFound: true}``
    instead of an error.
    """
    body = body or ActionRequestBody()
    request_id = body.request_id or request_id
    if not request_id:
        raise InvalidRequestException(
            "requestId is required", error_code="REQUEST_ID_REQUIRED"
        )
    return await handler.handle_action(
        body.residency_id or residency_id,
        request_id,
        body.action or _parse_action(action),
        ActionCredentials(approval_token=body.approval_token or approval_token),
    )


@router.post("/action/in-app", summary="Approve or reject from the resident app")
async def in_app_action_endpoint(
    body: InAppActionRequest,
    handler: ActionHandlerDependency,
    resident: ResidentDependency,
) -> ActionResult:
    return await handler.handle_action(
        resident.residency_id,
        body.request_id,
        body.action,
        ActionCredentials(principal=resident),
    )


@router.get("/visitor-details", summary="Visitor details for the approval page")
async def visitor_details_endpoint(
    handler: ActionHandlerDependency,
    visitor_id: str = Query(..., alias="visitorId"),
    token: str = Query(...),
) -> VisitorDetailsResponse:
    return await handler.visitor_details(visitor_id, token)


@router.post("/visitor-decision", summary="Decide from the approval page")
async def visitor_decision_endpoint(
    body: VisitorDecisionRequest,
    handler: ActionHandlerDependency,
    resident: ResidentDependency,
) -> ActionResult:
    return await handler.decide_with_link(
        body.visitor_id,
        body.token,
        body.action,
        body.resident_id,
        principal=resident,
    )


@router.get("/test", summary="Inspect a request and its notification state")
async def inspect_request_endpoint(
    store: RequestStoreDependency,
    admin: AdminDependency,
    request_id: str = Query(..., alias="requestId"),
) -> RequestInspectionResponse:
    residency_id = await store.find_residency_for_request(request_id)
    if residency_id != admin.residency_id:
        raise NotFoundException(
            "Visitor request not found", error_code="REQUEST_NOT_FOUND"
        )
    request = await store.read_detailed(residency_id, request_id)

    flat = request.flat
    block = flat.block if flat is not None else None
    return RequestInspectionResponse(
        residency_id=residency_id,
        request=VisitorRequestResponse.model_validate(request),
        flat={"id": flat.id, "number": flat.number, "blockId": flat.block_id}
        if flat is not None
        else None,
        block={"id": block.id, "name": block.name} if block is not None else None,
        test_results=TestResults(
            has_notification_sent=bool(request.notification_sent),
            status=request.status,
            has_approval_data=request.has_approval_data,
            timestamp=datetime.now(timezone.utc),
        ),
    )
