import hmac
import logging
from typing import Annotated, Optional

from apps.api.action.schema import (
    ActionCredentials,
    ActionResult,
    VisitorAction,
    VisitorDetailsResponse,
)
from apps.api.notification.hooks import PostCommitHooks
from apps.api.notification.service import NotificationDispatcherDependency
from apps.api.residency.matching import resident_matches_request
from apps.api.user.models import Resident
from apps.api.user.schema import Principal, PrincipalRole
from apps.api.user.service import UserServiceDependency
from apps.api.visitor.models import VisitorRequest
from apps.api.visitor.schema import VisitorStatus
from apps.api.visitor.service import RequestStoreDependency
from apps.context import get_current_principal
from core.architecture.service import AbstractService
from core.db.core import SessionDep
from core.exceptions.authentication import ForbiddenException
from core.exceptions.database import NotFoundException
from core.exceptions.request import ConflictException

logger = logging.getLogger(__name__)

# Recorded as the actor when a notification button acts without a session
NOTIFICATION_ACTOR = "notification_action"


def approval_token_matches(request: VisitorRequest, token: Optional[str]) -> bool:
    if not token or not request.approval_token:
        return False
    return hmac.compare_digest(str(request.approval_token), str(token))


class ActionHandler(AbstractService):
    """
    Approve or reject a visitor request, from the resident app or from a
    notification button. Repeated calls never mutate a decided request.
    """

    DEPENDENCIES = {
        "session": SessionDep,
        "store": RequestStoreDependency,
        "dispatcher": NotificationDispatcherDependency,
        "user_service": UserServiceDependency,
    }

    def __init__(
        self,
        session: SessionDep,
        store: RequestStoreDependency,
        dispatcher: NotificationDispatcherDependency,
        user_service: UserServiceDependency,
        **kwargs,
    ):
        super().__init__(session=session, **kwargs)
        self.session = session
        self.store = store
        self.dispatcher = dispatcher
        self.user_service = user_service

    async def handle_action(
        self,
        residency_id: Optional[str],
        request_id: str,
        action: VisitorAction,
        credentials: ActionCredentials,
    ) -> ActionResult:
        """
        Raises:
            ForbiddenException: the caller may not act on this request.
        """
        if not residency_id:
            residency_id = await self.store.find_residency_for_request(request_id)

        request = None
        if residency_id:
            request = await self.store.read_detailed(
                residency_id, request_id, raise_exception=False
            )
        if request is None:
            logger.info(f"Action {action.value} on unknown request {request_id}")
            return ActionResult(
                success=False, not_found=True, message="Request not found"
            )

        if request.status != VisitorStatus.PENDING.value:
            return self._already_processed(request.status)

        principal = credentials.principal
        if principal is not None:
            await self._authorize_resident(residency_id, principal, request)
            actor = principal.username
        else:
            if not approval_token_matches(request, credentials.approval_token):
                logger.warning(f"Approval token mismatch for request {request_id}")
                raise ForbiddenException(
                    "Invalid approval token", error_code="INVALID_APPROVAL_TOKEN"
                )
            actor = get_current_principal() or NOTIFICATION_ACTOR

        return await self._apply(residency_id, request, action, actor)

    async def decide_with_link(
        self,
        visitor_id: str,
        token: str,
        action: VisitorAction,
        resident_id: str,
        principal: Optional[Principal] = None,
    ) -> ActionResult:
        """
        Full-page approval: needs the approval token AND a resident of the
        request's flat.
        """
        residency_id, request = await self._load_for_link(visitor_id, token)
        if principal is not None and principal.residency_id != residency_id:
            raise ForbiddenException(
                "Not a member of this residency", error_code="RESIDENCY_MISMATCH"
            )

        resident = await self.user_service.get_resident(
            residency_id, resident_id, raise_exception=False
        ) or await self.user_service.get_resident_by_id(residency_id, resident_id)
        if principal is not None and (
            resident is None or resident.username != principal.username
        ):
            raise ForbiddenException(
                "Resident does not match the signed-in user",
                error_code="RESIDENT_MISMATCH",
            )
        if not self._resident_may_act(resident, request):
            raise ForbiddenException(
                "Resident has no access to this flat", error_code="FLAT_ACCESS_DENIED"
            )

        if request.status != VisitorStatus.PENDING.value:
            return self._already_processed(request.status)
        return await self._apply(residency_id, request, action, resident.username)

    async def visitor_details(self, visitor_id: str, token: str) -> VisitorDetailsResponse:
        residency_id, request = await self._load_for_link(visitor_id, token)
        if request.status != VisitorStatus.PENDING.value:
            raise ConflictException(
                "Request already processed",
                error_code="REQUEST_ALREADY_PROCESSED",
                details={"status": request.status},
            )

        flat = request.flat
        block = flat.block if flat is not None else None
        return VisitorDetailsResponse(
            visitor_name=request.visitor_name,
            visitor_phone=request.visitor_phone,
            purpose=request.purpose,
            vehicle_number=request.vehicle_number,
            block_name=block.name if block is not None else "Unknown Block",
            flat_number=flat.number if flat is not None else "Unknown Flat",
            status=request.status,
            created_at=request.created_at,
        )

    async def _load_for_link(self, visitor_id: str, token: str):
        residency_id = await self.store.find_residency_for_request(visitor_id)
        request = None
        if residency_id:
            request = await self.store.read_detailed(
                residency_id, visitor_id, raise_exception=False
            )
        if request is None:
            raise NotFoundException(
                "Visitor request not found", error_code="REQUEST_NOT_FOUND"
            )
        if not approval_token_matches(request, token):
            raise ForbiddenException(
                "Invalid approval token", error_code="INVALID_APPROVAL_TOKEN"
            )
        return residency_id, request

    async def _authorize_resident(
        self, residency_id: str, principal: Principal, request: VisitorRequest
    ) -> None:
        if principal.role != PrincipalRole.RESIDENT or principal.residency_id != residency_id:
            raise ForbiddenException(
                "Only residents of the flat can decide on a visitor",
                error_code="FLAT_ACCESS_DENIED",
            )
        resident = await self.user_service.get_resident(
            residency_id, principal.username, raise_exception=False
        )
        if not self._resident_may_act(resident, request):
            raise ForbiddenException(
                "Resident has no access to this flat", error_code="FLAT_ACCESS_DENIED"
            )

    @staticmethod
    def _resident_may_act(resident: Optional[Resident], request: VisitorRequest) -> bool:
        return (
            resident is not None
            and resident.active is not False
            and resident_matches_request(resident, request)
        )

    @staticmethod
    def _already_processed(status: str) -> ActionResult:
        return ActionResult(
            success=True,
            status=status,
            already_processed=True,
            message="Request already processed",
        )

    async def _apply(
        self,
        residency_id: str,
        request: VisitorRequest,
        action: VisitorAction,
        actor: str,
    ) -> ActionResult:
        try:
            request = await self.store.transition(
                residency_id, request.id, action.target_status, actor=actor
            )
        except ConflictException as e:
            # Another writer decided first
            return self._already_processed((e.details or {}).get("status"))

        hooks = PostCommitHooks()
        hooks.add(
            self.dispatcher.notify_status_change,
            residency_id,
            request,
            request.status,
            actor=actor,
        )
        await hooks.run()
        return ActionResult(success=True, status=request.status)


ActionHandlerDependency = Annotated[ActionHandler, ActionHandler.get_dependency()]
