import logging
import uuid
from typing import Annotated, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from apps.api.residency.matching import resident_matches_request
from apps.api.residency.models import Flat, Residency
from apps.api.residency.schema import ServiceStatus
from apps.api.user.models import Resident
from apps.api.visitor.models import VisitorRequest
from apps.api.visitor.schema import VisitorRequestCreate, VisitorStatus
from apps.api.visitor.state import AUDIT_FIELDS, can_transition, is_terminal
from core.architecture.service import AbstractService
from core.db.core import SessionDep
from core.db.mixins import monotonic_now, utc_now
from core.exceptions.database import NotFoundException
from core.exceptions.request import ConflictException, ServiceUnavailableException

logger = logging.getLogger(__name__)

GUARD_VISIBLE_STATUSES = (
    VisitorStatus.PENDING.value,
    VisitorStatus.APPROVED.value,
    VisitorStatus.ENTERED.value,
)


class RequestStore(AbstractService):
    """
    Owns visitor requests. ``transition`` is the only code path that writes
    the status column.
    """

    DEPENDENCIES = {"session": SessionDep}

    def __init__(self, session: SessionDep, **kwargs):
        super().__init__(session=session, **kwargs)
        self.session = session

    async def create(
        self, residency_id: str, data: VisitorRequestCreate
    ) -> VisitorRequest:
        residency = await self.session.get(Residency, residency_id)
        if residency is None:
            raise NotFoundException(
                "Residency not found", error_code="RESIDENCY_NOT_FOUND"
            )
        if residency.service_status != ServiceStatus.ON.value:
            raise ServiceUnavailableException(
                "Visitor service is turned off for this residency",
                error_code="SERVICE_OFF",
            )

        flat = await self.session.scalar(
            select(Flat).where(Flat.id == data.flat_id, Flat.residency_id == residency_id)
        )
        if flat is None:
            raise NotFoundException(
                "Flat not found in this residency", error_code="FLAT_NOT_FOUND"
            )

        request = VisitorRequest(
            residency_id=residency_id,
            flat_id=flat.id,
            visitor_name=data.visitor_name.strip(),
            visitor_phone=data.visitor_phone,
            purpose=data.purpose,
            vehicle_number=data.vehicle_number,
            status=VisitorStatus.PENDING.value,
            approval_token=str(uuid.uuid4()),
            notification_sent=False,
        )
        self.session.add(request)
        await self.session.commit()
        await self.session.refresh(request)
        logger.info(f"Visitor request {request.id} created in {residency_id}")
        return request

    async def read(
        self, residency_id: str, request_id: str, raise_exception: bool = True
    ) -> Optional[VisitorRequest]:
        request = await self.session.scalar(
            select(VisitorRequest).where(
                VisitorRequest.id == request_id,
                VisitorRequest.residency_id == residency_id,
            )
        )
        if raise_exception and request is None:
            raise NotFoundException(
                "Visitor request not found", error_code="REQUEST_NOT_FOUND"
            )
        return request

    async def read_detailed(
        self, residency_id: str, request_id: str, raise_exception: bool = True
    ) -> Optional[VisitorRequest]:
        """Like ``read``, with the flat and its block loaded."""
        request = await self.session.scalar(
            select(VisitorRequest)
            .options(selectinload(VisitorRequest.flat).selectinload(Flat.block))
            .where(
                VisitorRequest.id == request_id,
                VisitorRequest.residency_id == residency_id,
            )
        )
        if raise_exception and request is None:
            raise NotFoundException(
                "Visitor request not found", error_code="REQUEST_NOT_FOUND"
            )
        return request

    async def find_residency_for_request(self, request_id: str) -> Optional[str]:
        """
        Look a request up across every residency. Only for callers that
        arrive without a residency id.
        """
        logger.warning(
            f"Residency id missing for request {request_id}; scanning all residencies"
        )
        return await self.session.scalar(
            select(VisitorRequest.residency_id).where(VisitorRequest.id == request_id)
        )

    async def transition(
        self,
        residency_id: str,
        request_id: str,
        new_status: VisitorStatus,
        actor: Optional[str] = None,
    ) -> VisitorRequest:
        """
        Move a request to ``new_status``.

        Raises:
            NotFoundException: no such request in the residency.
            ConflictException: the move is not allowed from the current
                status (``INVALID_STATUS_TRANSITION``), or a concurrent writer
                moved the request first (``REQUEST_ALREADY_PROCESSED``). The
                current status is in ``details``.
        """
        new_status = VisitorStatus(new_status)
        request = await self.read(residency_id, request_id)
        current = request.status
        if is_terminal(current):
            raise ConflictException(
                f"Request is already finished with status '{current}'",
                error_code="INVALID_STATUS_TRANSITION",
                details={"status": current},
            )
        if not can_transition(current, new_status):
            raise ConflictException(
                f"Cannot move request from '{current}' to '{new_status.value}'",
                error_code="INVALID_STATUS_TRANSITION",
                details={"status": current},
            )

        now = monotonic_now(request.updated_at, utc_now())
        values = {"status": new_status.value, "updated_at": now}
        actor_field, time_field = AUDIT_FIELDS[new_status]
        if actor:
            values["action_by"] = actor
        if actor_field:
            values[actor_field] = actor
        values[time_field] = now

        # Compare-and-set on the status read above
        result = await self.session.execute(
            update(VisitorRequest)
            .where(
                VisitorRequest.id == request_id,
                VisitorRequest.residency_id == residency_id,
                VisitorRequest.status == current,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.session.rollback()
            await self.session.refresh(request)
            logger.info(
                f"Request {request_id} changed to '{request.status}' concurrently; "
                f"dropping '{new_status.value}'"
            )
            raise ConflictException(
                "Request already processed",
                error_code="REQUEST_ALREADY_PROCESSED",
                details={"status": request.status},
            )

        await self.session.commit()
        await self.session.refresh(request)
        logger.info(
            f"Request {request_id} moved {current} -> {new_status.value} "
            f"by {actor or '-'}"
        )
        return request

    async def list_for_resident(
        self, residency_id: str, resident: Resident
    ) -> List[VisitorRequest]:
        result = await self.session.scalars(
            select(VisitorRequest)
            .options(selectinload(VisitorRequest.flat).selectinload(Flat.block))
            .where(VisitorRequest.residency_id == residency_id)
            .order_by(VisitorRequest.created_at.desc())
        )
        return [
            request
            for request in result.all()
            if resident_matches_request(resident, request)
        ]

    async def list_for_guard(self, residency_id: str) -> List[VisitorRequest]:
        result = await self.session.scalars(
            select(VisitorRequest)
            .options(selectinload(VisitorRequest.flat).selectinload(Flat.block))
            .where(
                VisitorRequest.residency_id == residency_id,
                VisitorRequest.status.in_(GUARD_VISIBLE_STATUSES),
            )
            .order_by(VisitorRequest.created_at.desc())
        )
        return list(result.all())

    async def mark_notification_sent(self, residency_id: str, request_id: str) -> bool:
        """Set the sent flag. Returns False when it was already set."""
        request = await self.read(residency_id, request_id, raise_exception=False)
        if request is None or request.notification_sent:
            return False
        result = await self.session.execute(
            update(VisitorRequest)
            .where(
                VisitorRequest.id == request_id,
                VisitorRequest.residency_id == residency_id,
                VisitorRequest.notification_sent.is_(False),
            )
            .values(
                notification_sent=True,
                updated_at=monotonic_now(request.updated_at, utc_now()),
            )
            .execution_options(synchronize_session="fetch")
        )
        await self.session.commit()
        return result.rowcount > 0


RequestStoreDependency = Annotated[RequestStore, RequestStore.get_dependency()]
