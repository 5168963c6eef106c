import logging
from typing import Annotated, List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from apps.api.residency.models import Flat, Residency
from apps.api.residency.schema import ServiceStatus
from core.architecture.service import AbstractService
from core.db.core import SessionDep
from core.exceptions.database import NotFoundException

logger = logging.getLogger(__name__)


class ResidencyService(AbstractService):
    DEPENDENCIES = {"session": SessionDep}

    def __init__(self, session: SessionDep, **kwargs):
        super().__init__(session=session, **kwargs)
        self.session = session

    async def get_residency(self, residency_id: str) -> Residency:
        residency = await self.session.get(Residency, residency_id)
        if residency is None:
            raise NotFoundException(
                "Residency not found", error_code="RESIDENCY_NOT_FOUND"
            )
        return residency

    async def get_service_status(self, society: str) -> ServiceStatus:
        """
        Lookup by id, then by name. Unknown societies and lookup failures
        report ON so the gate kiosk is never locked out by this check.
        """
        try:
            residency = await self.session.get(Residency, society)
            if residency is None:
                residency = await self.session.scalar(
                    select(Residency).where(Residency.name == society).limit(1)
                )
        except SQLAlchemyError:
            logger.exception(f"Service status lookup failed for '{society}'")
            return ServiceStatus.ON

        if residency is None or not residency.service_status:
            return ServiceStatus.ON
        return ServiceStatus(residency.service_status)

    async def toggle_service(
        self, residency_id: str, status: ServiceStatus
    ) -> Residency:
        residency = await self.get_residency(residency_id)
        residency.service_status = status.value
        await self.session.commit()
        await self.session.refresh(residency)
        logger.info(f"Visitor service for {residency_id} turned {status.value}")
        return residency

    async def list_flats(self, residency_id: str) -> List[Flat]:
        await self.get_residency(residency_id)
        result = await self.session.scalars(
            select(Flat)
            .options(selectinload(Flat.block))
            .where(Flat.residency_id == residency_id)
            .order_by(Flat.number)
        )
        return list(result.all())


ResidencyServiceDependency = Annotated[
    ResidencyService, ResidencyService.get_dependency()
]
