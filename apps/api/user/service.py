from typing import Annotated, List, Optional

from sqlalchemy import select

from apps.api.user.models import Guard, Resident
from core.architecture.service import AbstractService
from core.db.core import SessionDep
from core.exceptions.database import NotFoundException


class UserService(AbstractService):
    DEPENDENCIES = {"session": SessionDep}

    def __init__(self, session: SessionDep, **kwargs):
        super().__init__(session=session, **kwargs)
        self.session = session

    async def get_resident(
        self, residency_id: str, username: str, raise_exception: bool = True
    ) -> Optional[Resident]:
        resident = await self.session.scalar(
            select(Resident).where(
                Resident.residency_id == residency_id,
                Resident.username == username,
            )
        )
        if raise_exception and not resident:
            raise NotFoundException(
                f"Resident '{username}' not found", error_code="RESIDENT_NOT_FOUND"
            )
        return resident

    async def get_resident_by_id(
        self, residency_id: str, resident_id: str
    ) -> Optional[Resident]:
        return await self.session.scalar(
            select(Resident).where(
                Resident.residency_id == residency_id,
                Resident.id == resident_id,
            )
        )

    async def get_guard(
        self, residency_id: str, username: str, raise_exception: bool = True
    ) -> Optional[Guard]:
        guard = await self.session.scalar(
            select(Guard).where(
                Guard.residency_id == residency_id,
                Guard.username == username,
            )
        )
        if raise_exception and not guard:
            raise NotFoundException(
                f"Guard '{username}' not found", error_code="GUARD_NOT_FOUND"
            )
        return guard

    async def list_residents(self, residency_id: str) -> List[Resident]:
        result = await self.session.scalars(
            select(Resident)
            .where(Resident.residency_id == residency_id, Resident.active.is_(True))
            .order_by(Resident.username)
        )
        return list(result.all())


UserServiceDependency = Annotated[UserService, UserService.get_dependency()]
