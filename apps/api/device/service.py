import logging
from typing import Annotated, List, Optional, Set, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from apps.api.device.adapter import ADMIN_TOKENS, PRINCIPAL_TOKENS, TokenFieldAdapter
from apps.api.device.schema import (
    Admin,
    AllGuards,
    AllResidents,
    FlatResidents,
    SinglePrincipal,
    TokenSelector,
)
from apps.api.residency.matching import normalize_flat, resident_matches_flat
from apps.api.residency.models import Flat, Residency
from apps.api.user.models import Guard, Resident
from apps.api.user.schema import PrincipalRef, PrincipalRole
from apps.settings import settings
from core.architecture.service import AbstractService
from core.db.core import SessionDep
from core.db.mixins import utc_now
from core.exceptions.database import NotFoundException

logger = logging.getLogger(__name__)


def _short(token: str) -> str:
    return f"{token[:10]}..."


class TokenDirectory(AbstractService):
    """
    Maps principals of a residency to the device tokens they registered.
    """

    DEPENDENCIES = {"session": SessionDep}

    def __init__(self, session: SessionDep, **kwargs):
        super().__init__(session=session, **kwargs)
        self.session = session

    async def _load_holder(
        self, residency_id: str, principal: PrincipalRef
    ) -> Tuple[Optional[object], TokenFieldAdapter]:
        if principal.role == PrincipalRole.ADMIN:
            row = await self.session.get(Residency, residency_id)
            return row, ADMIN_TOKENS

        model = Resident if principal.role == PrincipalRole.RESIDENT else Guard
        row = await self.session.scalar(
            select(model).where(
                model.residency_id == residency_id,
                model.username == principal.username,
            )
        )
        return row, PRINCIPAL_TOKENS

    async def register_token(
        self, residency_id: str, principal: PrincipalRef, token: str
    ) -> Tuple[bool, List[str]]:
        """
        Store ``token`` for the principal. Returns whether the row changed and
        the principal's tokens after the call; an already stored token leaves
        the row untouched.
        """
        row, adapter = await self._load_holder(residency_id, principal)
        if row is None:
            raise NotFoundException(
                f"No {principal.role.value} '{principal.username or residency_id}' "
                f"in residency {residency_id}",
                error_code="PRINCIPAL_NOT_FOUND",
            )

        tokens = adapter.read(row)
        if token in tokens:
            return False, tokens

        tokens = tokens + [token] if settings.PUSH_MULTI_DEVICE else [token]
        adapter.write(row, tokens, now=utc_now())
        await self.session.commit()
        logger.info(
            f"Registered token {_short(token)} for {principal.role.value} "
            f"{principal.username or '-'} in {residency_id}"
        )
        return True, adapter.read(row)

    async def unregister_token(
        self,
        residency_id: str,
        principal: PrincipalRef,
        token: Optional[str] = None,
    ) -> Tuple[bool, List[str]]:
        """Drop one token, or all of them when ``token`` is None."""
        row, adapter = await self._load_holder(residency_id, principal)
        if row is None:
            return False, []

        tokens = adapter.read(row)
        remaining = [] if token is None else [t for t in tokens if t != token]
        if remaining == tokens and getattr(row, adapter.legacy_field) is None:
            return False, tokens

        adapter.write(row, remaining, now=utc_now())
        await self.session.commit()
        return True, remaining

    async def resolve_tokens(
        self, residency_id: str, selector: TokenSelector
    ) -> Set[str]:
        if isinstance(selector, Admin):
            return await self.admin_tokens(residency_id)

        if isinstance(selector, SinglePrincipal):
            row, adapter = await self._load_holder(residency_id, selector.principal)
            if row is None or getattr(row, "active", True) is False:
                return set()
            return set(adapter.read(row))

        if isinstance(selector, AllGuards):
            rows = await self.session.scalars(
                select(Guard).where(
                    Guard.residency_id == residency_id, Guard.active.is_(True)
                )
            )
            return {t for guard in rows.all() for t in PRINCIPAL_TOKENS.read(guard)}

        if isinstance(selector, AllResidents):
            residents = await self._active_residents(residency_id)
        elif isinstance(selector, FlatResidents):
            residents = await self._flat_residents(residency_id, selector.flat_id)
        else:
            raise TypeError(f"Unsupported selector {selector!r}")

        tokens: Set[str] = set()
        for resident in residents:
            tokens.update(PRINCIPAL_TOKENS.read(resident))
        return tokens

    async def admin_tokens(self, residency_id: str) -> Set[str]:
        residency = await self.session.get(Residency, residency_id)
        if residency is None:
            return set()
        return set(ADMIN_TOKENS.read(residency))

    async def invalidate(self, residency_id: str, token: str) -> int:
        """
        Remove ``token`` from every principal of the residency that holds it.
        Returns how many rows were changed. Principals are never deleted.
        """
        changed = 0
        now = utc_now()
        for model in (Resident, Guard):
            rows = await self.session.scalars(
                select(model).where(
                    model.residency_id == residency_id,
                    or_(model.fcm_token.is_not(None), model.fcm_tokens.is_not(None)),
                )
            )
            for row in rows.all():
                if PRINCIPAL_TOKENS.holds(row, token):
                    PRINCIPAL_TOKENS.write(
                        row,
                        [t for t in PRINCIPAL_TOKENS.read(row) if t != token],
                        now=now,
                    )
                    changed += 1

        residency = await self.session.get(Residency, residency_id)
        if residency is not None and ADMIN_TOKENS.holds(residency, token):
            ADMIN_TOKENS.write(
                residency, [t for t in ADMIN_TOKENS.read(residency) if t != token]
            )
            changed += 1

        if changed:
            await self.session.commit()
            logger.info(
                f"Invalidated token {_short(token)} on {changed} principal(s) "
                f"in {residency_id}"
            )
        return changed

    async def _active_residents(self, residency_id: str) -> List[Resident]:
        result = await self.session.scalars(
            select(Resident).where(
                Resident.residency_id == residency_id, Resident.active.is_(True)
            )
        )
        return list(result.all())

    async def _flat_residents(self, residency_id: str, flat_id: str) -> List[Resident]:
        flat = await self.session.scalar(
            select(Flat)
            .options(selectinload(Flat.block))
            .where(Flat.residency_id == residency_id, Flat.id == flat_id)
        )
        if flat is None:
            result = await self.session.scalars(
                select(Resident).where(
                    Resident.residency_id == residency_id,
                    Resident.flat_id == flat_id,
                    Resident.active.is_(True),
                )
            )
            return list(result.all())

        # Narrow in SQL, then apply the block-aware match in Python
        candidates = await self.session.scalars(
            select(Resident).where(
                Resident.residency_id == residency_id,
                Resident.active.is_(True),
                or_(
                    Resident.flat_id == flat.id,
                    Resident.flat.is_not(None),
                ),
            )
        )
        flat_number = normalize_flat(flat.number)
        return [
            resident
            for resident in candidates.all()
            if resident.flat_id == flat.id
            or (
                normalize_flat(resident.flat) == flat_number
                and resident_matches_flat(resident, flat)
            )
        ]


TokenDirectoryDependency = Annotated[TokenDirectory, TokenDirectory.get_dependency()]
