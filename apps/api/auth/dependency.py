from typing import Annotated

from fastapi import Depends

from apps.api.user.schema import Principal, PrincipalRole
from apps.api.user.service import UserServiceDependency
from apps.context import set_current_principal
from core.authentication.firebase.dependency import FirebaseAuthDependency
from core.exceptions.authentication import ForbiddenException


async def authenticate_principal(
    decoded_token: FirebaseAuthDependency, user_service: UserServiceDependency
) -> Principal:
    residency_id = decoded_token.claim("residencyId")
    role = decoded_token.claim("role")
    username = decoded_token.claim("username") or decoded_token.uid
    if not residency_id or role not in {r.value for r in PrincipalRole}:
        raise ForbiddenException(
            "Token carries no residency role.",
            error_code="PRINCIPAL_CLAIMS_MISSING",
        )

    principal = Principal(residency_id=residency_id, role=role, username=username)
    if principal.role == PrincipalRole.RESIDENT:
        record = await user_service.get_resident(
            residency_id, username, raise_exception=False
        )
    elif principal.role == PrincipalRole.GUARD:
        record = await user_service.get_guard(
            residency_id, username, raise_exception=False
        )
    else:
        record = True
    if not record or getattr(record, "active", True) is False:
        raise ForbiddenException(
            "User not found or not authenticated.",
            error_code="USER_NOT_FOUND",
        )

    # used to store the current principal in context to retrieve across the current coroutine
    set_current_principal(principal.username)
    return principal


PrincipalDependency = Annotated[Principal, Depends(authenticate_principal)]


def require_roles(*roles: PrincipalRole):
    async def dependency(principal: PrincipalDependency) -> Principal:
        if principal.role not in roles:
            raise ForbiddenException(
                f"This action requires one of: {', '.join(r.value for r in roles)}.",
                error_code="ROLE_NOT_ALLOWED",
            )
        return principal

    return dependency


ResidentDependency = Annotated[
    Principal, Depends(require_roles(PrincipalRole.RESIDENT))
]
GuardDependency = Annotated[
    Principal, Depends(require_roles(PrincipalRole.GUARD, PrincipalRole.ADMIN))
]
AdminDependency = Annotated[Principal, Depends(require_roles(PrincipalRole.ADMIN))]
