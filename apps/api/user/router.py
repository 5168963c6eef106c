from fastapi import APIRouter

from apps.api.auth.dependency import PrincipalDependency
from apps.api.user.schema import Principal, PrincipalRole, ResidentResponse
from apps.api.user.service import UserServiceDependency
from core.exceptions.authentication import ForbiddenException

router = APIRouter(
    prefix="/user",
    tags=["User"],
)


@router.get("/me", summary="The authenticated principal")
async def get_me(principal: PrincipalDependency) -> Principal:
    return principal


@router.get("/me/resident", summary="Resident profile with flat assignment")
async def get_my_resident_profile(
    principal: PrincipalDependency, user_service: UserServiceDependency
) -> ResidentResponse:
    if principal.role != PrincipalRole.RESIDENT:
        raise ForbiddenException(
            "Only residents have a resident profile", error_code="ROLE_NOT_ALLOWED"
        )
    return await user_service.get_resident(principal.residency_id, principal.username)
