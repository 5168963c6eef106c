from fastapi import APIRouter

from apps.api.auth.dependency import PrincipalDependency
from apps.api.device.schema import (
    RegisterTokenRequest,
    TokenRegistrationResponse,
    UnregisterTokenRequest,
)
from apps.api.device.service import TokenDirectoryDependency

router = APIRouter(prefix="/device", tags=["Devices"])


@router.post("/register", description="Register the caller's push token.")
async def register_device_endpoint(
    body: RegisterTokenRequest,
    directory: TokenDirectoryDependency,
    principal: PrincipalDependency,
) -> TokenRegistrationResponse:
    """
    Saves the device token for the authenticated principal. Registering a
    token that is already stored changes nothing.
    """
    changed, tokens = await directory.register_token(
        principal.residency_id, principal.ref, body.token
    )
    return TokenRegistrationResponse(changed=changed, token_count=len(tokens))


@router.post("/unregister", description="Remove the caller's push token (logout).")
async def unregister_device_endpoint(
    body: UnregisterTokenRequest,
    directory: TokenDirectoryDependency,
    principal: PrincipalDependency,
) -> TokenRegistrationResponse:
    changed, tokens = await directory.unregister_token(
        principal.residency_id, principal.ref, body.token
    )
    return TokenRegistrationResponse(changed=changed, token_count=len(tokens))
