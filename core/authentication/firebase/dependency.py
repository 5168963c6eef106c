from typing import Annotated
from fastapi import Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from core.authentication.firebase.client import create_firebase_client
from core.authentication.firebase.models import DecodedToken
from core.exceptions.authentication import UnauthorizedException


firebase_client = create_firebase_client()

http_bearer = HTTPBearer(auto_error=False)


async def firebase_authenticate(
    token: Annotated[HTTPAuthorizationCredentials, Depends(http_bearer)],
) -> DecodedToken:
    if not token or not token.credentials:
        raise UnauthorizedException(
            "Missing or invalid authentication token.",
            error_code="AUTH_TOKEN_MISSING",
        )
    # Fetching the public keys can block on the network
    response = await run_in_threadpool(firebase_client.verify_token, token.credentials)
    if not response.valid or not response.decoded_token:
        raise UnauthorizedException(
            response.error or "Invalid authentication token.",
            error_code="AUTH_TOKEN_INVALID",
        )
    return response.decoded_token


FirebaseAuthDependency = Annotated[DecodedToken, Depends(firebase_authenticate)]
