# firebase_client.py
import logging
from typing import Optional

import firebase_admin
from firebase_admin import auth

from core.authentication.firebase.models import (
    DecodedToken,
    TokenVerificationResponse,
)

logger = logging.getLogger(__name__)


class FirebaseAuthClient:
    """
    Verifies Firebase ID tokens against the process-wide Firebase app, which
    is initialized together with the push gateway at startup.
    """

    def __init__(self, app: Optional[firebase_admin.App] = None):
        self.app = app

    def verify_token(
        self, token: str, check_revoked: bool = False
    ) -> TokenVerificationResponse:
        """
        Verify Firebase ID token and return verification response.

        Args:
            token: Firebase ID token
            check_revoked: Whether to check if token has been revoked

        Returns:
            TokenVerificationResponse with verification results
        """
        if token.startswith("Bearer "):
            token = token[7:]

        try:
            decoded_token = auth.verify_id_token(
                token, app=self.app, check_revoked=check_revoked
            )
        # Expired and revoked are subclasses of InvalidIdTokenError
        except auth.ExpiredIdTokenError:
            logger.info("Expired ID token")
            return TokenVerificationResponse(
                valid=False, error="Authentication token has expired"
            )
        except auth.RevokedIdTokenError:
            logger.info("Revoked ID token")
            return TokenVerificationResponse(
                valid=False, error="Authentication token has been revoked"
            )
        except auth.InvalidIdTokenError:
            logger.info("Invalid ID token")
            return TokenVerificationResponse(
                valid=False, error="Invalid authentication token"
            )
        except ValueError as e:
            # No Firebase app initialized, or the token is not a string
            logger.error(f"Token verification failed: {e}")
            return TokenVerificationResponse(valid=False, error="Authentication failed")

        logger.debug(f"Token verified for user: {decoded_token.get('uid')}")
        return TokenVerificationResponse(
            valid=True, decoded_token=DecodedToken(**decoded_token)
        )


def create_firebase_client() -> FirebaseAuthClient:
    return FirebaseAuthClient()
