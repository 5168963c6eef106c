# models.py
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class DecodedToken(BaseModel):
    """Decoded Firebase ID token"""

    # Custom claims arrive as top-level keys of the decoded token
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uid: str = Field(..., description="User ID")
    iss: Optional[str] = Field(None, description="Issuer")
    aud: Optional[str] = Field(None, description="Audience")
    sub: Optional[str] = Field(None, description="Subject")
    iat: Optional[int] = Field(None, description="Issued at")
    exp: Optional[int] = Field(None, description="Expiration time")
    phone_number: Optional[str] = Field(None, description="Phone number")
    name: Optional[str] = Field(None, description="Full name")
    firebase: Optional[Dict[str, Any]] = Field(
        None, description="Firebase-specific claims"
    )

    def claim(self, key: str, default: Any = None) -> Any:
        extra = self.model_extra or {}
        return extra.get(key, default)


class TokenVerificationResponse(BaseModel):
    """Response for token verification"""

    valid: bool = Field(..., description="Whether token is valid")
    decoded_token: Optional[DecodedToken] = Field(
        None, description="Decoded token data"
    )
    error: Optional[str] = Field(None, description="Error message if invalid")
