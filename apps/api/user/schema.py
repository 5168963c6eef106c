from enum import Enum
from typing import Optional

from pydantic import Field, model_validator

from core.response.models import CustomBaseModel


class PrincipalRole(str, Enum):
    RESIDENT = "resident"
    GUARD = "guard"
    ADMIN = "admin"


class PrincipalRef(CustomBaseModel):
    """
    Points at one principal inside a residency. The residency admin is a
    singleton, so it needs no username.
    """

    role: PrincipalRole = Field(...)
    username: Optional[str] = Field(None)

    @model_validator(mode="after")
    def check_username(self):
        if self.role != PrincipalRole.ADMIN and not self.username:
            raise ValueError(f"username is required for role '{self.role.value}'")
        return self


class Principal(CustomBaseModel):
    """Authenticated caller, built from the identity token claims."""

    residency_id: str = Field(...)
    role: PrincipalRole = Field(...)
    username: str = Field(...)

    @property
    def ref(self) -> PrincipalRef:
        return PrincipalRef(
            role=self.role,
            username=None if self.role == PrincipalRole.ADMIN else self.username,
        )


class ResidentResponse(CustomBaseModel):
    id: str
    username: str
    display_name: Optional[str] = None
    phone: Optional[str] = None
    flat_id: Optional[str] = None
    block: Optional[str] = None
    flat: Optional[str] = None
    active: bool = True
