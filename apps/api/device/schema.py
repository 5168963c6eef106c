from typing import Annotated, Literal, Optional, Union

from pydantic import ConfigDict, Field

from apps.api.user.schema import PrincipalRef
from core.response.models import CustomBaseModel


class _Selector(CustomBaseModel):
    model_config = ConfigDict(frozen=True)


class AllResidents(_Selector):
    """Every active resident of the residency."""

    kind: Literal["all_residents"] = "all_residents"


class FlatResidents(_Selector):
    """Residents of one flat, matched by flat id or by block/flat name."""

    kind: Literal["flat_residents"] = "flat_residents"
    flat_id: str = Field(...)


class AllGuards(_Selector):
    """Every active guard; they watch the gate dashboard."""

    kind: Literal["all_guards"] = "all_guards"


class SinglePrincipal(_Selector):
    kind: Literal["single_principal"] = "single_principal"
    principal: PrincipalRef = Field(...)


class Admin(_Selector):
    kind: Literal["admin"] = "admin"


TokenSelector = Annotated[
    Union[AllResidents, AllGuards, FlatResidents, SinglePrincipal, Admin],
    Field(discriminator="kind"),
]


class RegisterTokenRequest(CustomBaseModel):
    token: str = Field(..., min_length=1, max_length=512)


class UnregisterTokenRequest(CustomBaseModel):
    token: Optional[str] = Field(
        None, description="Token to drop. Omit to drop every token of the caller."
    )


class TokenRegistrationResponse(CustomBaseModel):
    success: bool = True
    changed: bool = Field(..., description="False when the call was a no-op")
    token_count: int = Field(...)
