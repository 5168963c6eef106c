from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from apps.api.user.schema import Principal
from apps.api.visitor.schema import VisitorStatus
from core.response.models import CustomBaseModel


class VisitorAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def target_status(self) -> VisitorStatus:
        if self == VisitorAction.APPROVE:
            return VisitorStatus.APPROVED
        return VisitorStatus.REJECTED


class ActionCredentials(CustomBaseModel):
    """
    Exactly one trust path: an authenticated in-app principal, or the
    approval token carried by a notification button or link.
    """

    principal: Optional[Principal] = None
    approval_token: Optional[str] = None


class ActionResult(CustomBaseModel):
    """Returned to the app and forwarded by the notification relay."""

    success: bool = Field(...)
    status: Optional[VisitorStatus] = None
    already_processed: bool = False
    not_found: bool = False
    message: Optional[str] = None


class ActionRequestBody(CustomBaseModel):
    action: Optional[VisitorAction] = None
    residency_id: Optional[str] = None
    request_id: Optional[str] = None
    approval_token: Optional[str] = None


class InAppActionRequest(CustomBaseModel):
    request_id: str = Field(..., min_length=1)
    action: VisitorAction = Field(...)


class VisitorDecisionRequest(CustomBaseModel):
    visitor_id: str = Field(..., min_length=1)
    token: str = Field(..., min_length=1)
    action: VisitorAction = Field(...)
    resident_id: str = Field(..., min_length=1)


class VisitorDetailsResponse(CustomBaseModel):
    success: bool = True
    visitor_name: str
    visitor_phone: Optional[str] = None
    purpose: Optional[str] = None
    vehicle_number: Optional[str] = None
    block_name: str = "Unknown Block"
    flat_number: str = "Unknown Flat"
    status: VisitorStatus
    created_at: datetime
