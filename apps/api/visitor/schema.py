# apps/api/visitor/schema.py

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from core.response.models import CustomBaseModel


class VisitorStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ENTERED = "entered"
    EXITED = "exited"


class InformationalStatus(str, Enum):
    """
    Sub-notifications raised from the gate. They notify the flat but never
    move the stored status.
    """

    ARRIVED = "arrived"
    WAITING_APPROVAL = "waiting_approval"


# Older clients report a check-out as "departed"
STATUS_ALIASES = {"departed": VisitorStatus.EXITED.value}


class VisitorRequestCreate(CustomBaseModel):
    residency_id: str = Field(..., min_length=1)
    visitor_name: str = Field(..., min_length=1, max_length=120)
    visitor_phone: Optional[str] = Field(None, max_length=30)
    flat_id: str = Field(..., min_length=1)
    purpose: Optional[str] = Field(None, max_length=255)
    vehicle_number: Optional[str] = Field(None, max_length=30)

    @field_validator("flat_id", mode="before")
    @classmethod
    def coerce_flat_id(cls, v: Any):
        # Kiosk forms post numeric flat ids
        return str(v) if v is not None else v

    @field_validator("vehicle_number", mode="before")
    @classmethod
    def blank_vehicle_is_none(cls, v: Any):
        return v or None


class VisitorSubmitResponse(CustomBaseModel):
    success: bool = True
    request_id: str


class VisitorRequestResponse(CustomBaseModel):
    id: str
    residency_id: str
    flat_id: str
    visitor_name: str
    visitor_phone: Optional[str] = None
    purpose: Optional[str] = None
    vehicle_number: Optional[str] = None
    status: VisitorStatus
    notification_sent: bool
    action_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    entered_at: Optional[datetime] = None
    exited_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class VisitorStatusView(CustomBaseModel):
    """What the visitor's own status page shows; no secrets."""

    id: str
    visitor_name: str
    status: VisitorStatus
    block_name: Optional[str] = None
    flat_number: Optional[str] = None
    updated_at: datetime


class StatusUpdateRequest(CustomBaseModel):
    residency_id: Optional[str] = None
    request_id: str = Field(..., min_length=1)
    status: str = Field(...)

    @field_validator("status")
    @classmethod
    def normalize_status(cls, v: str):
        v = STATUS_ALIASES.get(v, v)
        allowed = {s.value for s in VisitorStatus} | {
            s.value for s in InformationalStatus
        }
        if v not in allowed or v == VisitorStatus.PENDING.value:
            raise ValueError(f"Invalid status '{v}'")
        return v


class StatusUpdateResponse(CustomBaseModel):
    success: bool = True
    status: str
    notified: int = 0


class TestResults(CustomBaseModel):
    has_notification_sent: bool
    status: VisitorStatus
    has_approval_data: bool
    timestamp: datetime


class RequestInspectionResponse(CustomBaseModel):
    success: bool = True
    residency_id: str
    request: VisitorRequestResponse
    flat: Optional[dict] = None
    block: Optional[dict] = None
    test_results: TestResults
