from enum import Enum
from typing import Any, Dict, Optional

from pydantic import Field, model_validator

from core.response.models import CustomBaseModel


class ActionType(str, Enum):
    VISITOR_REQUEST = "VISITOR_REQUEST"
    STATUS_UPDATE = "STATUS_UPDATE"
    ADMIN_BROADCAST = "ADMIN_BROADCAST"
    GENERAL = "GENERAL"


class TargetType(str, Enum):
    RESIDENTS = "residents"
    SPECIFIC_FLAT = "specific_flat"
    USER = "user"


class NotificationPayload(CustomBaseModel):
    """What the caller wants to say; the dispatcher adds the routing data."""

    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)
    action_type: ActionType = ActionType.GENERAL
    data: Dict[str, Any] = Field(default_factory=dict)


class DispatchResult(CustomBaseModel):
    success_count: int = 0
    failure_count: int = 0
    invalidated_count: int = 0
    skipped_reason: Optional[str] = Field(
        None, description="Why nothing was sent, when nothing was sent"
    )


class SendNotificationRequest(CustomBaseModel):
    target_type: TargetType = Field(...)
    target_id: Optional[str] = Field(
        None, description="Flat id for specific_flat, resident username for user"
    )
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)
    data: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_target(self):
        if self.target_type != TargetType.RESIDENTS and not self.target_id:
            raise ValueError(f"targetId is required for '{self.target_type.value}'")
        return self


class BroadcastRequest(CustomBaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., min_length=1, max_length=1000)
    data: Dict[str, Any] = Field(default_factory=dict)


class VisitorNotificationRequest(CustomBaseModel):
    request_id: str = Field(..., min_length=1)


class OneSignalVisitorRequest(CustomBaseModel):
    resident_username: str = Field(..., min_length=1)
    request_id: str = Field(..., min_length=1)


class OneSignalResponse(CustomBaseModel):
    success: bool = True
    notification_id: Optional[str] = None
