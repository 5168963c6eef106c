from enum import Enum as PyEnum
from typing import Optional, Dict, Any, List
from pydantic import BaseModel, Field, field_validator


class NotificationPriority(str, PyEnum):
    NORMAL = "normal"
    HIGH = "high"


class AndroidNotificationPriority(str, PyEnum):
    DEFAULT = "default"
    HIGH = "high"
    MAX = "max"


class FCMNotification(BaseModel):
    """The visible part: what the lock screen shows."""

    title: str
    body: str
    image: Optional[str] = None


class AndroidConfig(BaseModel):
    # Heads-up display needs a high priority message on a high importance channel
    priority: NotificationPriority = NotificationPriority.HIGH
    notification_priority: AndroidNotificationPriority = (
        AndroidNotificationPriority.MAX
    )
    channel_id: Optional[str] = Field(
        "default", description="Channel the app registered on the device"
    )
    tag: Optional[str] = Field(
        None, description="Notifications sharing a tag replace each other"
    )
    visibility: str = "public"
    click_action: Optional[str] = None
    collapse_key: Optional[str] = None
    ttl: Optional[int] = Field(None, description="Seconds FCM keeps the message")


class APNSConfig(BaseModel):
    headers: Optional[Dict[str, str]] = Field(
        None, description="Raw APNs headers such as apns-priority"
    )
    badge: Optional[int] = None
    sound: str = "default"
    content_available: bool = False
    category: Optional[str] = Field(
        None, description="Category carrying the approve/reject buttons"
    )


class WebpushConfig(BaseModel):
    headers: Optional[Dict[str, str]] = Field(None, description="e.g. Urgency")
    link: Optional[str] = Field(
        None, description="Opened on click; FCM only accepts https links"
    )
    icon: Optional[str] = None
    badge: Optional[str] = None
    actions: Optional[List[Dict[str, str]]] = Field(
        None, description="[{'action': ..., 'title': ...}] buttons"
    )
    require_interaction: bool = False


class FCMMulticastMessage(BaseModel):
    """
    Message sent to a batch of device tokens. Tokens are not part of the
    message so that retry passes can resend the same message to a subset.
    """

    notification: Optional[FCMNotification] = None
    data: Optional[Dict[str, str]] = None

    android: Optional[AndroidConfig] = None
    apns: Optional[APNSConfig] = None
    webpush: Optional[WebpushConfig] = None

    @field_validator("data", mode="before")
    @classmethod
    def validate_data(cls, v: Optional[Dict[str, Any]]):
        # FCM only accepts string values in the data block
        if v:
            return {
                str(key): "" if value is None else str(value)
                for key, value in v.items()
            }
        return v
