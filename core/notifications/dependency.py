from typing import Annotated, Optional

from fastapi import Depends, Request

from core.notifications.gateway import PushGateway
from core.notifications.onesignal.client import OneSignalClient


def get_push_gateway(request: Request) -> Optional[PushGateway]:
    """The gateway built at startup; None when push is not configured."""
    return getattr(request.app.state, "push_gateway", None)


def get_onesignal_client(request: Request) -> Optional[OneSignalClient]:
    return getattr(request.app.state, "onesignal_client", None)


PushGatewayDependency = Annotated[Optional[PushGateway], Depends(get_push_gateway)]
OneSignalClientDependency = Annotated[
    Optional[OneSignalClient], Depends(get_onesignal_client)
]
