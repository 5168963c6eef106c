import logging
from typing import Any, Dict, List, Optional

import httpx

from core.notifications.onesignal.exceptions import OneSignalException

logger = logging.getLogger(__name__)


class OneSignalClient:
    """
    Fallback push path. OneSignal addresses users by external id (the
    principal's username) instead of FCM device tokens.
    """

    BASE_URL = "https://api.onesignal.com"

    def __init__(
        self,
        app_id: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.app_id = app_id
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def build_payload(
        self,
        external_ids: List[str],
        heading: str,
        content: str,
        data: Optional[Dict[str, Any]] = None,
        buttons: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "app_id": self.app_id,
            "include_aliases": {"external_id": external_ids},
            "target_channel": "push",
            "headings": {"en": heading},
            "contents": {"en": content},
        }
        if data:
            payload["data"] = data
        if buttons:
            payload["buttons"] = buttons
        return payload

    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(transport=self._transport) as client:
            resp = await client.post(
                f"{self.base_url}/notifications",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
                timeout=self.timeout,
            )

        try:
            result = resp.json()
        except ValueError:
            result = {}

        if resp.is_error:
            logger.error(f"OneSignal rejected notification ({resp.status_code}): {result}")
            raise OneSignalException(
                "OneSignal notification failed",
                status_code=resp.status_code,
                errors=result.get("errors", result),
            )

        logger.info(f"OneSignal notification accepted: {result.get('id')}")
        return result
