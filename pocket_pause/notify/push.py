"""Push gateway client for delivering notifications to devices."""

import logging
from typing import Any, Optional, Sequence

import httpx

from pocket_pause import metrics
from pocket_pause.config import settings

logger = logging.getLogger(__name__)


class PushSender:
    """Posts notifications to the push gateway."""

    def __init__(
        self,
        gateway_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.gateway_url = gateway_url if gateway_url is not None else settings.push_gateway_url
        self.token = token if token is not None else settings.push_gateway_token
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self.gateway_url)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._http_client = httpx.AsyncClient(
                timeout=15.0,
                headers=headers,
                transport=self._transport,
            )
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def send(
        self,
        user_ids: Sequence[str],
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
        kind: str = "item_ready",
    ) -> bool:
        """
        Send one notification to the given users.

        Args:
            user_ids: Recipients
            title: Notification title
            body: Notification body
            data: Extra payload for the client app
            kind: Label for metrics

        Returns:
            True if the gateway accepted the notification, False otherwise
        """
        if not self.configured:
            logger.warning("Push gateway URL not configured, skipping notification")
            metrics.record_notification_sent(kind, False)
            return False

        payload = {
            "userIds": list(user_ids),
            "title": title,
            "body": body,
            "data": data or {},
        }

        try:
            client = await self._get_client()
            response = await client.post(self.gateway_url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Push gateway request failed: {e}")
            metrics.record_notification_sent(kind, False)
            return False

        if response.status_code in (200, 201, 202):
            logger.info(f"Sent {kind} notification to {len(payload['userIds'])} user(s)")
            metrics.record_notification_sent(kind, True)
            return True

        logger.error(
            f"Push gateway rejected notification: {response.status_code} {response.text[:200]}"
        )
        metrics.record_notification_sent(kind, False)
        return False
