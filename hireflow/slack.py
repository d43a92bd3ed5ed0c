"""Chat notifier posting to a Slack incoming webhook."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class SlackWebhookNotifier:
    """Send chat messages through a Slack incoming webhook URL.

    An ``httpx.AsyncClient`` may be injected (tests use one backed by
    ``httpx.MockTransport``); otherwise a short-lived client is opened per
    message.
    """

    def __init__(
        self,
        webhook_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ) -> None:
        self.webhook_url = webhook_url
        self._client = client
        self._timeout = timeout

    async def send_chat_message(self, user_id: Optional[str], message: str, channel: str) -> bool:
        payload = {"text": message, "channel": channel}
        try:
            if self._client is not None:
                response = await self._client.post(self.webhook_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning(f"Slack webhook request failed: {exc}")
            return False
        if not response.is_success:
            logger.warning(
                f"Slack webhook returned {response.status_code} for channel {channel}"
            )
        return response.is_success
