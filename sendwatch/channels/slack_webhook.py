"""
slack_webhook.py — Slack incoming-webhook alert channel.

Delivery mechanism:
    • HTTP POST to the webhook URL
    • Form-encoded body: payload=<JSON attachment message>
    • Slack answers 200 "ok" on success

A failed post raises NotificationError. The caller logs it and keeps
the check's own verdict; nothing is retried here.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from sendwatch.core.errors import NotificationError
from sendwatch.monitor.models import AlertPayload, DeliveryAttempt, DeliveryStatus

logger = logging.getLogger(__name__)

CHANNEL_NAME = "slack"


class SlackWebhookChannel:
    def __init__(
        self,
        webhook_url: str,
        *,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def post(self, payload: AlertPayload) -> DeliveryAttempt:
        """
        Post one alert.

        Returns
        -------
        DeliveryAttempt
            With status DELIVERED.

        Raises
        ------
        NotificationError
            On transport failure or a non-2xx answer.
        """
        attempt = DeliveryAttempt(channel=CHANNEL_NAME)
        form = {"payload": json.dumps(payload.to_slack())}

        logger.info("Notifying Slack: %s", payload.title, extra={"channel": CHANNEL_NAME})
        try:
            if self._client is not None:
                response = await self._client.post(
                    self.webhook_url, data=form, timeout=self.timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(self.webhook_url, data=form)
        except httpx.HTTPError as exc:
            raise NotificationError(
                CHANNEL_NAME, f"Unable to send reply back to Slack: {exc}",
            ) from exc

        if response.status_code >= 400:
            raise NotificationError(
                CHANNEL_NAME,
                f"Slack rejected the alert ({response.status_code})",
                status=response.status_code,
                body=response.text[:200],
            )

        attempt.status = DeliveryStatus.DELIVERED
        attempt.completed_at = datetime.now(timezone.utc)
        attempt.provider_response = {
            "status_code": response.status_code,
            "body": response.text[:200],
        }
        return attempt
