"""
mandrill.py — Mandrill send-log and account queries.

Endpoints used (Mandrill API 1.0, JSON POST, key in the body):

    messages/search-time-series.json   hourly stats for a search query
    users/info.json                    reputation + hourly quota

Error Handling Strategy
========================
    Network errors, timeouts, non-2xx answers and bodies that do not
    have the expected shape all raise UpstreamQueryError. Nothing is
    retried here, and an error is never turned into an empty result:
    "no rows" from a broken query would read as an idle period and
    hide a real outage.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from sendwatch.core.errors import UpstreamQueryError
from sendwatch.monitor.models import AccountStatus, ExternalSendEntry

logger = logging.getLogger(__name__)

UPSTREAM = "mandrill"
DEFAULT_BASE_URL = "https://mandrillapp.com/api/1.0"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_slot_time(value: Any) -> Optional[datetime]:
    """Parse a time-series `time` field ("YYYY-MM-DD HH:MM:SS", UTC)."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.strptime(value, TIME_FORMAT)
    except ValueError:
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            logger.debug("Unparseable time-series timestamp: %r", value)
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class MandrillClient:
    """
    Thin async client for the two Mandrill calls the monitor needs.

    Usage:
        client = MandrillClient(api_key, timeout_seconds=10)
        entries = await client.search_sent_in_range("ops@example.com", start, end)
    """

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def _call(self, method: str, body: Dict[str, Any]) -> Any:
        url = f"{self.base_url}/{method}.json"
        payload = {"key": self.api_key, **body}
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, timeout=self.timeout_seconds)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            raise UpstreamQueryError(UPSTREAM, f"{method} timed out", method=method) from exc
        except httpx.HTTPError as exc:
            raise UpstreamQueryError(UPSTREAM, f"{method}: {exc}", method=method) from exc

        if response.status_code >= 400:
            detail = _error_message(response)
            logger.error("Mandrill %s → HTTP %d: %s", method, response.status_code, detail)
            raise UpstreamQueryError(
                UPSTREAM,
                f"{method} returned HTTP {response.status_code}: {detail}",
                method=method,
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamQueryError(UPSTREAM, f"{method} returned invalid JSON", method=method) from exc

    async def search_sent_in_range(
        self,
        recipient: str,
        start: datetime,
        end: datetime,
    ) -> List[ExternalSendEntry]:
        """Hourly sent counts for messages addressed to `recipient`."""
        data = await self._call(
            "messages/search-time-series",
            {
                "query": f"full_email:{recipient}",
                "date_from": start.strftime(DATE_FORMAT),
                "date_to": end.strftime(DATE_FORMAT),
            },
        )
        if not isinstance(data, list):
            raise UpstreamQueryError(UPSTREAM, "search-time-series did not return a list")

        try:
            entries = [
                ExternalSendEntry(
                    timestamp=parse_slot_time(item.get("time")),
                    sent=int(item.get("sent") or 0),
                )
                for item in data
                if isinstance(item, dict)
            ]
        except (TypeError, ValueError) as exc:
            raise UpstreamQueryError(
                UPSTREAM, "search-time-series slot has a non-numeric sent count",
            ) from exc
        logger.info(
            "Mandrill returned %d time-series slots for %s", len(entries), recipient,
            extra={"recipient": recipient},
        )
        return entries

    async def get_account_status(self) -> AccountStatus:
        data = await self._call("users/info", {})
        try:
            return AccountStatus(
                reputation=float(data["reputation"]),
                hourly_quota=float(data["hourly_quota"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamQueryError(UPSTREAM, "users/info response missing reputation/quota") from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("name") or body)
    return str(body)[:200]
