"""Discord webhook delivery with retry on rate limits and server errors."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_BACKOFF_CAP_SECONDS = 30
_REQUEST_TIMEOUT_SECONDS = 60.0


class DiscordWebhook:
    """Posts plain messages and file uploads to one Discord webhook URL."""

    def __init__(self, webhook_url: str) -> None:
        self._url = webhook_url

    async def send_text(self, content: str) -> None:
        """Post a plain text message."""
        await self._post(json={"content": content})

    async def send_file(self, buffer: bytes, filename: str, caption: str) -> None:
        """Upload *buffer* as an attachment with *caption* as the message body."""
        await self._post(
            data={"payload_json": json.dumps({"content": caption})},
            files={"file": (filename, buffer)},
        )

    async def _post(self, **kwargs: Any) -> None:
        """POST with up to 3 retries on 429/5xx, backoff capped at 30s.

        Non-retryable errors and an exhausted retry budget raise
        httpx.HTTPStatusError.
        """
        async with httpx.AsyncClient(verify=True) as client:
            for attempt in range(_MAX_RETRIES + 1):
                resp = await client.post(
                    self._url, timeout=_REQUEST_TIMEOUT_SECONDS, **kwargs,
                )

                if resp.status_code < 400:
                    return
                if not self._should_retry(resp.status_code) or attempt == _MAX_RETRIES:
                    resp.raise_for_status()
                    return

                delay = self._retry_delay(resp, attempt)
                logger.warning(
                    "Discord webhook returned %d, retrying in %.1fs",
                    resp.status_code, delay,
                )
                await asyncio.sleep(delay)

    @staticmethod
    def _retry_delay(resp: httpx.Response, attempt: int) -> float:
        """Honor Retry-After on 429, else exponential backoff; both capped at 30s."""
        if resp.status_code == 429:
            retry_after = resp.headers.get("retry-after")
            try:
                if retry_after is not None:
                    return min(max(float(retry_after), 0.0), _BACKOFF_CAP_SECONDS)
            except (TypeError, ValueError):
                pass
        return min(2 ** attempt, _BACKOFF_CAP_SECONDS)

    @staticmethod
    def _should_retry(status_code: int) -> bool:
        """Only retry on 429 (rate limit) or 5xx (server error)."""
        return status_code == 429 or status_code >= 500
