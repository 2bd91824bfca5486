"""LINE Messaging API client.

Extracts events from webhook bodies, resolves sender display names, and
downloads message content (images and videos) as raw bytes.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from src.webhook.models import LineEvent, LineEventType, LineMessageType

logger = logging.getLogger(__name__)

_API_BASE = "https://api.line.me/v2/bot"
_DATA_API_BASE = "https://api-data.line.me/v2/bot"
_REQUEST_TIMEOUT_SECONDS = 30.0
_CONTENT_TIMEOUT_SECONDS = 120.0


class LineClient:
    """Thin async wrapper around the LINE endpoints the relay needs."""

    def __init__(self, channel_access_token: str) -> None:
        self._token = channel_access_token

    @property
    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def extract_events(self, body: dict[str, Any]) -> list[LineEvent]:
        """Normalize every entry of ``body["events"]``.

        Unknown event and message types are kept as OTHER so the caller can
        decide to skip them.
        """
        return [self._extract_event(raw) for raw in body.get("events", [])]

    def _extract_event(self, raw: dict[str, Any]) -> LineEvent:
        try:
            event_type = LineEventType(raw.get("type", ""))
        except ValueError:
            event_type = LineEventType.OTHER

        source: dict[str, Any] = raw.get("source", {})
        event = LineEvent(type=event_type, user_id=source.get("userId", ""))

        if event_type == LineEventType.MESSAGE:
            message: dict[str, Any] = raw.get("message", {})
            try:
                event.message_type = LineMessageType(message.get("type", ""))
            except ValueError:
                event.message_type = LineMessageType.OTHER
            event.message_id = message.get("id", "")
            event.text = message.get("text", "")
        elif event_type == LineEventType.MEMBER_JOINED:
            event.member_ids = _member_ids(raw.get("joined", {}))
        elif event_type == LineEventType.MEMBER_LEFT:
            event.member_ids = _member_ids(raw.get("left", {}))

        return event

    async def get_profile(self, user_id: str) -> str:
        """Return the sender's display name, falling back to the raw user id."""
        if not user_id:
            return user_id

        url = f"{_API_BASE}/profile/{user_id}"
        try:
            async with httpx.AsyncClient(verify=True) as client:
                resp = await client.get(
                    url, headers=self._headers, timeout=_REQUEST_TIMEOUT_SECONDS,
                )
                resp.raise_for_status()
                return resp.json().get("displayName") or user_id
        except (httpx.HTTPError, ValueError):
            logger.warning("Profile lookup failed for %s, using raw user id", user_id)
            return user_id

    async def download_content(self, message_id: str) -> bytes:
        """Download the binary content of an image or video message.

        HTTP errors propagate to the caller.
        """
        url = f"{_DATA_API_BASE}/message/{message_id}/content"
        async with httpx.AsyncClient(verify=True) as client:
            resp = await client.get(
                url, headers=self._headers, timeout=_CONTENT_TIMEOUT_SECONDS,
            )
            resp.raise_for_status()
            content = resp.content

        logger.debug("Downloaded LINE content %s: %d bytes", message_id, len(content))
        return content


def _member_ids(section: dict[str, Any]) -> list[str]:
    return [m.get("userId", "") for m in section.get("members", []) if m.get("userId")]
