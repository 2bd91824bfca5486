"""Time-bounded deduplication cache for inbound webhook events.

LINE redelivers webhooks it considers unacknowledged, so the same message id
can arrive more than once. The cache is owned by whoever constructs the relay
and is passed in explicitly.
"""

from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)

_DEFAULT_TTL_SECONDS = 5 * 60


class EventDeduplicator:
    """In-memory key -> expiry map with lazy eviction."""

    def __init__(self, ttl_seconds: float = _DEFAULT_TTL_SECONDS) -> None:
        self._ttl = ttl_seconds
        self._expires_at: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._expires_at)

    def check_and_mark(self, key: str) -> bool:
        """Return True if *key* was already seen within the TTL, else record it.

        Empty keys are never treated as duplicates.
        """
        if not key:
            return False

        now = time.monotonic()
        self._evict_expired(now)

        if key in self._expires_at:
            logger.debug("Duplicate event skipped: %s", key)
            return True

        self._expires_at[key] = now + self._ttl
        return False

    def clear(self) -> None:
        self._expires_at.clear()

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, expiry in self._expires_at.items() if expiry <= now]
        for key in expired:
            del self._expires_at[key]
