"""Relay configuration loaded from the environment (and a local .env file)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from src.media.models import SIZE_LIMIT

_DEFAULT_DEDUP_TTL_SECONDS = 5 * 60


@dataclass(frozen=True)
class RelayConfig:
    line_channel_access_token: str
    discord_webhook_url: str
    ffmpeg_path: str = "ffmpeg"
    size_limit: int = SIZE_LIMIT
    dedup_ttl_seconds: float = _DEFAULT_DEDUP_TTL_SECONDS
    temp_dir: str | None = None

    @classmethod
    def from_env(cls, load_dotenv_file: bool = True) -> RelayConfig:
        """Build a config from environment variables.

        Raises ValueError when a required variable is missing or a numeric
        one cannot be parsed.
        """
        if load_dotenv_file:
            load_dotenv()

        token = os.getenv("LINE_CHANNEL_ACCESS_TOKEN", "")
        webhook_url = os.getenv("DISCORD_WEBHOOK_URL", "")
        missing = [
            name for name, value in (
                ("LINE_CHANNEL_ACCESS_TOKEN", token),
                ("DISCORD_WEBHOOK_URL", webhook_url),
            ) if not value
        ]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        return cls(
            line_channel_access_token=token,
            discord_webhook_url=webhook_url,
            ffmpeg_path=os.getenv("FFMPEG_PATH", "ffmpeg"),
            size_limit=int(os.getenv("MEDIA_SIZE_LIMIT_BYTES", str(SIZE_LIMIT))),
            dedup_ttl_seconds=float(
                os.getenv("DEDUP_TTL_SECONDS", str(_DEFAULT_DEDUP_TTL_SECONDS))
            ),
            temp_dir=os.getenv("MEDIA_TEMP_DIR") or None,
        )
