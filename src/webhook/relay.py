"""LINE to Discord relay.

Dispatches each LINE webhook event to a handler:
1. Skip message events already seen (caller-owned deduplicator)
2. Resolve the sender's display name
3. Download media content and run it through the compression pipeline
4. Post text, attachments or size-overflow notices to Discord

A failure in one event is logged and never stops the remaining events.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from src.media.models import MediaBlob, MediaKind
from src.media.pipeline import CompressionPipeline
from src.media.transforms import FfmpegEncoder
from src.webhook.dedup import EventDeduplicator
from src.webhook.discord import DiscordWebhook
from src.webhook.line import LineClient
from src.webhook.models import LineEvent, LineEventType, LineMessageType

if TYPE_CHECKING:
    from src.webhook.config import RelayConfig

logger = logging.getLogger(__name__)

_IMAGE_FILENAME = "image.jpg"
_VIDEO_FILENAME = "video.mp4"


def text_caption(name: str, text: str) -> str:
    return f"💬 LINE\n送信者：{name}\n内容：{text}"


def image_caption(name: str, step: int) -> str:
    return f"📷 IMAGE\n送信者：{name}（圧縮{step}回）"


def video_caption(name: str, step: int) -> str:
    caption = f"🎥 VIDEO\n送信者：{name}"
    if step > 0:
        caption += f"（圧縮{step}回）"
    return caption


def image_too_large_notice(name: str) -> str:
    return f"🖼 画像サイズオーバー\n送信者：{name}"


def video_too_large_notice(name: str) -> str:
    return f"🎥 動画サイズオーバー\n送信者：{name}"


class LineDiscordRelay:
    """Forwards LINE webhook events to a Discord webhook."""

    def __init__(
        self,
        line: LineClient,
        discord: DiscordWebhook,
        pipeline: CompressionPipeline,
        deduplicator: EventDeduplicator | None = None,
    ) -> None:
        self._line = line
        self._discord = discord
        self._pipeline = pipeline
        self._dedup = deduplicator
        self._tasks: set[asyncio.Task[None]] = set()

    def dispatch_webhook(self, body: dict[str, Any]) -> asyncio.Task[None]:
        """Schedule *body* for background processing and return immediately.

        Lets the HTTP layer acknowledge LINE with 200 before media is
        downloaded and compressed.
        """
        task = asyncio.create_task(self.handle_webhook(body))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def handle_webhook(self, body: dict[str, Any]) -> None:
        """Process every event in *body* in order."""
        for event in self._line.extract_events(body):
            try:
                await self.handle_event(event)
            except Exception:
                logger.exception(
                    "Failed to relay LINE event (type=%s, message_id=%s)",
                    event.type.value,
                    event.message_id,
                )

    async def handle_event(self, event: LineEvent) -> None:
        if event.type == LineEventType.MESSAGE:
            if self._dedup is not None and self._dedup.check_and_mark(event.message_id):
                return
            if event.message_type == LineMessageType.TEXT:
                await self._handle_text(event)
            elif event.message_type == LineMessageType.IMAGE:
                await self._handle_image(event)
            elif event.message_type == LineMessageType.VIDEO:
                await self._handle_video(event)
        elif event.type == LineEventType.MEMBER_JOINED and event.member_ids:
            await self._discord.send_text(f"👤 JOIN\n{event.member_ids[0]}")
        elif event.type == LineEventType.MEMBER_LEFT and event.member_ids:
            await self._discord.send_text(f"👤 LEAVE\n{event.member_ids[0]}")

    async def _handle_text(self, event: LineEvent) -> None:
        name = await self._line.get_profile(event.user_id)
        await self._discord.send_text(text_caption(name, event.text))

    async def _handle_image(self, event: LineEvent) -> None:
        name = await self._line.get_profile(event.user_id)
        data = await self._line.download_content(event.message_id)

        outcome = await self._pipeline.compress(MediaBlob(data=data, kind=MediaKind.IMAGE))
        if not outcome.ok:
            await self._discord.send_text(image_too_large_notice(name))
            return

        await self._discord.send_file(
            outcome.buffer, _IMAGE_FILENAME, image_caption(name, outcome.step),
        )

    async def _handle_video(self, event: LineEvent) -> None:
        name = await self._line.get_profile(event.user_id)
        data = await self._line.download_content(event.message_id)

        outcome = await self._pipeline.compress(MediaBlob(data=data, kind=MediaKind.VIDEO))
        if not outcome.ok:
            await self._discord.send_text(video_too_large_notice(name))
            return

        await self._discord.send_file(
            outcome.buffer, _VIDEO_FILENAME, video_caption(name, outcome.step),
        )


def build_relay(config: RelayConfig) -> LineDiscordRelay:
    """Wire a relay and its collaborators from *config*."""
    pipeline = CompressionPipeline(
        size_limit=config.size_limit,
        video_encoder=FfmpegEncoder(config.ffmpeg_path),
        temp_dir=config.temp_dir,
    )
    return LineDiscordRelay(
        line=LineClient(config.line_channel_access_token),
        discord=DiscordWebhook(config.discord_webhook_url),
        pipeline=pipeline,
        deduplicator=EventDeduplicator(config.dedup_ttl_seconds),
    )
