"""Adaptive media compression pipeline.

Brings an image or video under the attachment size limit by trying a fixed,
ordered list of re-encode passes and stopping at the first compliant result.

Image passes chain: pass 2 re-encodes the output of pass 1.
Video passes are independent: every pass re-encodes the original source.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import tempfile
import uuid
from collections.abc import Callable, Iterator
from typing import Protocol

from src.media.errors import EncodingError
from src.media.models import (
    IMAGE_STEPS,
    SIZE_LIMIT,
    VIDEO_STEPS,
    CompressionOutcome,
    ImageStep,
    MediaBlob,
    MediaKind,
    VideoStep,
)
from src.media.transforms import FfmpegEncoder, pillow_transform

logger = logging.getLogger(__name__)

ImageTransform = Callable[[bytes, int, int | None], bytes]


class VideoEncoder(Protocol):
    async def encode(self, input_path: str, output_path: str, step: VideoStep) -> None: ...


class CompressionPipeline:
    """Compresses media blobs to fit under a fixed byte ceiling."""

    def __init__(
        self,
        size_limit: int = SIZE_LIMIT,
        image_transform: ImageTransform = pillow_transform,
        video_encoder: VideoEncoder | None = None,
        image_steps: tuple[ImageStep, ...] = IMAGE_STEPS,
        video_steps: tuple[VideoStep, ...] = VIDEO_STEPS,
        temp_dir: str | None = None,
    ) -> None:
        self._size_limit = size_limit
        self._image_transform = image_transform
        self._video_encoder = video_encoder or FfmpegEncoder()
        self._image_steps = image_steps
        self._video_steps = video_steps
        self._temp_dir = temp_dir

    @property
    def size_limit(self) -> int:
        return self._size_limit

    async def compress(self, blob: MediaBlob) -> CompressionOutcome:
        """Route *blob* to the image or video path by its declared kind."""
        if blob.kind == MediaKind.IMAGE:
            return await self.compress_image(blob)
        if blob.kind == MediaKind.VIDEO:
            return await self.compress_video(blob)
        raise ValueError(f"Unsupported media kind: {blob.kind!r}")

    async def compress_image(self, blob: MediaBlob) -> CompressionOutcome:
        """Run the chained image passes.

        Raises EncodingError if Pillow cannot decode or encode the image.
        """
        if blob.size <= self._size_limit:
            return CompressionOutcome.success(blob.data, 0)

        loop = asyncio.get_running_loop()
        current = blob.data
        for index, step in enumerate(self._image_steps, start=1):
            current = await loop.run_in_executor(
                None, self._image_transform, current, step.quality, step.max_width,
            )
            logger.debug(
                "Image pass %d (q=%d, max_width=%s): %d bytes",
                index, step.quality, step.max_width, len(current),
            )
            if len(current) <= self._size_limit:
                logger.info("Image compressed in %d pass(es): %d -> %d bytes",
                            index, blob.size, len(current))
                return CompressionOutcome.success(current, index)

        logger.info("Image still over %d bytes after %d passes",
                    self._size_limit, len(self._image_steps))
        return CompressionOutcome.failure()

    async def compress_video(self, blob: MediaBlob) -> CompressionOutcome:
        """Run the independent video passes against one staged source file.

        Raises EncodingError if ffmpeg fails or the staged files cannot be
        written or read back; staged files are removed either way.
        """
        if blob.size <= self._size_limit:
            return CompressionOutcome.success(blob.data, 0)

        with self._staging() as (input_path, output_path):
            try:
                with open(input_path, "wb") as f:
                    f.write(blob.data)
            except OSError as exc:
                raise EncodingError("stage input", str(exc)) from exc

            for index, step in enumerate(self._video_steps, start=1):
                await self._video_encoder.encode(input_path, output_path, step)
                try:
                    with open(output_path, "rb") as f:
                        encoded = f.read()
                except OSError as exc:
                    raise EncodingError(f"{step.resolution}@{step.bitrate}", str(exc)) from exc
                logger.debug(
                    "Video pass %d (%s @ %s): %d bytes",
                    index, step.resolution, step.bitrate, len(encoded),
                )
                if len(encoded) <= self._size_limit:
                    logger.info("Video compressed in %d pass(es): %d -> %d bytes",
                                index, blob.size, len(encoded))
                    return CompressionOutcome.success(encoded, index)

        logger.info("Video still over %d bytes after %d passes",
                    self._size_limit, len(self._video_steps))
        return CompressionOutcome.failure()

    @contextlib.contextmanager
    def _staging(self) -> Iterator[tuple[str, str]]:
        """Yield unique input/output paths for one invocation and remove them on exit."""
        base = os.path.join(
            self._temp_dir or tempfile.gettempdir(),
            f"media-{uuid.uuid4().hex}",
        )
        paths = (f"{base}-in.mp4", f"{base}-out.mp4")
        try:
            yield paths
        finally:
            for path in paths:
                _remove_quietly(path)


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to remove temporary file %s: %s", path, exc)
