"""Data models for the media compression pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

SIZE_LIMIT = 8 * 1024 * 1024  # 8MiB Discord attachment limit


class MediaKind(str, Enum):
    """Kinds of media the pipeline knows how to compress."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class MediaBlob:
    """Raw media bytes received from the inbound platform."""

    data: bytes
    kind: MediaKind

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class ImageStep:
    """One image re-encode pass: JPEG quality plus an optional width cap."""

    quality: int
    max_width: int | None = None


@dataclass(frozen=True)
class VideoStep:
    """One video re-encode pass from the original source file."""

    resolution: str  # "WIDTHxHEIGHT"
    bitrate: str  # ffmpeg notation, e.g. "800k"
    preset: str = "veryfast"

    @property
    def dimensions(self) -> tuple[int, int]:
        width, height = self.resolution.lower().split("x")
        return int(width), int(height)


# Ordered least to most aggressive. Image passes chain off the previous
# output; video passes always start from the original input.
IMAGE_STEPS: tuple[ImageStep, ...] = (
    ImageStep(quality=75),
    ImageStep(quality=50, max_width=1280),
)

VIDEO_STEPS: tuple[VideoStep, ...] = (
    VideoStep(resolution="854x480", bitrate="800k"),
    VideoStep(resolution="640x360", bitrate="500k"),
)


@dataclass(frozen=True)
class CompressionOutcome:
    """Result of one pipeline invocation.

    A success carries the compliant buffer and the number of passes applied
    (0 when the original already fit). A failure means every pass ran and
    the result was still over the size limit.
    """

    buffer: bytes | None = None
    step: int = 0

    @property
    def ok(self) -> bool:
        return self.buffer is not None

    @classmethod
    def success(cls, buffer: bytes, step: int) -> CompressionOutcome:
        return cls(buffer=buffer, step=step)

    @classmethod
    def failure(cls) -> CompressionOutcome:
        return cls()
