"""Encoding backends for the compression pipeline.

Images are re-encoded in memory with Pillow. Videos are transcoded with the
ffmpeg binary, which only works on files, so callers stage input and output
on disk.
"""

from __future__ import annotations

import asyncio
import io
import logging

from PIL import Image, UnidentifiedImageError

from src.media.errors import EncodingError
from src.media.models import VideoStep

logger = logging.getLogger(__name__)

_STDERR_TAIL_CHARS = 500


def pillow_transform(data: bytes, quality: int, max_width: int | None = None) -> bytes:
    """Re-encode image bytes as JPEG at *quality*, optionally capping the width.

    The width cap keeps the aspect ratio and never enlarges smaller images.
    Alpha and palette images are flattened to RGB since JPEG has no alpha.
    """
    step = f"jpeg q={quality} max_width={max_width}"
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode != "RGB":
                img = img.convert("RGB")

            if max_width is not None and img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.LANCZOS)

            buf = io.BytesIO()
            img.save(buf, format="JPEG", quality=quality, optimize=True)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
        raise EncodingError(step, str(exc)) from exc

    out = buf.getvalue()
    logger.debug("Image re-encoded (%s): %d -> %d bytes", step, len(data), len(out))
    return out


class FfmpegEncoder:
    """Runs one ffmpeg transcode per call as an asyncio subprocess."""

    def __init__(self, ffmpeg_path: str = "ffmpeg") -> None:
        self._ffmpeg_path = ffmpeg_path

    def build_command(self, input_path: str, output_path: str, step: VideoStep) -> list[str]:
        width, height = step.dimensions
        return [
            self._ffmpeg_path,
            "-y",
            "-i", input_path,
            "-vf", f"scale={width}:{height}",
            "-b:v", step.bitrate,
            "-preset", step.preset,
            output_path,
        ]

    async def encode(self, input_path: str, output_path: str, step: VideoStep) -> None:
        """Transcode *input_path* into *output_path* at the step's settings.

        Raises EncodingError when ffmpeg cannot be started or exits non-zero.
        """
        label = f"{step.resolution}@{step.bitrate}"
        cmd = self.build_command(input_path, output_path, step)
        logger.debug("Running ffmpeg: %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise EncodingError(label, f"could not start ffmpeg: {exc}") from exc

        _, stderr = await proc.communicate()
        if proc.returncode != 0:
            tail = stderr.decode(errors="replace")[-_STDERR_TAIL_CHARS:]
            raise EncodingError(label, f"ffmpeg exited with {proc.returncode}: {tail}")
