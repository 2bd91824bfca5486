"""Tests for the Pillow image transform and the ffmpeg video encoder."""

from __future__ import annotations

import asyncio
import io
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from PIL import Image

from src.media.errors import EncodingError
from src.media.models import VideoStep
from src.media.transforms import FfmpegEncoder, pillow_transform


def _png(width: int, height: int, mode: str = "RGB") -> bytes:
    color = (200, 30, 30, 128) if mode == "RGBA" else (200, 30, 30)
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


class TestPillowTransform:
    def test_reencodes_as_jpeg(self) -> None:
        out = pillow_transform(_png(400, 300), quality=75)
        with Image.open(io.BytesIO(out)) as img:
            assert img.format == "JPEG"
            assert img.size == (400, 300)

    def test_caps_width_preserving_aspect_ratio(self) -> None:
        out = pillow_transform(_png(2560, 1440), quality=50, max_width=1280)
        with Image.open(io.BytesIO(out)) as img:
            assert img.size == (1280, 720)

    def test_never_upscales(self) -> None:
        out = pillow_transform(_png(800, 600), quality=50, max_width=1280)
        with Image.open(io.BytesIO(out)) as img:
            assert img.size == (800, 600)

    def test_flattens_alpha(self) -> None:
        out = pillow_transform(_png(100, 100, mode="RGBA"), quality=75)
        with Image.open(io.BytesIO(out)) as img:
            assert img.mode == "RGB"

    def test_corrupt_input_raises_encoding_error(self) -> None:
        with pytest.raises(EncodingError, match="q=75"):
            pillow_transform(b"not an image", quality=75)


class TestFfmpegEncoder:
    def test_build_command(self) -> None:
        encoder = FfmpegEncoder(ffmpeg_path="/usr/bin/ffmpeg")
        step = VideoStep(resolution="854x480", bitrate="800k")

        cmd = encoder.build_command("/tmp/in.mp4", "/tmp/out.mp4", step)

        assert cmd[0] == "/usr/bin/ffmpeg"
        assert cmd[cmd.index("-i") + 1] == "/tmp/in.mp4"
        assert cmd[cmd.index("-vf") + 1] == "scale=854:480"
        assert cmd[cmd.index("-b:v") + 1] == "800k"
        assert cmd[cmd.index("-preset") + 1] == "veryfast"
        assert cmd[-1] == "/tmp/out.mp4"
        assert "-y" in cmd

    @pytest.mark.asyncio
    async def test_successful_encode(self) -> None:
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(b"", b""))
        proc.returncode = 0
        step = VideoStep(resolution="640x360", bitrate="500k")

        with patch(
            "src.media.transforms.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            return_value=proc,
        ) as mock_exec:
            await FfmpegEncoder().encode("in.mp4", "out.mp4", step)

        args = mock_exec.call_args[0]
        assert args[0] == "ffmpeg"
        assert "scale=640:360" in args

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises_encoding_error(self) -> None:
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(b"", b"Invalid data found"))
        proc.returncode = 1
        step = VideoStep(resolution="854x480", bitrate="800k")

        with patch(
            "src.media.transforms.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            return_value=proc,
        ):
            with pytest.raises(EncodingError, match="Invalid data found") as exc_info:
                await FfmpegEncoder().encode("in.mp4", "out.mp4", step)

        assert exc_info.value.step == "854x480@800k"

    @pytest.mark.asyncio
    async def test_missing_binary_raises_encoding_error(self) -> None:
        step = VideoStep(resolution="854x480", bitrate="800k")

        with patch(
            "src.media.transforms.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            side_effect=FileNotFoundError("ffmpeg"),
        ):
            with pytest.raises(EncodingError, match="could not start ffmpeg"):
                await FfmpegEncoder(ffmpeg_path="missing-ffmpeg").encode(
                    "in.mp4", "out.mp4", step,
                )


class TestVideoStep:
    def test_dimensions(self) -> None:
        assert VideoStep(resolution="854x480", bitrate="800k").dimensions == (854, 480)


class TestPillowTransformLimits:
    def test_decompression_bomb_raises_encoding_error(
        self, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        # Pillow raises once pixels exceed twice MAX_IMAGE_PIXELS
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 1000)

        with pytest.raises(EncodingError, match="exceeds limit"):
            pillow_transform(_png(100, 100), quality=75)


class TestFfmpegEncoderProcess:
    @pytest.mark.asyncio
    async def test_stdin_is_detached(self) -> None:
        proc = MagicMock()
        proc.communicate = AsyncMock(return_value=(b"", b""))
        proc.returncode = 0
        step = VideoStep(resolution="854x480", bitrate="800k")

        with patch(
            "src.media.transforms.asyncio.create_subprocess_exec",
            new_callable=AsyncMock,
            return_value=proc,
        ) as mock_exec:
            await FfmpegEncoder().encode("in.mp4", "out.mp4", step)

        assert mock_exec.call_args[1]["stdin"] == asyncio.subprocess.DEVNULL
