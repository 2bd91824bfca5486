"""Errors raised by the media compression pipeline."""

from __future__ import annotations


class EncodingError(Exception):
    """An encoder or image library could not produce output.

    Distinct from a size failure: this means a pass could not even run
    (corrupt input, unsupported codec, missing ffmpeg, disk error).
    """

    def __init__(self, step: str, detail: str = "") -> None:
        self.step = step
        self.detail = detail
        message = f"Encoding failed at {step}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
