"""Data models for the LINE to Discord relay."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class LineEventType(str, Enum):
    """LINE webhook event types the relay reacts to."""

    MESSAGE = "message"
    MEMBER_JOINED = "memberJoined"
    MEMBER_LEFT = "memberLeft"
    OTHER = "other"


class LineMessageType(str, Enum):
    """Message content types the relay forwards."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"


@dataclass
class LineEvent:
    """Normalized LINE webhook event."""

    type: LineEventType
    user_id: str = ""
    message_type: LineMessageType | None = None
    message_id: str = ""
    text: str = ""
    member_ids: list[str] = field(default_factory=list)
