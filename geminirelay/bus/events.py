"""Event types for the message bus."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class MessageKind(str, Enum):
    """The closed set of inbound shapes the dispatcher reacts to."""

    TEXT = "text"
    IMAGE = "image"
    DOCUMENT = "document"
    OTHER = "other"


@dataclass(frozen=True)
class Attachment:
    """Reference to media that the channel can download on demand."""

    file_id: str
    mime_type: str


def conversation_key(is_group: bool, chat_id: str, sender_id: str) -> str:
    """History bucket for a message: the group id in groups, the sender otherwise."""
    return str(chat_id) if is_group else str(sender_id)


@dataclass
class InboundMessage:
    """Message received from a chat channel."""

    channel: str  # telegram
    sender_id: str  # User identifier
    chat_id: str  # Chat/group identifier
    content: str  # Message text, or the caption for media
    kind: MessageKind = MessageKind.TEXT
    attachment: Attachment | None = None
    is_group: bool = False
    from_self: bool = False
    author_name: str | None = None
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def conversation_key(self) -> str:
        return conversation_key(self.is_group, self.chat_id, self.sender_id)


@dataclass
class OutboundMessage:
    """Message to send to a chat channel."""

    channel: str
    chat_id: str
    content: str
    media: list[str] = field(default_factory=list)
    location: tuple[float, float] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
