"""Base channel interface for chat platforms."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from geminirelay.bus.events import Attachment, InboundMessage, MessageKind, OutboundMessage
from geminirelay.bus.queue import MessageBus


class BaseChannel(ABC):
    """
    Abstract chat channel.

    A channel turns platform updates into ``InboundMessage`` objects on the
    bus, and offers the few services the dispatcher needs back: sending a
    reply, downloading attachment bytes, and a "composing" presence.
    """

    name: str = "base"

    def __init__(self, config: Any, bus: MessageBus):
        self.config = config
        self.bus = bus
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """Connect and keep listening until stopped."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect and release resources."""

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """Deliver one outbound message."""

    @abstractmethod
    async def download(self, attachment: Attachment) -> bytes:
        """Fetch the bytes of an inbound attachment."""

    async def set_presence(self, chat_id: str, composing: bool) -> None:
        """Show or clear the composing indicator. Best effort; default is a no-op."""

    async def _handle_message(
        self,
        sender_id: str,
        chat_id: str,
        content: str,
        kind: MessageKind = MessageKind.TEXT,
        attachment: Attachment | None = None,
        is_group: bool = False,
        from_self: bool = False,
        author_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Publish a normalized inbound message to the bus."""
        msg = InboundMessage(
            channel=self.name,
            sender_id=str(sender_id),
            chat_id=str(chat_id),
            content=content or "",
            kind=kind,
            attachment=attachment,
            is_group=is_group,
            from_self=from_self,
            author_name=author_name,
            metadata=metadata or {},
        )
        logger.debug(f"Inbound {kind.value} from {self.name}:{sender_id} in {chat_id}")
        await self.bus.publish_inbound(msg)
