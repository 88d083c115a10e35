"""Message bus module."""

from geminirelay.bus.events import Attachment, InboundMessage, MessageKind, OutboundMessage
from geminirelay.bus.queue import MessageBus

__all__ = ["Attachment", "InboundMessage", "MessageBus", "MessageKind", "OutboundMessage"]
