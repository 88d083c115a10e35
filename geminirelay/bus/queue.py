"""Async message queue decoupling channels from the dispatcher."""

from __future__ import annotations

import asyncio

from geminirelay.bus.events import InboundMessage, OutboundMessage


class MessageBus:
    """
    Two queues: channels push inbound messages, the dispatcher consumes them
    and pushes replies to the outbound queue for the channel manager.
    """

    def __init__(self):
        self.inbound: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self.outbound: asyncio.Queue[OutboundMessage] = asyncio.Queue()

    async def publish_inbound(self, msg: InboundMessage) -> None:
        await self.inbound.put(msg)

    async def consume_inbound(self) -> InboundMessage:
        return await self.inbound.get()

    async def publish_outbound(self, msg: OutboundMessage) -> None:
        await self.outbound.put(msg)

    async def consume_outbound(self) -> OutboundMessage:
        return await self.outbound.get()
