"""Channel manager for coordinating chat channels."""

from __future__ import annotations

import asyncio

from loguru import logger

from geminirelay.bus.events import OutboundMessage
from geminirelay.bus.queue import MessageBus
from geminirelay.channels.base import BaseChannel
from geminirelay.config.schema import Config


class ChannelManager:
    """
    Manages chat channels and coordinates message routing.

    Responsibilities:
    - Initialize enabled channels
    - Start/stop channels
    - Route outbound messages, one send at a time per channel, each bounded
      by a fixed timeout
    """

    def __init__(
        self,
        config: Config,
        bus: MessageBus,
        channels: dict[str, BaseChannel] | None = None,
    ):
        self.config = config
        self.bus = bus
        self.send_timeout = config.telegram.send_timeout
        self.channels: dict[str, BaseChannel] = dict(channels) if channels is not None else {}
        self._dispatch_task: asyncio.Task | None = None
        self._outbound_queues: dict[str, asyncio.Queue[OutboundMessage]] = {}
        self._outbound_workers: dict[str, asyncio.Task[None]] = {}

        if channels is None:
            self._init_channels()

    def _init_channels(self) -> None:
        """Initialize channels based on config."""
        if self.config.telegram.enabled:
            from geminirelay.channels.telegram import TelegramChannel

            self.channels["telegram"] = TelegramChannel(self.config.telegram, self.bus)
            logger.info("Telegram channel enabled")

    async def _start_channel(self, name: str, channel: BaseChannel) -> None:
        """Start a channel and log any exceptions."""
        try:
            await channel.start()
        except Exception as e:
            logger.error(f"Failed to start channel {name}: {e}")

    async def start_all(self) -> None:
        """Start all channels and the outbound dispatcher."""
        if not self.channels:
            logger.warning("No channels enabled")
            return

        self._dispatch_task = asyncio.create_task(self._dispatch_outbound())

        tasks = []
        for name, channel in self.channels.items():
            logger.info(f"Starting {name} channel...")
            tasks.append(asyncio.create_task(self._start_channel(name, channel)))

        await asyncio.gather(*tasks, return_exceptions=True)

    async def stop_all(self) -> None:
        """Stop all channels and the dispatcher."""
        logger.info("Stopping all channels...")

        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
        await self._stop_outbound_workers()

        for name, channel in self.channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped {name} channel")
            except Exception as e:
                logger.error(f"Error stopping {name}: {e}")

    async def _dispatch_outbound(self) -> None:
        """Dispatch outbound messages to the appropriate channel."""
        logger.info("Outbound dispatcher started")

        while True:
            try:
                msg = await asyncio.wait_for(self.bus.consume_outbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            if msg.channel not in self.channels:
                logger.warning(f"Unknown channel: {msg.channel}")
                continue
            queue = self._outbound_queues.setdefault(msg.channel, asyncio.Queue())
            await queue.put(msg)
            self._ensure_outbound_worker(msg.channel)

    def _ensure_outbound_worker(self, channel_name: str) -> None:
        """Ensure per-channel outbound worker exists."""
        worker = self._outbound_workers.get(channel_name)
        if worker is None or worker.done():
            queue = self._outbound_queues[channel_name]
            self._outbound_workers[channel_name] = asyncio.create_task(
                self._outbound_channel_worker(channel_name, queue)
            )

    async def deliver(self, channel: BaseChannel, msg: OutboundMessage) -> bool:
        """Send one message with the configured timeout. Failures are logged, never retried."""
        try:
            await asyncio.wait_for(channel.send(msg), timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.error(f"Sending to {channel.name}:{msg.chat_id} timed out after {self.send_timeout}s")
            return False
        except Exception as e:
            logger.error(f"Error sending to {channel.name}:{msg.chat_id}: {e}")
            return False
        logger.debug(f"Sent message to {channel.name}:{msg.chat_id}")
        return True

    async def _outbound_channel_worker(
        self,
        channel_name: str,
        queue: asyncio.Queue[OutboundMessage],
    ) -> None:
        """Send outbound messages serially for one channel."""
        channel = self.channels.get(channel_name)
        if not channel:
            return
        try:
            while not queue.empty():
                msg = queue.get_nowait()
                await self.deliver(channel, msg)
        finally:
            if self._outbound_workers.get(channel_name) is asyncio.current_task():
                self._outbound_workers.pop(channel_name, None)
            if queue.empty():
                self._outbound_queues.pop(channel_name, None)
            elif self._outbound_queues.get(channel_name) is queue:
                self._outbound_workers[channel_name] = asyncio.create_task(
                    self._outbound_channel_worker(channel_name, queue)
                )

    async def _stop_outbound_workers(self) -> None:
        """Cancel outbound workers."""
        workers = list(self._outbound_workers.values())
        self._outbound_workers.clear()
        self._outbound_queues.clear()
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)

    def get_channel(self, name: str) -> BaseChannel | None:
        """Get a channel by name."""
        return self.channels.get(name)

    @property
    def enabled_channels(self) -> list[str]:
        """Get list of enabled channel names."""
        return list(self.channels.keys())
