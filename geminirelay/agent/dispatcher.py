"""Dispatcher: routes inbound chat messages to commands or Gemini queries."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import AsyncIterator

from loguru import logger

from geminirelay.agent.context import ContextBuilder
from geminirelay.bus.events import InboundMessage, MessageKind, OutboundMessage
from geminirelay.bus.queue import MessageBus
from geminirelay.channels.base import BaseChannel
from geminirelay.channels.manager import ChannelManager
from geminirelay.config.schema import StoreConfig
from geminirelay.i18n.catalog import SUPPORTED_LANGUAGES, MessageCatalog
from geminirelay.providers.base import NO_RESPONSE_TEXT, GenerationError
from geminirelay.providers.gemini_provider import GeminiProvider
from geminirelay.session.history import HistoryStore

TRIGGER_TOKENS = ("/ask", "/ai")
LANG_COMMAND = "/lang"
RESET_COMMANDS = ("/reset", "/newchat")
LOCATION_COMMAND = "/location"
MENU_COMMAND = "/menu"

SUPPORTED_DOCUMENT_TYPES = frozenset({"application/pdf"})
DEFAULT_DOCUMENT_PROMPT = "Please summarize this document."
UNSUPPORTED_DOCUMENT_NOTICE = "Sorry, I can only process PDF documents at the moment."
LOCATION_NOT_SET_NOTICE = "Sorry, the store location has not been set."
MENU_NOT_SET_NOTICE = "Sorry, the menu image has not been set."
MENU_UNREADABLE_NOTICE = "Sorry, the menu image could not be read."


class DispatchState(str, Enum):
    """Terminal state of one inbound event."""

    IGNORED = "ignored"
    COMMAND_HANDLED = "command_handled"
    QUERY_HANDLED = "query_handled"
    REJECTED = "rejected"


def command_token(text: str) -> str:
    """First word of ``text`` with any ``@botname`` suffix removed."""
    parts = text.split(maxsplit=1)
    if not parts:
        return ""
    token = parts[0]
    if token.startswith("/"):
        token = token.split("@", 1)[0]
    return token


def split_trigger(text: str) -> tuple[str | None, str]:
    """
    Separate a leading trigger token from the rest of the text.

    Returns ``(token, remainder)`` when ``text`` starts with ``/ask`` or
    ``/ai`` as a whole word, otherwise ``(None, text)``.
    """
    text = text.strip()
    token = command_token(text)
    if token not in TRIGGER_TOKENS:
        return None, text
    parts = text.split(maxsplit=1)
    return token, parts[1].strip() if len(parts) > 1 else ""


class Dispatcher:
    """
    Classifies each inbound message and handles it.

    It:
    1. Ignores its own messages and unsupported shapes
    2. Runs commands (/lang, /reset, /newchat, /location, /menu)
    3. Applies per-chat-type trigger rules
    4. Builds context and calls Gemini
    5. Replies and records the exchange in history

    Messages of one conversation are handled in order; different
    conversations are handled concurrently.
    """

    def __init__(
        self,
        bus: MessageBus,
        provider: GeminiProvider,
        history: HistoryStore,
        catalog: MessageCatalog,
        channels: ChannelManager,
        persona: str = "",
        store: StoreConfig | None = None,
    ):
        self.bus = bus
        self.provider = provider
        self.history = history
        self.catalog = catalog
        self.channels = channels
        self.store = store or StoreConfig()
        self.context = ContextBuilder(history, persona=persona)

        self._running = False
        self._queues: dict[str, asyncio.Queue[InboundMessage]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}

    async def run(self) -> None:
        """Consume the bus, fanning messages out to per-conversation workers."""
        self._running = True
        logger.info("Dispatcher started")

        try:
            while self._running:
                try:
                    msg = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                key = msg.conversation_key
                queue = self._queues.setdefault(key, asyncio.Queue())
                await queue.put(msg)
                self._ensure_worker(key)
        finally:
            await self._shutdown_workers()

    def stop(self) -> None:
        self._running = False
        logger.info("Dispatcher stopping")

    def _ensure_worker(self, key: str) -> None:
        worker = self._workers.get(key)
        if worker is None or worker.done():
            self._workers[key] = asyncio.create_task(self._worker(key, self._queues[key]))

    async def _worker(self, key: str, queue: asyncio.Queue[InboundMessage]) -> None:
        """Process one conversation queue serially."""
        try:
            while not queue.empty():
                msg = queue.get_nowait()
                await self._process_inbound_message(msg, key)
        finally:
            if self._workers.get(key) is asyncio.current_task():
                self._workers.pop(key, None)
            if queue.empty():
                self._queues.pop(key, None)
            elif self._running and self._queues.get(key) is queue:
                self._workers[key] = asyncio.create_task(self._worker(key, queue))

    async def _process_inbound_message(self, msg: InboundMessage, key: str) -> None:
        try:
            await self.dispatch(msg, conversation_key=key)
        except Exception as e:
            logger.exception(f"Error processing message from {msg.channel}:{msg.sender_id}: {e}")
            lang = await asyncio.to_thread(self.history.get_language, msg.sender_id)
            await self._reply(msg, self.catalog.localize(lang, "error_gemini"))

    async def _shutdown_workers(self) -> None:
        workers = list(self._workers.values())
        self._workers.clear()
        self._queues.clear()
        for worker in workers:
            worker.cancel()
        if workers:
            await asyncio.gather(*workers, return_exceptions=True)

    async def dispatch(
        self,
        msg: InboundMessage,
        conversation_key: str | None = None,
    ) -> DispatchState:
        """
        Handle a single inbound message.

        Args:
            msg: The inbound message.
            conversation_key: Precomputed history key; derived from ``msg`` when omitted.

        Returns:
            The terminal state reached.
        """
        if msg.from_self:
            logger.debug("Message is from me, ignoring")
            return DispatchState.IGNORED
        if msg.kind is MessageKind.OTHER:
            return DispatchState.IGNORED
        if msg.kind in (MessageKind.IMAGE, MessageKind.DOCUMENT) and msg.attachment is None:
            logger.warning(f"{msg.kind.value} message from {msg.sender_id} without attachment, ignoring")
            return DispatchState.IGNORED

        key = conversation_key or msg.conversation_key
        lang = await asyncio.to_thread(self.history.get_language, msg.sender_id)
        author = (msg.author_name or msg.sender_id) if msg.is_group else None
        text = (msg.content or "").strip()

        preview = text[:80] + "..." if len(text) > 80 else text
        logger.info(f"Processing {msg.kind.value} from {msg.channel}:{msg.sender_id} ({key}): {preview}")

        if msg.kind is MessageKind.IMAGE:
            await self._handle_image(msg, key, lang, author)
            return DispatchState.QUERY_HANDLED

        if msg.kind is MessageKind.DOCUMENT:
            if msg.attachment.mime_type not in SUPPORTED_DOCUMENT_TYPES:
                logger.info(
                    f"Unsupported document type {msg.attachment.mime_type} from {msg.sender_id}"
                )
                await self._reply(msg, UNSUPPORTED_DOCUMENT_NOTICE)
                return DispatchState.REJECTED
            trigger, remainder = split_trigger(text)
            if not msg.is_group or trigger:
                await self._handle_document(msg, key, lang, remainder, author)
                return DispatchState.QUERY_HANDLED
            # A group document without trigger is judged by its caption below.

        command = command_token(text)
        if command == LANG_COMMAND:
            await self._handle_lang(msg, text, lang)
            return DispatchState.COMMAND_HANDLED
        is_single_word = len(text.split()) == 1
        if is_single_word and command in RESET_COMMANDS:
            await self._handle_reset(msg, key, lang)
            return DispatchState.COMMAND_HANDLED
        if is_single_word and command == LOCATION_COMMAND:
            await self._send_location(msg)
            return DispatchState.COMMAND_HANDLED
        if is_single_word and command == MENU_COMMAND:
            await self._send_menu(msg)
            return DispatchState.COMMAND_HANDLED

        if not text:
            return DispatchState.IGNORED
        if msg.is_group:
            trigger, prompt = split_trigger(text)
            if trigger is None:
                logger.debug(f"Group message from {msg.sender_id} without trigger, ignoring")
                return DispatchState.IGNORED
            if not prompt:
                return DispatchState.IGNORED
        else:
            prompt = text

        await self._handle_query(msg, key, lang, prompt, author)
        return DispatchState.QUERY_HANDLED

    async def _handle_query(
        self,
        msg: InboundMessage,
        key: str,
        lang: str,
        prompt: str,
        author: str | None,
    ) -> None:
        logger.info(f"Forwarding message from {msg.sender_id} to Gemini")
        async with self._composing(msg):
            turns = await asyncio.to_thread(self.context.build_turns, key, prompt, author)
            try:
                response = await self.provider.generate(turns)
            except GenerationError as e:
                logger.error(f"Error from Gemini API for {msg.sender_id}: {e}")
                await self._reply(msg, self.catalog.localize(lang, "error_gemini"))
                return
            logger.info(f"Received response from Gemini for {msg.sender_id}")
            await self._reply(msg, response)
        await self._record_exchange(key, prompt, response, author)

    async def _handle_image(
        self,
        msg: InboundMessage,
        key: str,
        lang: str,
        author: str | None,
    ) -> None:
        _, caption = split_trigger(msg.content or "")
        async with self._composing(msg) as channel:
            data = await self._download(channel, msg)
            if data is None:
                return
            prompt = self.context.build_vision_prompt(caption, author_name=author)
            try:
                response = await self.provider.generate_with_attachment(
                    prompt, msg.attachment.mime_type, data
                )
            except GenerationError as e:
                logger.error(f"Error from Gemini Vision API for {msg.sender_id}: {e}")
                await self._reply(msg, self.catalog.localize(lang, "error_gemini"))
                return
            logger.info(f"Received vision response from Gemini for {msg.sender_id}")
            await self._reply(msg, response)
        await self._record_exchange(key, f"[User sent an image] {caption}".strip(), response, author)

    async def _handle_document(
        self,
        msg: InboundMessage,
        key: str,
        lang: str,
        caption: str,
        author: str | None,
    ) -> None:
        prompt = caption or DEFAULT_DOCUMENT_PROMPT
        async with self._composing(msg) as channel:
            data = await self._download(channel, msg)
            if data is None:
                return
            try:
                response = await self.provider.generate_with_document(
                    prompt, msg.attachment.mime_type, data
                )
            except GenerationError as e:
                logger.error(f"Error from Gemini Document API for {msg.sender_id}: {e}")
                await self._reply(msg, self.catalog.localize(lang, "error_gemini"))
                return
            logger.info(f"Received document response from Gemini for {msg.sender_id}")
            await self._reply(msg, response)
        await self._record_exchange(key, f"[User sent a PDF] {prompt}", response, author)

    async def _download(self, channel: BaseChannel | None, msg: InboundMessage) -> bytes | None:
        """Fetch attachment bytes; any failure ends the event without a reply."""
        if channel is None:
            logger.error(f"No channel '{msg.channel}' to download attachment from")
            return None
        try:
            data = await channel.download(msg.attachment)
        except Exception as e:
            logger.error(f"Failed to download {msg.kind.value} from {msg.sender_id}: {e}")
            return None
        if not data:
            logger.error(f"Downloaded {msg.kind.value} from {msg.sender_id} is empty")
            return None
        return data

    async def _handle_lang(self, msg: InboundMessage, text: str, lang: str) -> None:
        parts = text.split()
        if len(parts) < 2:
            await self._reply(msg, self.catalog.localize(lang, "lang_usage"))
            return

        target = parts[1].lower()
        if target not in SUPPORTED_LANGUAGES:
            await self._reply(msg, self.catalog.localize(lang, "lang_not_found", lang=target))
            return

        if not await asyncio.to_thread(self.history.set_language, msg.sender_id, target):
            return
        logger.info(f"User {msg.sender_id} language updated to {target}")
        await self._reply(msg, self.catalog.localize(target, "lang_updated"))

    async def _handle_reset(self, msg: InboundMessage, key: str, lang: str) -> None:
        deleted = await asyncio.to_thread(self.history.delete_all, key)
        message_id = "reset_success" if deleted else "reset_failed"
        await self._reply(msg, self.catalog.localize(lang, message_id))

    async def _send_location(self, msg: InboundMessage) -> None:
        if not self.store.has_location:
            logger.info("Store location is not configured")
            await self._reply(msg, LOCATION_NOT_SET_NOTICE)
            return
        await self.bus.publish_outbound(OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content="",
            location=(self.store.latitude, self.store.longitude),
            metadata=msg.metadata or {},
        ))

    async def _send_menu(self, msg: InboundMessage) -> None:
        path = self.store.menu_image_path
        if not path:
            logger.info("Menu image path is not configured")
            await self._reply(msg, MENU_NOT_SET_NOTICE)
            return
        if not Path(path).expanduser().is_file():
            logger.error(f"Menu image file {path} is not readable")
            await self._reply(msg, MENU_UNREADABLE_NOTICE)
            return
        await self.bus.publish_outbound(OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content="",
            media=[str(Path(path).expanduser())],
            metadata=msg.metadata or {},
        ))

    async def _record_exchange(self, key: str, user_text: str, response: str, author: str | None) -> None:
        """Append the user and model turns off the event loop; an empty model answer is not kept."""
        if response == NO_RESPONSE_TEXT:
            logger.info(f"Gemini returned no content for {key}; exchange not stored")
            return
        await asyncio.to_thread(self.history.append, key, "user", user_text, author)
        await asyncio.to_thread(self.history.append, key, "model", response)

    @asynccontextmanager
    async def _composing(self, msg: InboundMessage) -> AsyncIterator[BaseChannel | None]:
        """Show the composing indicator for the duration of the block, whatever the exit path."""
        channel = self.channels.get_channel(msg.channel)
        await self._set_presence(channel, msg.chat_id, True)
        try:
            yield channel
        finally:
            await self._set_presence(channel, msg.chat_id, False)

    @staticmethod
    async def _set_presence(channel: BaseChannel | None, chat_id: str, composing: bool) -> None:
        if channel is None:
            return
        try:
            await channel.set_presence(chat_id, composing)
        except Exception as e:
            logger.debug(f"Presence update failed for {chat_id}: {e}")

    async def _reply(self, msg: InboundMessage, content: str) -> None:
        await self.bus.publish_outbound(OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content=content,
            metadata=msg.metadata or {},
        ))
