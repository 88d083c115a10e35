"""Telegram channel implementation using python-telegram-bot."""

from __future__ import annotations

import asyncio
import re

from loguru import logger
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters
from telegram.request import HTTPXRequest

from geminirelay.bus.events import Attachment, MessageKind, OutboundMessage
from geminirelay.bus.queue import MessageBus
from geminirelay.channels.base import BaseChannel
from geminirelay.config.schema import TelegramConfig

TELEGRAM_MAX_MESSAGE_CHARS = 4000


def _split_message(content: str, max_len: int = TELEGRAM_MAX_MESSAGE_CHARS) -> list[str]:
    """Split content into chunks within max_len, preferring line breaks."""
    if len(content) <= max_len:
        return [content]
    chunks: list[str] = []
    while content:
        if len(content) <= max_len:
            chunks.append(content)
            break
        cut = content[:max_len]
        pos = cut.rfind("\n")
        if pos <= 0:
            pos = cut.rfind(" ")
        if pos <= 0:
            pos = max_len
        chunks.append(content[:pos])
        content = content[pos:].lstrip()
    return chunks


def _markdown_to_telegram_html(text: str) -> str:
    """Render the small markdown subset Gemini uses as Telegram HTML."""
    if not text:
        return ""

    blocks: list[str] = []

    def _stash(m: re.Match) -> str:
        blocks.append(m.group(1))
        return f"\x00{len(blocks) - 1}\x00"

    text = re.sub(r"```[\w-]*\n?([\s\S]*?)```", _stash, text)
    code_count = len(blocks)
    text = re.sub(r"`([^`\n]+)`", _stash, text)

    text = text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
    text = re.sub(r"^#{1,6}\s+(.+)$", r"<b>\1</b>", text, flags=re.MULTILINE)
    text = re.sub(r"\*\*(.+?)\*\*", r"<b>\1</b>", text)
    text = re.sub(r"(?<![\w*])\*(?!\s)([^*\n]+?)\*(?![\w*])", r"<i>\1</i>", text)
    text = re.sub(r"^\s*[-*]\s+", "• ", text, flags=re.MULTILINE)

    for i, raw in enumerate(blocks):
        escaped = raw.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")
        tag = f"<pre>{escaped}</pre>" if i < code_count else f"<code>{escaped}</code>"
        text = text.replace(f"\x00{i}\x00", tag)
    return text


class TelegramChannel(BaseChannel):
    """
    Telegram channel using long polling.

    Commands are delivered as plain messages so the dispatcher owns all
    command handling; only /start is answered here.
    """

    name = "telegram"

    def __init__(self, config: TelegramConfig, bus: MessageBus):
        super().__init__(config, bus)
        self.config: TelegramConfig = config
        self._app: Application | None = None
        self._bot_id: int | None = None
        self._typing_tasks: dict[str, asyncio.Task] = {}  # chat_id -> typing loop task

    async def start(self) -> None:
        """Start the Telegram bot with long polling."""
        if not self.config.token:
            logger.error("Telegram bot token not configured")
            return

        self._running = True

        req = HTTPXRequest(connection_pool_size=16, pool_timeout=5.0, connect_timeout=30.0, read_timeout=30.0)
        builder = Application.builder().token(self.config.token).request(req).get_updates_request(req)
        if self.config.proxy:
            builder = builder.proxy(self.config.proxy).get_updates_proxy(self.config.proxy)
        self._app = builder.build()
        self._app.add_error_handler(self._on_error)

        self._app.add_handler(CommandHandler("start", self._on_start))
        self._app.add_handler(
            MessageHandler(filters.TEXT | filters.PHOTO | filters.Document.ALL, self._on_message)
        )

        logger.info("Starting Telegram bot (polling mode)...")
        await self._app.initialize()
        await self._app.start()

        bot_info = await self._app.bot.get_me()
        self._bot_id = bot_info.id
        logger.info(f"Telegram bot @{bot_info.username} connected")

        await self._app.updater.start_polling(
            allowed_updates=["message"],
            drop_pending_updates=True,
        )

        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        self._running = False

        for chat_id in list(self._typing_tasks):
            self._stop_typing(chat_id)

        if self._app:
            logger.info("Stopping Telegram bot...")
            await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
            self._app = None

    async def download(self, attachment: Attachment) -> bytes:
        if not self._app:
            raise RuntimeError("Telegram bot not running")
        file = await self._app.bot.get_file(attachment.file_id)
        data = await file.download_as_bytearray()
        return bytes(data)

    async def set_presence(self, chat_id: str, composing: bool) -> None:
        if composing:
            self._start_typing(chat_id)
        else:
            self._stop_typing(chat_id)

    async def send(self, msg: OutboundMessage) -> None:
        """Send a message through Telegram."""
        if not self._app:
            logger.warning("Telegram bot not running")
            return

        try:
            chat_id = int(msg.chat_id)
        except ValueError:
            logger.error(f"Invalid chat_id: {msg.chat_id}")
            return
        thread_id = (msg.metadata or {}).get("telegram", {}).get("message_thread_id")

        if msg.location:
            latitude, longitude = msg.location
            await self._app.bot.send_location(
                chat_id=chat_id,
                latitude=latitude,
                longitude=longitude,
                message_thread_id=thread_id,
            )

        for index, media_path in enumerate(msg.media or []):
            caption = msg.content if index == 0 and msg.content else None
            try:
                with open(media_path, "rb") as f:
                    await self._app.bot.send_photo(
                        chat_id=chat_id,
                        photo=f,
                        caption=caption,
                        message_thread_id=thread_id,
                    )
            except Exception as e:
                filename = media_path.rsplit("/", 1)[-1]
                logger.error(f"Failed to send media {media_path}: {e}")
                await self._app.bot.send_message(
                    chat_id=chat_id,
                    text=f"[Failed to send: {filename}]",
                    message_thread_id=thread_id,
                )
        if msg.media:
            return

        if not msg.content:
            return
        for chunk in _split_message(msg.content):
            try:
                await self._app.bot.send_message(
                    chat_id=chat_id,
                    text=_markdown_to_telegram_html(chunk),
                    parse_mode="HTML",
                    message_thread_id=thread_id,
                )
            except Exception as e:
                logger.warning(f"HTML parse failed, falling back to plain text: {e}")
                await self._app.bot.send_message(
                    chat_id=chat_id,
                    text=chunk,
                    message_thread_id=thread_id,
                )

    async def _on_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /start command."""
        if not update.message or not update.effective_user:
            return
        user = update.effective_user
        await update.message.reply_text(
            f"👋 Hi {user.first_name}! Send me a message and I'll ask Gemini for you.\n"
            "In groups, start your message with /ask or /ai."
        )

    @staticmethod
    def _classify(message) -> tuple[MessageKind, Attachment | None]:
        """Map a Telegram message onto the inbound kinds the dispatcher understands."""
        if message.photo:
            photo = message.photo[-1]  # Largest size
            return MessageKind.IMAGE, Attachment(
                file_id=photo.file_id,
                mime_type="image/jpeg",
            )
        document = message.document
        if document:
            mime_type = document.mime_type or "application/octet-stream"
            kind = MessageKind.IMAGE if mime_type.startswith("image/") else MessageKind.DOCUMENT
            return kind, Attachment(
                file_id=document.file_id,
                mime_type=mime_type,
            )
        if message.text:
            return MessageKind.TEXT, None
        return MessageKind.OTHER, None

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle incoming messages (text, photos, documents)."""
        if not update.message or not update.effective_user:
            return

        message = update.message
        user = update.effective_user
        kind, attachment = self._classify(message)
        content = message.text or message.caption or ""

        await self._handle_message(
            sender_id=str(user.id),
            chat_id=str(message.chat_id),
            content=content,
            kind=kind,
            attachment=attachment,
            is_group=message.chat.type != "private",
            from_self=self._bot_id is not None and user.id == self._bot_id,
            author_name=user.full_name or user.username or None,
            metadata={
                "message_id": message.message_id,
                "username": user.username,
                "telegram": {
                    "message_thread_id": message.message_thread_id,
                },
            },
        )

    def _start_typing(self, chat_id: str) -> None:
        """Start sending 'typing...' indicator for a chat."""
        self._stop_typing(chat_id)
        self._typing_tasks[chat_id] = asyncio.create_task(self._typing_loop(chat_id))

    def _stop_typing(self, chat_id: str) -> None:
        """Stop the typing indicator for a chat."""
        task = self._typing_tasks.pop(chat_id, None)
        if task and not task.done():
            task.cancel()

    async def _typing_loop(self, chat_id: str) -> None:
        """Repeatedly send 'typing' action until cancelled."""
        try:
            while self._app:
                await self._app.bot.send_chat_action(chat_id=int(chat_id), action="typing")
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Typing indicator stopped for {chat_id}: {e}")

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Log polling / handler errors instead of silently swallowing them."""
        logger.error(f"Telegram error: {context.error}")
