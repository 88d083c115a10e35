from types import SimpleNamespace

import pytest

from geminirelay.bus.events import Attachment, MessageKind, OutboundMessage
from geminirelay.bus.queue import MessageBus
from geminirelay.channels.telegram import (
    TelegramChannel,
    _markdown_to_telegram_html,
    _split_message,
)
from geminirelay.config.schema import TelegramConfig


class _DummyBot:
    def __init__(self, fail_html: bool = False):
        self.fail_html = fail_html
        self.message_calls = []
        self.photo_calls = []
        self.location_calls = []
        self.files = {}

    async def send_message(self, **kwargs):
        self.message_calls.append(kwargs)
        if self.fail_html and kwargs.get("parse_mode") == "HTML":
            raise RuntimeError("can't parse entities")
        return SimpleNamespace(message_id=1)

    async def send_photo(self, **kwargs):
        self.photo_calls.append({**kwargs, "photo": kwargs["photo"].read()})
        return SimpleNamespace(message_id=2)

    async def send_location(self, **kwargs):
        self.location_calls.append(kwargs)
        return SimpleNamespace(message_id=3)

    async def get_file(self, file_id):
        data = self.files[file_id]

        async def download_as_bytearray():
            return bytearray(data)

        return SimpleNamespace(download_as_bytearray=download_as_bytearray)


def _channel(bot=None) -> TelegramChannel:
    ch = TelegramChannel(config=TelegramConfig(token="123:abc"), bus=MessageBus())
    ch._app = SimpleNamespace(bot=bot or _DummyBot())
    ch._bot_id = 999
    return ch


def _update(chat_type="private", user_id=42, text="hi", **message_fields):
    user = SimpleNamespace(id=user_id, full_name="Ana Putri", username="ana", first_name="Ana")
    fields = {
        "text": text,
        "caption": None,
        "photo": [],
        "document": None,
        "chat_id": -100 if chat_type != "private" else user_id,
        "chat": SimpleNamespace(type=chat_type),
        "message_id": 55,
        "message_thread_id": None,
    }
    fields.update(message_fields)
    return SimpleNamespace(message=SimpleNamespace(**fields), effective_user=user)


def test_split_message_prefers_line_breaks():
    text = "a" * 10 + "\n" + "b" * 10
    assert _split_message(text, max_len=15) == ["a" * 10, "b" * 10]
    assert _split_message("short") == ["short"]


def test_markdown_to_html_escapes_and_formats():
    html = _markdown_to_telegram_html("**Menu** <today>\n- `latte` & *tea*")
    assert html == "<b>Menu</b> &lt;today&gt;\n• <code>latte</code> &amp; <i>tea</i>"


def test_markdown_code_block_is_escaped():
    assert _markdown_to_telegram_html("```py\nx<1\n```") == "<pre>x&lt;1\n</pre>"


def test_classify_photo_uses_largest_size():
    message = SimpleNamespace(
        photo=[SimpleNamespace(file_id="small"), SimpleNamespace(file_id="big")],
        document=None,
        text=None,
    )
    kind, attachment = TelegramChannel._classify(message)
    assert kind == MessageKind.IMAGE
    assert attachment.file_id == "big"
    assert attachment.mime_type == "image/jpeg"


def test_classify_documents_by_mime_type():
    pdf = SimpleNamespace(file_id="d1", mime_type="application/pdf", file_name="menu.pdf")
    png = SimpleNamespace(file_id="d2", mime_type="image/png", file_name="shot.png")
    unknown = SimpleNamespace(file_id="d3", mime_type=None, file_name="blob")

    assert TelegramChannel._classify(SimpleNamespace(photo=[], document=pdf, text=None))[0] == MessageKind.DOCUMENT
    assert TelegramChannel._classify(SimpleNamespace(photo=[], document=png, text=None))[0] == MessageKind.IMAGE
    kind, attachment = TelegramChannel._classify(SimpleNamespace(photo=[], document=unknown, text=None))
    assert kind == MessageKind.DOCUMENT
    assert attachment.mime_type == "application/octet-stream"


def test_classify_text_and_other():
    assert TelegramChannel._classify(SimpleNamespace(photo=[], document=None, text="hi"))[0] == MessageKind.TEXT
    assert TelegramChannel._classify(SimpleNamespace(photo=[], document=None, text=None))[0] == MessageKind.OTHER


@pytest.mark.asyncio
async def test_on_message_publishes_group_message():
    ch = _channel()

    await ch._on_message(_update(chat_type="supergroup", text="/ask hi", message_thread_id=7), None)

    msg = await ch.bus.consume_inbound()
    assert msg.channel == "telegram"
    assert msg.sender_id == "42"
    assert msg.chat_id == "-100"
    assert msg.is_group is True
    assert msg.from_self is False
    assert msg.author_name == "Ana Putri"
    assert msg.conversation_key == "-100"
    assert msg.metadata["telegram"]["message_thread_id"] == 7


@pytest.mark.asyncio
async def test_on_message_flags_own_messages_and_uses_caption():
    ch = _channel()
    doc = SimpleNamespace(file_id="d1", mime_type="application/pdf", file_name="a.pdf")

    await ch._on_message(_update(user_id=999, text=None, caption="summary", document=doc), None)

    msg = await ch.bus.consume_inbound()
    assert msg.from_self is True
    assert msg.is_group is False
    assert msg.kind == MessageKind.DOCUMENT
    assert msg.content == "summary"
    assert msg.conversation_key == "999"


@pytest.mark.asyncio
async def test_send_falls_back_to_plain_text_on_html_error():
    bot = _DummyBot(fail_html=True)
    ch = _channel(bot)

    await ch.send(OutboundMessage(channel="telegram", chat_id="42", content="**hi**"))

    assert [c.get("parse_mode") for c in bot.message_calls] == ["HTML", None]
    assert bot.message_calls[1]["text"] == "**hi**"


@pytest.mark.asyncio
async def test_send_uses_thread_id_from_metadata():
    bot = _DummyBot()
    ch = _channel(bot)

    await ch.send(OutboundMessage(
        channel="telegram",
        chat_id="-100",
        content="hello",
        metadata={"telegram": {"message_thread_id": 12}},
    ))

    assert bot.message_calls[0]["message_thread_id"] == 12
    assert bot.message_calls[0]["chat_id"] == -100


@pytest.mark.asyncio
async def test_send_location_and_photo(tmp_path):
    bot = _DummyBot()
    ch = _channel(bot)
    menu = tmp_path / "menu.jpg"
    menu.write_bytes(b"jpeg-bytes")

    await ch.send(OutboundMessage(channel="telegram", chat_id="42", content="", location=(-6.2, 106.8)))
    await ch.send(OutboundMessage(channel="telegram", chat_id="42", content="Our menu", media=[str(menu)]))

    assert bot.location_calls[0]["latitude"] == -6.2
    assert bot.photo_calls[0]["photo"] == b"jpeg-bytes"
    assert bot.photo_calls[0]["caption"] == "Our menu"
    assert bot.message_calls == []


@pytest.mark.asyncio
async def test_send_reports_unreadable_media():
    bot = _DummyBot()
    ch = _channel(bot)

    await ch.send(OutboundMessage(channel="telegram", chat_id="42", content="", media=["/nope/menu.jpg"]))

    assert bot.message_calls[0]["text"] == "[Failed to send: menu.jpg]"


@pytest.mark.asyncio
async def test_send_ignores_invalid_chat_id():
    bot = _DummyBot()
    ch = _channel(bot)

    await ch.send(OutboundMessage(channel="telegram", chat_id="not-a-number", content="hi"))

    assert bot.message_calls == []


@pytest.mark.asyncio
async def test_download_returns_bytes():
    bot = _DummyBot()
    bot.files["f1"] = b"%PDF-1.4"
    ch = _channel(bot)

    assert await ch.download(Attachment(file_id="f1", mime_type="application/pdf")) == b"%PDF-1.4"
