import pytest

from geminirelay.bus.events import InboundMessage, OutboundMessage
from geminirelay.bus.queue import MessageBus


@pytest.mark.asyncio
async def test_bus_round_trips_in_fifo_order():
    bus = MessageBus()

    await bus.publish_inbound(InboundMessage(channel="telegram", sender_id="1", chat_id="1", content="a"))
    await bus.publish_inbound(InboundMessage(channel="telegram", sender_id="1", chat_id="1", content="b"))
    await bus.publish_outbound(OutboundMessage(channel="telegram", chat_id="1", content="c"))

    assert (await bus.consume_inbound()).content == "a"
    assert (await bus.consume_inbound()).content == "b"
    assert (await bus.consume_outbound()).content == "c"
