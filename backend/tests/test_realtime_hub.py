import asyncio
from unittest.mock import AsyncMock

import pytest

from inksnap.crud.errors import InvalidRequest
from inksnap.realtime import bus
from inksnap.realtime.bus import INSTANCE_ID, RealtimeHub


def _message(conversation_id=1, sender="alice", receiver="bob", **extra):
    row = {
        "id": extra.pop("id", 10),
        "conversation_id": conversation_id,
        "sender_id": sender,
        "receiver_id": receiver,
        "content": "hi",
        "is_read": False,
    }
    row.update(extra)
    return row


def test_delivery_is_filtered_by_value_and_read_policy():
    hub = RealtimeHub()
    seen = {"bob": [], "carol": [], "other_conv": []}
    hub.subscribe("messages", "conversation_id", "1", "bob", callback=seen["bob"].append)
    hub.subscribe("messages", "conversation_id", 1, "carol", callback=seen["carol"].append)
    hub.subscribe("messages", "conversation_id", 2, "bob", callback=seen["other_conv"].append)

    delivered = asyncio.run(hub.publish("messages", _message()))

    assert delivered == 1
    assert [p["record"]["id"] for p in seen["bob"]] == [10]
    assert seen["bob"][0]["type"] == "INSERT"
    assert seen["bob"][0]["table"] == "messages"
    assert seen["carol"] == []
    assert seen["other_conv"] == []


def test_other_tables_do_not_match():
    hub = RealtimeHub()
    received = []
    hub.subscribe("messages", "conversation_id", 1, "bob", callback=received.append)
    asyncio.run(hub.publish("reviews", {"id": 1, "conversation_id": 1, "artist_id": "bob"}, "INSERT"))
    assert received == []


def test_subscribe_rejects_unknown_columns():
    hub = RealtimeHub()
    with pytest.raises(InvalidRequest):
        hub.subscribe("messages", "secret", 1, "bob")
    with pytest.raises(InvalidRequest):
        hub.subscribe("payments", "id", 1, "bob")
    assert len(hub) == 0


def test_async_callbacks_are_awaited_and_failures_isolated():
    hub = RealtimeHub()
    good = AsyncMock()

    def broken(payload):
        raise RuntimeError("boom")

    hub.subscribe("messages", "conversation_id", 1, "bob", callback=broken)
    hub.subscribe("messages", "conversation_id", 1, "alice", callback=good)

    delivered = asyncio.run(hub.publish("messages", _message()))

    assert delivered == 1
    good.assert_awaited_once()
    assert good.await_args.args[0]["record"]["content"] == "hi"


def test_queue_subscription_drops_when_full():
    hub = RealtimeHub()
    sub = hub.subscribe("messages", "conversation_id", 1, "bob", queue_size=1)

    async def run():
        await hub.publish("messages", _message(id=1))
        await hub.publish("messages", _message(id=2))

    asyncio.run(run())
    assert sub.queue.qsize() == 1
    assert sub.queue.get_nowait()["record"]["id"] == 1
    assert sub.dropped == 1


def test_unsubscribe_stops_delivery():
    hub = RealtimeHub()
    received = []
    sub = hub.subscribe("messages", "conversation_id", 1, "bob", callback=received.append)
    hub.unsubscribe(sub)
    hub.unsubscribe(sub)
    asyncio.run(hub.publish("messages", _message()))
    assert received == []
    assert len(hub) == 0


def test_bus_messages_from_this_instance_are_skipped():
    hub = RealtimeHub()
    received = []
    hub.subscribe("messages", "conversation_id", 1, "bob", callback=received.append)
    envelope = {"type": "INSERT", "table": "messages", "record": _message()}

    asyncio.run(hub.handle_bus_message("messages", dict(envelope, origin=INSTANCE_ID)))
    assert received == []

    asyncio.run(hub.handle_bus_message("messages", dict(envelope, origin="inst-remote")))
    assert len(received) == 1


def test_publish_forwards_to_bus_when_enabled(monkeypatch):
    fake_redis = AsyncMock()
    monkeypatch.setattr(bus.settings, "WS_BUS_ENABLED", True)
    monkeypatch.setattr(bus, "get_redis", lambda: fake_redis)

    asyncio.run(RealtimeHub().publish("messages", _message()))

    fake_redis.publish.assert_awaited_once()
    channel, body = fake_redis.publish.await_args.args
    assert channel == "rt-topic:messages"
    assert f'"origin":"{INSTANCE_ID}"' in body


def test_bus_failures_do_not_break_local_delivery(monkeypatch):
    fake_redis = AsyncMock()
    fake_redis.publish.side_effect = ConnectionError("redis down")
    monkeypatch.setattr(bus.settings, "WS_BUS_ENABLED", True)
    monkeypatch.setattr(bus, "get_redis", lambda: fake_redis)

    hub = RealtimeHub()
    received = []
    hub.subscribe("messages", "conversation_id", 1, "bob", callback=received.append)
    assert asyncio.run(hub.publish("messages", _message())) == 1
    assert len(received) == 1
