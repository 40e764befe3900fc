import asyncio
import json

from chatsync.database.mongo import CHANGES_CHANNEL, MongoStore
from chatsync.database.store import ChangeEvent


class RecordingBus:

    enabled = True

    def __init__(self) -> None:
        self.published = []

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))


def make_store(bus):
    # bus handling never touches the database
    return MongoStore(None, bus)


async def test_remote_changes_reach_local_subscribers():
    store = make_store(RecordingBus())
    subscription = store.subscribe("messages/alice_bob")
    await store._on_bus_message(json.dumps({"origin": "other", "path": "messages/alice_bob/m1", "value": {"message": "hi"}}))

    event = await asyncio.wait_for(subscription.get(), 1)
    assert event.path == "messages/alice_bob/m1"
    assert event.value == {"message": "hi"}


async def test_own_and_malformed_events_are_ignored():
    store = make_store(RecordingBus())
    subscription = store.subscribe("users")
    await store._on_bus_message(json.dumps({"origin": store._origin, "path": "users/alice", "value": {}}))
    await store._on_bus_message("not json")
    await store._on_bus_message("[1, 2]")
    subscription.cancel()
    assert [e async for e in subscription] == []


async def test_reconnect_requests_resync():
    store = make_store(RecordingBus())
    subscription = store.subscribe("messages/alice_bob")
    await store._on_bus_reconnect()
    event = await asyncio.wait_for(subscription.get(), 1)
    assert event.resync


async def test_publish_carries_origin():
    bus = RecordingBus()
    store = make_store(bus)
    await store._publish(ChangeEvent("users/alice", {"isOnline": True}))
    channel, payload = bus.published[0]
    assert channel == CHANGES_CHANNEL
    assert payload == {"origin": store._origin, "path": "users/alice", "value": {"isOnline": True}}
