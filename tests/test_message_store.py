import asyncio

import pytest

from chatsync.exceptions import NotFoundError, ValidationError
from chatsync.models.message import Message, MessageType
from chatsync.repositories.message_repository import MessageRepository
from chatsync.services.message_store import MessageStore

KEY = "alice_bob"


def text(sender, receiver, body):
    return Message(sender_id=sender, receiver_id=receiver, text=body)


@pytest.fixture
def repo(store):
    return MessageRepository(store)


@pytest.fixture
def messages(repo, clock):
    return MessageStore(repo, clock=clock)


async def next_message(subscription):
    return await asyncio.wait_for(subscription.get(), 1)


async def test_append_stamps_and_strips(messages, clock):
    stored = await messages.append_message(KEY, text("alice", "bob", "  hi  "))
    assert stored.message_id
    assert stored.timestamp == clock.now
    assert stored.text == "hi"
    assert stored.is_read is False
    assert (await messages.get_message(KEY, stored.message_id)).text == "hi"


async def test_empty_messages_are_rejected(messages):
    with pytest.raises(ValidationError):
        await messages.append(KEY, text("alice", "bob", "   "))
    with pytest.raises(ValidationError):
        await messages.append(KEY, Message(sender_id="alice", receiver_id="bob", kind=MessageType.IMAGE))
    assert await messages.history(KEY) == []


async def test_timestamps_never_go_backwards(messages, clock):
    first = await messages.append_message(KEY, text("alice", "bob", "one"))
    clock.advance(-5000)
    second = await messages.append_message(KEY, text("bob", "alice", "two"))
    assert second.timestamp == first.timestamp
    assert [m.text for m in await messages.history(KEY)] == ["one", "two"]


async def test_subscription_delivers_history_then_live(messages):
    await messages.append(KEY, text("alice", "bob", "old"))
    subscription = messages.subscribe(KEY)
    await messages.append(KEY, text("bob", "alice", "new"))

    assert (await next_message(subscription)).text == "old"
    assert (await next_message(subscription)).text == "new"

    await messages.append(KEY, text("alice", "bob", "live"))
    assert (await next_message(subscription)).text == "live"
    subscription.cancel()


async def test_subscription_hands_out_each_message_once(messages, repo):
    subscription = messages.subscribe(KEY)
    stored = await messages.append_message(KEY, text("alice", "bob", "hi"))
    assert (await next_message(subscription)).message_id == stored.message_id

    # a read-flag change and a duplicate delivery of the same record
    await repo.mark_read(KEY, [stored.message_id])
    await repo.save_message(KEY, stored)
    await messages.append(KEY, text("bob", "alice", "reply"))

    assert (await next_message(subscription)).text == "reply"
    subscription.cancel()


async def test_cancel_only_stops_one_subscription(messages):
    first = messages.subscribe(KEY)
    second = messages.subscribe(KEY)
    first.cancel()
    assert first.cancelled
    await messages.append(KEY, text("alice", "bob", "still here"))

    assert [m async for m in first] == []
    assert (await next_message(second)).text == "still here"
    second.cancel()


async def test_resync_recovers_missed_writes(messages, repo, store):
    subscription = messages.subscribe(KEY)
    await messages.append(KEY, text("alice", "bob", "seen"))
    assert (await next_message(subscription)).text == "seen"

    # written behind the subscription's back, then a reconnect
    missed = Message(message_id="zz", sender_id="bob", receiver_id="alice", text="missed", timestamp=1)
    await store._write(repo.path(KEY, "zz"), missed.to_record())
    store._request_resync()

    assert (await next_message(subscription)).text == "missed"
    subscription.cancel()


async def test_mark_read_flips_only_the_readers_messages(messages):
    one = await messages.append_message(KEY, text("alice", "bob", "one"))
    await messages.append_message(KEY, text("bob", "alice", "mine"))
    two = await messages.append_message(KEY, text("alice", "bob", "two"))
    await messages.append_message(KEY, text("alice", "bob", "three"))

    assert await messages.mark_read(KEY, one.message_id, "bob") == 1
    assert await messages.mark_read(KEY, two.message_id, "bob") == 1
    assert await messages.mark_read(KEY, two.message_id, "bob") == 0

    state = {m.text: m.is_read for m in await messages.history(KEY)}
    assert state == {"one": True, "mine": False, "two": True, "three": False}
    assert await messages.unread_count(KEY, "bob") == 1


async def test_mark_read_unknown_message(messages):
    with pytest.raises(NotFoundError):
        await messages.mark_read(KEY, "nope", "bob")
