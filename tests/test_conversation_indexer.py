import pytest

from chatsync.exceptions import InvalidConversationError, ValidationError
from chatsync.models.message import Message, MessageType
from chatsync.models.conversation import ConversationSummary
from chatsync.services.conversation_indexer import IMAGE_PLACEHOLDER, key_for, participants, preview_of


def test_key_is_symmetric():
    assert key_for("alice", "bob") == key_for("bob", "alice") == "alice_bob"


def test_key_rejects_self_conversation():
    with pytest.raises(InvalidConversationError):
        key_for("alice", "alice")


@pytest.mark.parametrize("bad", ["", "a/b", "a_b", None])
def test_key_rejects_invalid_ids(bad):
    with pytest.raises(ValidationError):
        key_for("alice", bad)


def test_preview():
    assert preview_of(Message(kind=MessageType.IMAGE, image_url="u")) == IMAGE_PLACEHOLDER
    assert preview_of(Message(text="x" * 300)) == "x" * 200


async def test_append_updates_both_summaries(core, friends):
    await core.chat.send_message("alice", "bob", "hello")
    await core.chat.send_message("alice", "bob", "again")

    mine = await core.indexer.get_summary("alice", "bob")
    theirs = await core.indexer.get_summary("bob", "alice")
    assert mine.unread_count == 0
    assert theirs.unread_count == 2
    assert mine.last_message == theirs.last_message == "again"
    assert theirs.peer_id == "alice"
    assert theirs.last_sender_id == "alice"


async def test_read_without_summary_creates_nothing(core, users):
    await core.indexer.on_messages_read("alice_bob", "bob")
    assert await core.indexer.get_summary("bob", "alice") is None


async def test_resync_rebuilds_from_log(core, friends):
    sent = await core.chat.send_message("bob", "alice", "hey")
    repo = core.indexer._conversations
    await repo.save_summary("alice", ConversationSummary(conversation_key="alice_bob", peer_id="bob", unread_count=99))

    await core.indexer.resync("alice_bob")

    summary = await core.indexer.get_summary("alice", "bob")
    assert summary.unread_count == 1
    assert summary.last_message_id == sent.message_id


async def test_summaries_listed_newest_first(core, friends, clock):
    await core.friends.add_friend("alice", "carol")
    await core.chat.send_message("alice", "bob", "first")
    clock.advance(1000)
    await core.chat.send_message("carol", "alice", "second")

    listed = await core.chat.list_conversations("alice")
    assert [s.peer_id for s in listed] == ["carol", "bob"]


def test_participants_invert_the_key():
    assert participants(key_for("bob", "alice")) == ("alice", "bob")
    with pytest.raises(InvalidConversationError):
        participants("groupid")
