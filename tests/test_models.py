from chatsync.models.group import Group
from chatsync.models.message import Message, MessageType
from chatsync.models.notification import Notification
from chatsync.models.user import User


def test_user_defaults_for_missing_and_null_fields():
    user = User.from_record({"email": "a@example.com", "displayName": None}, uid="alice")
    assert user.uid == "alice"
    assert user.display_name == ""
    assert user.is_online is False
    assert user.last_seen == 0
    assert user.friends == set()


def test_friends_decode_from_list_and_map():
    assert User.from_record({"friends": ["bob", "carol"]}).friends == {"bob", "carol"}
    assert User.from_record({"friends": {"-k1": "bob", "-k2": "carol"}}).friends == {"bob", "carol"}


def test_malformed_friends_become_empty():
    assert User.from_record({"friends": "bob"}).friends == set()
    assert User.from_record({"friends": 42}).friends == set()


def test_invalid_field_is_reset_to_default():
    user = User.from_record({"lastSeen": "yesterday", "displayName": "Alice"})
    assert user.last_seen == 0
    assert user.display_name == "Alice"


def test_message_wire_names():
    message = Message(message_id="m1", sender_id="alice", receiver_id="bob", text="hi", timestamp=5)
    record = message.to_record()
    assert record["message"] == "hi"
    assert record["type"] == "text"
    assert record["senderId"] == "alice"
    assert record["isRead"] is False


def test_unknown_message_type_reads_as_text():
    message = Message.from_record({"message": "hi", "type": "sticker"})
    assert message.kind is MessageType.TEXT
    assert Message.from_record({"imageUrl": "u", "type": "image"}).kind is MessageType.IMAGE


def test_group_drops_admins_outside_members():
    group = Group.from_record({"members": ["alice"], "admins": ["alice", "mallory"]})
    assert group.admins == ["alice"]
    assert group.member_count == 1


def test_non_dict_record_gives_defaults():
    notification = Notification.from_record("garbage")
    assert notification.type == ""
    assert notification.icon == "🔔"
