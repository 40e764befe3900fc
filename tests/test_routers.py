import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from chatsync.container import build_core
from chatsync.database.memory import MemoryStore
from chatsync.main import create_app


def as_user(uid):
    return {"X-User-Id": uid}


@pytest.fixture
def client():
    core = build_core(MemoryStore())
    with TestClient(create_app(core=core)) as test_client:
        for uid in ("alice", "bob", "carol"):
            response = test_client.post(
                "/users",
                json={"email": f"{uid}@example.com", "display_name": uid.title()},
                headers=as_user(uid),
            )
            assert response.status_code == 200
        yield test_client


def befriend(client, a, b):
    response = client.post("/friends/add", json={"email": f"{b}@example.com"}, headers=as_user(a))
    assert response.status_code == 200


def test_identity_header_required(client):
    assert client.get("/users/me").status_code == 401


def test_error_mapping(client):
    duplicate = client.post("/users", json={"email": "alice@example.com", "display_name": "Again"}, headers=as_user("alice"))
    assert duplicate.status_code == 409
    assert duplicate.json()["error_code"] == "USER_EXISTS"

    stranger = client.post("/messages", json={"to": "carol", "content": "hi"}, headers=as_user("alice"))
    assert stranger.status_code == 403
    assert stranger.json()["error_code"] == "NOT_FRIENDS"

    missing = client.get("/presence/ghost")
    assert missing.status_code == 404

    self_friend = client.post("/friends/add", json={"email": "alice@example.com"}, headers=as_user("alice"))
    assert self_friend.status_code == 400


def test_message_round(client):
    befriend(client, "alice", "bob")
    sent = client.post("/messages", json={"to": "bob", "content": "hello"}, headers=as_user("alice"))
    assert sent.status_code == 200
    message_id = sent.json()["message"]["messageId"]

    conversations = client.get("/conversations", headers=as_user("bob")).json()["items"]
    assert conversations[0]["peerId"] == "alice"
    assert conversations[0]["unreadCount"] == 1

    history = client.get("/messages/alice", headers=as_user("bob")).json()["messages"]
    assert [m["message"] for m in history] == ["hello"]

    read = client.post("/messages/mark_read", json={"peer_id": "alice", "up_to_message_id": message_id}, headers=as_user("bob"))
    assert read.json() == {"updated": 1}
    assert client.get("/messages/unread/alice", headers=as_user("bob")).json() == {"count": 0}

    feed = client.get("/notifications", headers=as_user("bob")).json()
    assert feed["items"][0]["type"] == "message"
    assert feed["items"][0]["icon"] == "💬"
    assert feed["unread"] == 2


def test_friend_requests(client):
    assert client.post("/friends/request/bob", headers=as_user("alice")).status_code == 200
    requests = client.get("/friends/requests", headers=as_user("bob")).json()["requests"]
    assert [r["fromUserId"] for r in requests] == ["alice"]
    assert client.post("/friends/accept/alice", headers=as_user("bob")).status_code == 200
    friends = client.get("/friends/list", headers=as_user("alice")).json()["friends"]
    assert [f["uid"] for f in friends] == ["bob"]
    assert client.delete("/friends/bob", headers=as_user("alice")).status_code == 200
    assert client.delete("/friends/bob", headers=as_user("alice")).status_code == 409


def test_presence_routes(client):
    offline = client.post("/presence/offline", headers=as_user("carol")).json()
    assert offline["online"] is False
    assert offline["status_text"] == "Just now"
    assert client.post("/presence/online", headers=as_user("carol")).json()["status_text"] == "Online"


def test_groups_and_media(client):
    created = client.post("/groups", json={"name": "Crew", "member_ids": ["bob"]}, headers=as_user("alice")).json()["group"]
    group_id = created["groupId"]
    assert client.post(f"/groups/{group_id}/messages", json={"content": "yo"}, headers=as_user("bob")).status_code == 200
    assert client.get(f"/groups/{group_id}", headers=as_user("carol")).status_code == 403

    befriend(client, "alice", "bob")
    upload = client.post("/messages/image/upload?to=bob&filename=a.png", content=b"png-bytes", headers=as_user("alice"))
    url = upload.json()["message"]["imageUrl"]
    download = client.get(url)
    assert download.status_code == 200
    assert download.content == b"png-bytes"


def test_chat_socket(client):
    befriend(client, "alice", "bob")
    client.post("/messages", json={"to": "bob", "content": "before"}, headers=as_user("alice"))

    with client.websocket_connect("/messages/ws/alice", headers=as_user("bob")) as socket:
        assert socket.receive_json()["message"]["message"] == "before"
        socket.send_json({"type": "message", "content": "after"})
        frame = socket.receive_json()
        assert frame["type"] == "message"
        assert frame["message"]["message"] == "after"
        assert frame["message"]["senderId"] == "bob"


def test_chat_socket_refuses_strangers(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/messages/ws/carol", headers=as_user("alice")) as socket:
            socket.receive_json()


def test_user_lookup(client):
    found = client.get("/users/search", params={"email": "BOB@example.com"}, headers=as_user("alice"))
    assert found.json()["user"]["uid"] == "bob"
    assert client.get("/users/search", params={"email": "x@example.com"}, headers=as_user("alice")).status_code == 404

    profile = client.get("/users/bob", headers=as_user("alice")).json()["user"]
    assert profile["statusText"] == "Online"
    assert "friends" not in profile

    updated = client.patch("/users/me", json={"display_name": "Alice A."}, headers=as_user("alice"))
    assert updated.json()["user"]["displayName"] == "Alice A."


def test_group_members_and_socket(client):
    created = client.post("/groups", json={"name": "Crew", "member_ids": ["bob"]}, headers=as_user("alice")).json()["group"]
    group_id = created["groupId"]
    assert created["memberCount"] == 2

    members = client.get(f"/groups/{group_id}/members", headers=as_user("bob")).json()["members"]
    assert [m["uid"] for m in members] == ["alice", "bob"]
    assert members[1]["displayName"] == "Bob"
    assert all("friends" not in m for m in members)
    assert client.get(f"/groups/{group_id}/members", headers=as_user("carol")).status_code == 403

    client.post(f"/groups/{group_id}/messages", json={"content": "before"}, headers=as_user("alice"))
    with client.websocket_connect(f"/groups/ws/{group_id}", headers=as_user("bob")) as socket:
        assert socket.receive_json()["message"]["message"] == "before"
        socket.send_json({"type": "message", "content": "after"})
        frame = socket.receive_json()
        assert frame["type"] == "message"
        assert frame["message"]["message"] == "after"
        assert frame["message"]["senderId"] == "bob"

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(f"/groups/ws/{group_id}", headers=as_user("carol")) as socket:
            socket.receive_json()


def test_notification_socket(client):
    with client.websocket_connect("/notifications/ws", headers=as_user("carol")) as socket:
        assert client.post("/friends/request/carol", headers=as_user("alice")).status_code == 200
        frame = socket.receive_json()
        assert frame["type"] == "notification"
        notification = frame["notification"]
        assert notification["type"] == "friend_request"
        assert notification["icon"] == "🤝"

        socket.send_json({"type": "read", "id": notification["id"]})
        read = socket.receive_json()
        assert read["type"] == "read"
        assert read["notification"]["isRead"] is True
        assert read["unread"] == 0
