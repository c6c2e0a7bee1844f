import pytest

import chat


@pytest.fixture
def instant_replies(monkeypatch):
    monkeypatch.setattr(chat.store, "auto_reply_delay", 0)


def test_post_message_gets_auto_reply(client, user, user_headers, instant_replies):
    res = client.post("/api/chat/messages", json={"message": "Where is my order?"}, headers=user_headers)

    assert res.status_code == 200
    sent = res.json()["data"]["message"]
    assert sent["user_id"] == str(user["_id"])
    assert sent["type"] == "user"
    assert sent["user_name"] == f"{user['first_name']} {user['last_name']}"

    messages = client.get("/api/chat/messages", headers=user_headers).json()["data"]["messages"]
    assert [m["type"] for m in messages] == ["user", "admin"]
    assert messages[1]["user_name"] == chat.SUPPORT_NAME
    assert messages[1]["message"] == chat.AUTO_REPLY_TEXT


def test_messages_are_private_to_each_user(client, make_user, auth_headers, user_headers, instant_replies):
    client.post("/api/chat/messages", json={"message": "hello"}, headers=user_headers)
    other = auth_headers(make_user())

    assert client.get("/api/chat/messages", headers=other).json()["data"]["messages"] == []


def test_empty_message_is_rejected(client, user_headers):
    res = client.post("/api/chat/messages", json={"message": ""}, headers=user_headers)
    assert res.status_code == 400


def test_chat_requires_login(client):
    assert client.get("/api/chat/messages").status_code == 401


def test_websocket_room_delivery(client):
    with client.websocket_connect("/api/chat/ws") as ws:
        ws.send_json({"event": "join-chat", "user_id": "abc"})
        ws.send_json({"event": "send-message", "data": {"user_id": "abc", "message": "hi"}})

        event = ws.receive_json()

    assert event == {"event": "new-message", "data": {"user_id": "abc", "message": "hi"}}
    assert chat.hub.subscribers(chat.room_for("abc")) == 0


def test_websocket_skips_malformed_frames(client):
    with client.websocket_connect("/api/chat/ws") as ws:
        ws.send_json(["join-chat", "abc"])
        ws.send_text("{not json")
        ws.send_json("join-chat")
        ws.send_json({"event": "send-message", "data": ["abc"]})
        ws.send_json({"event": "join-chat", "user_id": "abc"})
        ws.send_json({"event": "send-message", "data": {"user_id": "abc", "message": "still here"}})

        event = ws.receive_json()

    assert event["data"]["message"] == "still here"


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("closed")
        self.sent.append(data)


@pytest.mark.anyio
async def test_hub_drops_broken_sockets():
    hub = chat.ChatHub()
    good, broken = FakeSocket(), FakeSocket(fail=True)
    hub.join("user-1", good)
    hub.join("user-1", broken)
    hub.join("user-2", FakeSocket())

    delivered = await hub.publish("user-1", "new-message", {"message": "hi"})

    assert delivered == 1
    assert good.sent == [{"event": "new-message", "data": {"message": "hi"}}]
    assert hub.subscribers("user-1") == 1


@pytest.mark.anyio
async def test_store_publishes_message_and_reply():
    hub = chat.ChatHub()
    store = chat.ChatStore(hub, auto_reply_delay=0)
    socket = FakeSocket()
    hub.join(chat.room_for("u1"), socket)

    await store.post("u1", "Ada", "hello")

    assert [e["data"]["type"] for e in socket.sent] == ["user", "admin"]
    assert [m["id"] for m in store.messages_for("u1")] == [1, 2]
    assert store.messages_for("u2") == []


@pytest.fixture
def anyio_backend():
    return "asyncio"
