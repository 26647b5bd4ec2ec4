# tests/test_websocket.py
import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import auth_headers, login, send_message, set_privacy


def ws_url(client, username):
    return f"/ws?token={login(client, username)}"


def test_rejects_invalid_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws?token=bad") as websocket:
            websocket.receive_json()

    assert exc_info.value.code == 4001


def test_presence_online_then_offline(client):
    auth_headers(client, "alice")
    bob = auth_headers(client, "bob")

    with client.websocket_connect(ws_url(client, "alice")) as websocket:
        status_event = websocket.receive_json()
        assert status_event["type"] == "user-status"
        assert status_event["username"] == "alice"
        assert status_event["isOnline"] is True

        profile = client.get("/api/user-public-profile/alice", headers=bob).json()
        assert profile["isOnline"] is True

        websocket.send_json({"type": "ping"})
        assert websocket.receive_json()["type"] == "pong"

    profile = client.get("/api/user-public-profile/alice", headers=bob).json()
    assert profile["isOnline"] is False
    assert profile["lastSeen"] is not None


def test_presence_respects_last_seen_privacy(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    set_privacy(client, alice, lastSeen="contacts")

    with client.websocket_connect(ws_url(client, "alice")) as websocket:
        websocket.receive_json()

        assert client.get("/api/user-public-profile/alice", headers=bob).json()["isOnline"] is False

        send_message(client, bob, "alice", "hi")
        new_message = websocket.receive_json()
        assert new_message["type"] == "new_message"
        assert new_message["message"]["fromUsername"] == "bob"

        assert client.get("/api/user-public-profile/alice", headers=bob).json()["isOnline"] is True


def test_typing_is_relayed(client):
    auth_headers(client, "alice")
    auth_headers(client, "bob")

    with client.websocket_connect(ws_url(client, "bob")) as bob_ws:
        bob_ws.receive_json()

        with client.websocket_connect(ws_url(client, "alice")) as alice_ws:
            alice_ws.receive_json()
            assert bob_ws.receive_json()["username"] == "alice"

            alice_ws.send_json({"type": "typing", "toUsername": "bob"})
            typing = bob_ws.receive_json()

            assert typing["type"] == "typing"
            assert typing["fromUsername"] == "alice"
            assert typing["isTyping"] is True


def test_read_receipts_setting_controls_notification(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    set_privacy(client, alice, readReceipts=False)

    with client.websocket_connect(ws_url(client, "bob")) as bob_ws:
        bob_ws.receive_json()

        send_message(client, bob, "alice", "one")
        client.post("/api/messages/bob/read", headers=alice)

        set_privacy(client, alice, readReceipts=True)
        send_message(client, bob, "alice", "two")
        client.post("/api/messages/bob/read", headers=alice)

        receipt = bob_ws.receive_json()
        assert receipt["type"] == "messages_read"
        assert receipt["readBy"] == "alice"
        assert receipt["count"] == 1


def test_group_message_and_typing_reach_other_members(client):
    alice = auth_headers(client, "alice")
    auth_headers(client, "bob")
    group = client.post("/api/groups/create", json={"name": "Team", "members": ["bob"]}, headers=alice).json()["group"]

    with client.websocket_connect(ws_url(client, "bob")) as bob_ws:
        assert bob_ws.receive_json()["type"] == "user-status"

        client.post(f"/api/groups/{group['_id']}/messages", json={"text": "standup"}, headers=alice)
        event = bob_ws.receive_json()
        assert event["type"] == "receive_group_message"
        assert event["message"]["groupId"] == group["_id"]
        assert event["message"]["text"] == "standup"

        with client.websocket_connect(ws_url(client, "alice")) as alice_ws:
            alice_ws.receive_json()
            assert bob_ws.receive_json()["username"] == "alice"

            alice_ws.send_json({"type": "group_typing", "groupId": group["_id"]})
            typing = bob_ws.receive_json()

            assert typing["type"] == "group_typing"
            assert typing["groupId"] == group["_id"]
            assert typing["fromUsername"] == "alice"
