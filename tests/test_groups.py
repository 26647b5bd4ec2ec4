# tests/test_groups.py
import uuid

from conftest import auth_headers, set_privacy


def create_group(client, headers, name="Team", members=()):
    response = client.post("/api/groups/create", json={"name": name, "members": list(members)}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["group"]


def send_group_message(client, headers, group_id, text="hi"):
    response = client.post(f"/api/groups/{group_id}/messages", json={"text": text}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_group_creator_is_admin(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")

    group = create_group(client, alice, members=["bob", "bob", "alice"])

    assert group["createdBy"] == "alice"
    assert group["admins"] == ["alice"]
    assert group["members"] == ["alice", "bob"]
    assert group["theme"] == "#00a884"
    assert [g["_id"] for g in client.get("/api/groups", headers=bob).json()] == [group["_id"]]


def test_create_group_with_unknown_member(client):
    alice = auth_headers(client, "alice")

    response = client.post("/api/groups/create", json={"name": "Team", "members": ["ghost"]}, headers=alice)

    assert response.status_code == 404


def test_group_details_filter_member_profiles(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob", email="bob@example.com")
    carol = auth_headers(client, "carol")
    set_privacy(client, bob, about="nobody")
    group = create_group(client, alice, members=["bob"])

    details = client.get(f"/api/groups/{group['_id']}", headers=alice).json()
    outsider = client.get(f"/api/groups/{group['_id']}", headers=carol)

    assert [m["username"] for m in details["memberDetails"]] == ["alice", "bob"]
    bob_details = details["memberDetails"][1]
    assert bob_details["about"] is None
    assert "email" not in bob_details
    assert outsider.status_code == 403
    assert client.get(f"/api/groups/{uuid.uuid4()}", headers=alice).status_code == 404


def test_only_admins_manage_members(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    auth_headers(client, "carol")
    group = create_group(client, alice, members=["bob"])

    forbidden = client.post(f"/api/groups/{group['_id']}/add-member", json={"username": "carol"}, headers=bob)
    added = client.post(f"/api/groups/{group['_id']}/add-member", json={"username": "carol"}, headers=alice)
    again = client.post(f"/api/groups/{group['_id']}/add-member", json={"username": "carol"}, headers=alice)

    assert forbidden.status_code == 403
    assert added.json()["members"] == ["alice", "bob", "carol"]
    assert again.json()["members"] == ["alice", "bob", "carol"]

    removed = client.post(f"/api/groups/{group['_id']}/remove-member", json={"username": "bob"}, headers=alice)
    assert removed.json()["members"] == ["alice", "carol"]
    assert client.get("/api/groups", headers=bob).json() == []


def test_leave_promotes_next_member_and_last_leave_deletes_group(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    group = create_group(client, alice, members=["bob"])
    send_group_message(client, bob, group["_id"])

    client.post(f"/api/groups/{group['_id']}/leave", headers=alice)
    remaining = client.get(f"/api/groups/{group['_id']}", headers=bob).json()
    assert remaining["members"] == ["bob"]
    assert remaining["admins"] == ["bob"]

    response = client.post(f"/api/groups/{group['_id']}/leave", headers=bob)
    assert response.json() == {"success": True, "message": "Left group successfully"}
    assert client.get(f"/api/groups/{group['_id']}", headers=bob).status_code == 404


def test_update_settings_admin_only(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    group = create_group(client, alice, members=["bob"])
    url = f"/api/groups/{group['_id']}/settings"

    forbidden = client.put(url, json={"name": "Renamed"}, headers=bob)
    bad_theme = client.put(url, json={"theme": "green"}, headers=alice)
    updated = client.put(url, json={"name": "Renamed", "theme": "#123abc"}, headers=alice).json()

    assert forbidden.status_code == 403
    assert bad_theme.status_code == 422
    assert updated["name"] == "Renamed"
    assert updated["theme"] == "#123abc"
    assert updated["description"] == ""


def test_group_messages_members_only(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    carol = auth_headers(client, "carol")
    group = create_group(client, alice, members=["bob"])

    send_group_message(client, alice, group["_id"], "1")
    message = send_group_message(client, bob, group["_id"], "2")
    outsider = client.post(f"/api/groups/{group['_id']}/messages", json={"text": "x"}, headers=carol)
    empty = client.post(f"/api/groups/{group['_id']}/messages", json={"text": "  "}, headers=alice)

    assert message["isGroup"] is True
    assert message["groupId"] == group["_id"]
    assert message["toUsername"] is None
    assert outsider.status_code == 403
    assert empty.status_code == 400
    assert [m["text"] for m in client.get(f"/api/groups/{group['_id']}/messages", headers=alice).json()] == ["1", "2"]


def test_delete_group_message_sender_only(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    group = create_group(client, alice, members=["bob"])
    message = send_group_message(client, bob, group["_id"], "oops")
    url = f"/api/groups/{group['_id']}/messages/{message['_id']}"

    forbidden = client.delete(url, headers=alice)
    deleted = client.delete(url, headers=bob)

    assert forbidden.status_code == 403
    assert forbidden.json()["detail"] == "You can only delete your own messages"
    assert deleted.json()["forEveryone"] is True
    assert client.get(f"/api/groups/{group['_id']}/messages", headers=alice).json() == []


def test_clear_group_chat_only_for_requester(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    group = create_group(client, alice, members=["bob"])
    send_group_message(client, alice, group["_id"], "1")

    response = client.delete(f"/api/groups/{group['_id']}/messages", headers=bob)
    send_group_message(client, alice, group["_id"], "2")

    assert response.json()["message"] == "Chat cleared successfully"
    assert [m["text"] for m in client.get(f"/api/groups/{group['_id']}/messages", headers=bob).json()] == ["2"]
    assert len(client.get(f"/api/groups/{group['_id']}/messages", headers=alice).json()) == 2


def test_group_message_edit_react_pin(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    group = create_group(client, alice, members=["bob"])
    message = send_group_message(client, alice, group["_id"], "draft")
    url = f"/api/groups/{group['_id']}/messages/{message['_id']}"

    assert client.patch(url, json={"text": "hijack"}, headers=bob).status_code == 403
    assert client.patch(url, json={"text": "   "}, headers=alice).status_code == 400
    edited = client.patch(url, json={"text": "final"}, headers=alice).json()
    assert edited["text"] == "final"
    assert [h["text"] for h in edited["editHistory"]] == ["draft"]

    reacted = client.post(f"{url}/react", json={"emoji": "👍"}, headers=bob).json()
    assert [(r["username"], r["emoji"]) for r in reacted["reactions"]] == [("bob", "👍")]

    assert client.post(f"{url}/star", headers=bob).json()["starredBy"] == ["bob"]

    pinned = client.post(f"{url}/pin", headers=bob).json()
    assert pinned["pinnedBy"] == "bob"
    assert [m["_id"] for m in client.get(f"/api/groups/{group['_id']}/pinned", headers=alice).json()] == [message["_id"]]


def test_delete_group_admin_only(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    group = create_group(client, alice, members=["bob"])
    send_group_message(client, bob, group["_id"])

    forbidden = client.delete(f"/api/groups/{group['_id']}", headers=bob)
    deleted = client.delete(f"/api/groups/{group['_id']}", headers=alice)

    assert forbidden.status_code == 403
    assert deleted.json()["success"] is True
    assert client.get("/api/groups", headers=bob).json() == []
