# tests/test_users.py
from conftest import auth_headers, send_message, set_privacy


def test_user_settings_and_profile_update(client):
    alice = auth_headers(client, "alice", email="alice@example.com")

    response = client.post("/api/update-profile", json={
        "displayName": "Alice A.",
        "about": "Available",
        "phoneNumber": "+15550001"
    }, headers=alice)

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["displayName"] == "Alice A."
    assert user["phoneNumber"] == "+15550001"
    assert user["email"] == "alice@example.com"

    settings = client.get("/api/user-settings", headers=alice).json()
    assert settings["about"] == "Available"
    assert settings["phone"] == "+15550001"
    assert settings["wallpaper"] == "default"
    assert settings["privacySettings"]["lastSeen"] == "everyone"


def test_update_wallpaper(client):
    alice = auth_headers(client, "alice")

    response = client.post("/api/update-wallpaper", json={"wallpaper": "dark"}, headers=alice)

    assert response.status_code == 200
    assert client.get("/api/user-settings", headers=alice).json()["wallpaper"] == "dark"


def test_privacy_settings_merge(client):
    alice = auth_headers(client, "alice")

    data = set_privacy(client, alice, about="contacts")
    assert data["privacySettings"]["about"] == "contacts"
    assert data["privacySettings"]["lastSeen"] == "everyone"

    set_privacy(client, alice, lastSeen="nobody", readReceipts=False)
    settings = client.get("/api/privacy-settings", headers=alice).json()
    assert settings == {
        "lastSeen": "nobody",
        "profilePhoto": "everyone",
        "about": "contacts",
        "status": "everyone",
        "readReceipts": False
    }


def test_privacy_settings_reject_unknown_value(client):
    alice = auth_headers(client, "alice")

    response = client.post("/api/privacy-settings", json={"about": "friends"}, headers=alice)

    assert response.status_code == 422


def test_public_profile_hides_phone_and_email_from_others(client):
    alice = auth_headers(client, "alice", email="alice@example.com", phoneNumber="+15550001")
    bob = auth_headers(client, "bob")

    own = client.get("/api/user-public-profile/alice", headers=alice).json()
    other = client.get("/api/user-public-profile/alice", headers=bob).json()

    assert own["email"] == "alice@example.com"
    assert own["phoneNumber"] == "+15550001"
    assert other["email"] is None
    assert other["phoneNumber"] is None
    assert other["displayName"] == "alice"


def test_public_profile_not_found(client):
    alice = auth_headers(client, "alice")

    response = client.get("/api/user-public-profile/ghost", headers=alice)

    assert response.status_code == 404


def test_about_visible_to_contacts_only(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    carol = auth_headers(client, "carol")
    set_privacy(client, alice, about="contacts")

    assert client.get("/api/user-public-profile/alice", headers=bob).json()["about"] is None

    send_message(client, alice, "bob")

    assert client.get("/api/user-public-profile/alice", headers=bob).json()["about"] == "Hey there! I am using WhatsApp-Lite"
    assert client.get("/api/user-public-profile/alice", headers=carol).json()["about"] is None


def test_last_seen_nobody_even_for_contacts(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    send_message(client, bob, "alice")
    set_privacy(client, alice, lastSeen="nobody")

    profile = client.get("/api/user-public-profile/alice", headers=bob).json()

    assert profile["lastSeen"] is None
    assert profile["isOnline"] is False


def test_users_list_is_sorted_filtered_and_excludes_self(client):
    carol = auth_headers(client, "carol")
    auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    set_privacy(client, bob, profilePhoto="nobody")
    client.post("/api/update-profile", json={"profilePicture": "bob.png"}, headers=bob)

    users = client.get("/api/users", headers=carol).json()

    assert [u["username"] for u in users] == ["alice", "bob"]
    bob_item = next(u for u in users if u["username"] == "bob")
    assert bob_item["profilePicture"] is None
    assert "email" not in bob_item
    assert "phoneNumber" not in bob_item


def test_all_users_search(client):
    alice = auth_headers(client, "alice")
    auth_headers(client, "bobby")
    robert = auth_headers(client, "robert")
    client.post("/api/update-profile", json={"displayName": "Bob Builder"}, headers=robert)
    auth_headers(client, "carol")

    found = client.get("/api/all-users", params={"search": "BOB"}, headers=alice).json()
    everyone = client.get("/api/all-users", headers=alice).json()

    assert sorted(u["username"] for u in found) == ["bobby", "robert"]
    assert "alice" not in [u["username"] for u in everyone]
    assert len(everyone) == 3


def test_recent_chats_most_recent_first(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    carol = auth_headers(client, "carol")
    auth_headers(client, "dave")

    send_message(client, alice, "bob")
    send_message(client, carol, "alice")

    chats = client.get("/api/recent-chats", headers=alice).json()

    assert [u["username"] for u in chats] == ["carol", "bob"]
    assert client.get("/api/recent-chats", headers=bob).json()[0]["username"] == "alice"


def test_unread_counts(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    carol = auth_headers(client, "carol")

    send_message(client, bob, "alice", "one")
    send_message(client, bob, "alice", "two")
    send_message(client, carol, "alice", "three")

    assert client.get("/api/unread-counts", headers=alice).json() == {"bob": 2, "carol": 1}

    client.post("/api/messages/bob/read", headers=alice)
    assert client.get("/api/unread-counts", headers=alice).json() == {"carol": 1}


def test_block_and_unblock(client):
    alice = auth_headers(client, "alice")
    auth_headers(client, "bob")

    blocked = client.post("/api/block-contact", json={"username": "bob"}, headers=alice)
    again = client.post("/api/block-contact", json={"username": "bob"}, headers=alice)

    assert blocked.status_code == 200
    assert [u["username"] for u in again.json()["blockedContacts"]] == ["bob"]
    assert [u["username"] for u in client.get("/api/blocked-contacts", headers=alice).json()] == ["bob"]

    unblocked = client.post("/api/unblock-contact", json={"username": "bob"}, headers=alice)
    assert unblocked.json()["blockedContacts"] == []


def test_block_unknown_user(client):
    alice = auth_headers(client, "alice")

    response = client.post("/api/block-contact", json={"username": "ghost"}, headers=alice)

    assert response.status_code == 404


def test_profile_null_fields_reset_to_defaults(client):
    alice = auth_headers(client, "alice", email="alice@example.com")
    client.post("/api/update-profile", json={"displayName": "Alice A.", "about": "Busy"}, headers=alice)

    response = client.post("/api/update-profile", json={
        "displayName": None,
        "about": None,
        "profilePicture": None,
        "email": None
    }, headers=alice)

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["displayName"] == "alice"
    assert user["about"] == "Hey there! I am using WhatsApp-Lite"
    assert user["profilePicture"] == ""
    assert user["email"] is None


def test_profile_email_taken_by_another_user(client):
    auth_headers(client, "alice", email="alice@example.com")
    bob = auth_headers(client, "bob", email="bob@example.com")

    taken = client.post("/api/update-profile", json={"email": "Alice@Example.com"}, headers=bob)
    own = client.post("/api/update-profile", json={"email": "bob@example.com"}, headers=bob)

    assert taken.status_code == 400
    assert taken.json()["detail"] == "Email already registered"
    assert own.status_code == 200


def test_all_users_search_treats_wildcards_literally(client):
    alice = auth_headers(client, "alice")
    auth_headers(client, "bob")
    auth_headers(client, "carol_x")

    assert client.get("/api/all-users", params={"search": "%"}, headers=alice).json() == []
    assert [u["username"] for u in client.get("/api/all-users", params={"search": "_"}, headers=alice).json()] == ["carol_x"]


def test_delete_account(client):
    alice = auth_headers(client, "alice")
    bob = auth_headers(client, "bob")
    send_message(client, alice, "bob", "bye")
    client.post("/api/block-contact", json={"username": "bob"}, headers=alice)
    shared = client.post("/api/groups/create", json={"name": "Shared", "members": ["bob"]}, headers=alice).json()["group"]
    solo = client.post("/api/groups/create", json={"name": "Solo"}, headers=alice).json()["group"]

    response = client.delete("/api/delete-account", headers=alice)

    assert response.json() == {"success": True, "message": "Account deleted successfully"}
    assert client.post("/api/login", json={"username": "alice", "password": "secret123"}).status_code == 401
    assert client.get("/api/messages/alice", headers=bob).json() == []
    assert client.get("/api/recent-chats", headers=bob).json() == []

    group = client.get(f"/api/groups/{shared['_id']}", headers=bob).json()
    assert group["members"] == ["bob"]
    assert group["admins"] == ["bob"]
    assert [g["_id"] for g in client.get("/api/groups", headers=bob).json()] == [shared["_id"]]
    assert client.get(f"/api/groups/{solo['_id']}", headers=bob).status_code == 404
