# tests/test_privacy.py
import asyncio
from datetime import datetime

import pytest

from app import database
from app.crud.message import MessageCRUD
from app.schemas.message import MessageCreate
from app.services.privacy import (
    get_contact_set,
    filter_user_object,
    format_public_profile,
    format_user_list_item,
    filter_user_list
)

LAST_SEEN = datetime(2024, 5, 1, 12, 30)


def make_user(username="bob", **privacy):
    settings = {"lastSeen": "everyone", "profilePhoto": "everyone", "about": "everyone", "status": "everyone", "readReceipts": True}
    settings.update(privacy)
    return {
        "_id": f"id-{username}",
        "username": username,
        "displayName": username.title(),
        "profilePicture": f"https://cdn.example/{username}.png",
        "about": "Busy",
        "isOnline": True,
        "lastSeen": LAST_SEEN,
        "phoneNumber": "+15550001",
        "email": f"{username}@example.com",
        "privacySettings": settings,
    }


def test_self_view_keeps_private_fields():
    user = make_user(lastSeen="nobody", profilePhoto="nobody", about="nobody")
    filtered = filter_user_object("bob", user, set())

    assert filtered["phoneNumber"] == "+15550001"
    assert filtered["email"] == "bob@example.com"
    assert filtered["profilePicture"] == user["profilePicture"]
    assert filtered["about"] == "Busy"
    assert filtered["lastSeen"] == LAST_SEEN


@pytest.mark.parametrize("contact_set", [set(), {"bob"}])
def test_private_fields_hidden_from_others(contact_set):
    filtered = filter_user_object("alice", make_user(), contact_set)

    assert filtered["phoneNumber"] is None
    assert filtered["email"] is None


@pytest.mark.parametrize("contact_set", [set(), {"bob"}])
def test_last_seen_nobody_hides_presence(contact_set):
    filtered = filter_user_object("alice", make_user(lastSeen="nobody"), contact_set)

    assert filtered["lastSeen"] is None
    assert filtered["isOnline"] is False


def test_about_contacts_visible_only_to_contacts():
    user = make_user(about="contacts")

    assert filter_user_object("alice", user, {"bob"})["about"] == "Busy"
    assert filter_user_object("carol", user, set())["about"] is None


def test_profile_photo_contacts_and_nobody():
    assert filter_user_object("alice", make_user(profilePhoto="contacts"), {"bob"})["profilePicture"]
    assert filter_user_object("alice", make_user(profilePhoto="contacts"), set())["profilePicture"] is None
    assert filter_user_object("alice", make_user(profilePhoto="nobody"), {"bob"})["profilePicture"] is None


def test_everyone_settings_leave_public_fields():
    filtered = filter_user_object("alice", make_user(), set())

    assert filtered["about"] == "Busy"
    assert filtered["isOnline"] is True
    assert filtered["lastSeen"] == LAST_SEEN


def test_missing_settings_default_to_everyone():
    user = make_user()
    del user["privacySettings"]

    filtered = filter_user_object("alice", user, set())
    assert filtered["about"] == "Busy"
    assert filtered["email"] is None


@pytest.mark.parametrize("value", ["friends", "", "Everyone", 1])
@pytest.mark.parametrize("contact_set", [set(), {"bob"}])
def test_unknown_setting_behaves_like_nobody(value, contact_set):
    user = make_user(lastSeen=value, profilePhoto=value, about=value)

    filtered = filter_user_object("alice", user, contact_set)

    assert filtered["about"] is None
    assert filtered["profilePicture"] is None
    assert filtered["lastSeen"] is None
    assert filtered["isOnline"] is False


def test_filter_does_not_mutate_input():
    user = make_user(about="nobody")
    filter_user_object("alice", user, set())

    assert user["about"] == "Busy"
    assert user["email"] == "bob@example.com"


def test_public_profile_shape():
    profile = format_public_profile(filter_user_object("alice", make_user(), set()))

    assert set(profile) == {"_id", "username", "displayName", "profilePicture", "about", "isOnline", "lastSeen", "phoneNumber", "email"}
    assert profile["phoneNumber"] is None


def test_display_name_falls_back_to_username():
    user = make_user()
    user["displayName"] = ""
    user.pop("isOnline")

    assert format_user_list_item(user)["displayName"] == "bob"
    assert format_public_profile(user)["isOnline"] is False


def test_list_item_never_has_private_fields():
    items = filter_user_list("alice", [make_user("bob"), make_user("carol")], set())

    assert [item["username"] for item in items] == ["bob", "carol"]
    for item in items:
        assert "phoneNumber" not in item
        assert "email" not in item


def test_contact_set_from_both_directions(tmp_path):
    async def scenario():
        database.configure_engine(f"sqlite+aiosqlite:///{tmp_path / 'contacts.db'}")
        await database.init_models()
        try:
            async with database.AsyncSessionLocal() as db:
                crud = MessageCRUD(db)
                await crud.create_message("alice", MessageCreate(to_username="bob", text="hi"))
                await crud.create_message("carol", MessageCreate(to_username="alice", text="yo"))
                await crud.create_message("alice", MessageCreate(to_username="bob", text="again"))
                await crud.create_message("dave", MessageCreate(to_username="erin", text="other"))

                return (
                    await get_contact_set(db, "alice"),
                    await get_contact_set(db, "bob"),
                    await get_contact_set(db, "erin"),
                    await get_contact_set(db, "nobody")
                )
        finally:
            await database.dispose_engine()

    alice, bob, erin, stranger = asyncio.run(scenario())

    assert alice == {"bob", "carol"}
    assert bob == {"alice"}
    assert erin == {"dave"}
    assert stranger == set()
