# app/services/privacy.py
"""
Фильтрация профиля пользователя по настройкам приватности.

Контакты не хранятся отдельно: два пользователя считаются контактами,
если между ними есть хотя бы одно личное сообщение (в любую сторону).
"""
from collections.abc import Mapping
from typing import Any
import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import SQLAlchemyError

from app.models.message import Message
from app.models.user import User

logger = logging.getLogger(__name__)

EVERYONE = "everyone"
CONTACTS = "contacts"
NOBODY = "nobody"
VISIBILITY_VALUES = (EVERYONE, CONTACTS, NOBODY)

# Поля, которые никогда не показываются никому, кроме владельца
PRIVATE_FIELDS = ("phoneNumber", "email")


async def get_contact_set(db: AsyncSession, username: str) -> set[str]:
    """Множество username, с которыми пользователь обменивался сообщениями"""
    try:
        sent_to = await db.scalars(
            select(Message.to_username).where(Message.from_username == username).distinct()
        )
        received_from = await db.scalars(
            select(Message.from_username).where(Message.to_username == username).distinct()
        )
        return set(sent_to.all()) | set(received_from.all())
    except SQLAlchemyError as e:
        logger.error(f"Error resolving contact set for {username}: {str(e)}")
        raise


def user_to_dict(user: User | Mapping[str, Any]) -> dict:
    """Привести пользователя к плоскому dict в формате API (camelCase)"""
    if isinstance(user, Mapping):
        return dict(user)
    return {
        "_id": str(user.user_id),
        "username": user.username,
        "displayName": user.display_name,
        "profilePicture": user.profile_picture,
        "about": user.about,
        "isOnline": user.is_online,
        "lastSeen": user.last_seen,
        "phoneNumber": user.phone_number,
        "email": user.email,
        "privacySettings": user.privacy_settings,
    }


def _is_hidden(setting: Any, is_contact: bool) -> bool:
    if setting is None or setting == EVERYONE:
        return False
    if setting == CONTACTS:
        return not is_contact
    # nobody и неизвестные значения
    return True


def filter_user_object(requester_username: str, user: User | Mapping[str, Any], contact_set: set[str]) -> dict:
    """
    Вернуть копию профиля user глазами requester_username.

    contact_set - контакты запрашивающего; отношение симметрично, поэтому
    проверка "user в контактах requester" равна "requester в контактах user".
    Исходный объект не изменяется.
    """
    user_obj = user_to_dict(user)

    if requester_username == user_obj.get("username"):
        return user_obj

    privacy = user_obj.get("privacySettings") or {}
    is_contact = user_obj.get("username") in contact_set

    filtered = dict(user_obj)

    if _is_hidden(privacy.get("profilePhoto"), is_contact):
        filtered["profilePicture"] = None

    if _is_hidden(privacy.get("about"), is_contact):
        filtered["about"] = None

    if _is_hidden(privacy.get("lastSeen"), is_contact):
        filtered["lastSeen"] = None
        filtered["isOnline"] = False

    for field in PRIVATE_FIELDS:
        filtered[field] = None

    return filtered


def format_public_profile(user: Mapping[str, Any]) -> dict:
    """Публичный профиль (уже отфильтрованный)"""
    _id = user.get("_id")
    return {
        "_id": str(_id) if _id is not None else None,
        "username": user.get("username"),
        "displayName": user.get("displayName") or user.get("username"),
        "profilePicture": user.get("profilePicture"),
        "about": user.get("about"),
        "isOnline": user.get("isOnline") or False,
        "lastSeen": user.get("lastSeen"),
        "phoneNumber": user.get("phoneNumber"),
        "email": user.get("email"),
    }


def format_user_list_item(user: Mapping[str, Any]) -> dict:
    """Элемент списка пользователей (уже отфильтрованный), без телефона и email"""
    _id = user.get("_id")
    return {
        "_id": str(_id) if _id is not None else None,
        "username": user.get("username"),
        "displayName": user.get("displayName") or user.get("username"),
        "profilePicture": user.get("profilePicture"),
        "about": user.get("about"),
        "isOnline": user.get("isOnline"),
        "lastSeen": user.get("lastSeen"),
    }


def filter_user_list(requester_username: str, users: list, contact_set: set[str]) -> list[dict]:
    return [
        format_user_list_item(filter_user_object(requester_username, user, contact_set))
        for user in users
    ]
