# app/models/__init__.py
from app.models.user import User, BlockedContact
from app.models.message import Message
from app.models.group import Group, GroupMember, GroupMessage

__all__ = ["User", "BlockedContact", "Message", "Group", "GroupMember", "GroupMessage"]
