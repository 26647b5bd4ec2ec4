# app/schemas/message.py
from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

from app.models.message import Message
from app.models.group import GroupMessage

class MessageCreate(BaseModel):
    to_username: str = Field(..., alias="toUsername", min_length=1, description="Получатель")
    text: Optional[str] = Field(None, description="Текст сообщения")
    type: Literal["text", "image", "file", "gif", "audio"] = "text"
    file_url: Optional[str] = Field(None, alias="fileUrl")
    file_name: Optional[str] = Field(None, alias="fileName")

    class Config:
        populate_by_name = True

class MessageEdit(BaseModel):
    text: str = Field(..., min_length=1)

class ReactionRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=32)

class Reaction(BaseModel):
    emoji: str
    username: str
    timestamp: datetime

class EditHistoryEntry(BaseModel):
    text: Optional[str] = None
    edited_at: datetime = Field(..., alias="editedAt")

    class Config:
        populate_by_name = True

class MessageResponse(BaseModel):
    id: str = Field(..., alias="_id")
    from_username: str = Field(..., alias="fromUsername")
    to_username: Optional[str] = Field(None, alias="toUsername")
    group_id: Optional[str] = Field(None, alias="groupId")
    is_group: bool = Field(False, alias="isGroup")
    text: Optional[str] = None
    type: str = "text"
    file_url: Optional[str] = Field(None, alias="fileUrl")
    file_name: Optional[str] = Field(None, alias="fileName")
    timestamp: datetime
    read: bool = False
    starred_by: List[str] = Field(default_factory=list, alias="starredBy")
    reactions: List[Reaction] = Field(default_factory=list)
    edited: bool = False
    edited_at: Optional[datetime] = Field(None, alias="editedAt")
    edit_history: List[EditHistoryEntry] = Field(default_factory=list, alias="editHistory")
    pinned: bool = False
    pinned_at: Optional[datetime] = Field(None, alias="pinnedAt")
    pinned_by: Optional[str] = Field(None, alias="pinnedBy")
    deleted_for_everyone: bool = Field(False, alias="deletedForEveryone")

    class Config:
        populate_by_name = True

    @classmethod
    def from_message(cls, message: Message) -> "MessageResponse":
        return cls(
            id=str(message.message_id),
            from_username=message.from_username,
            to_username=message.to_username,
            text=message.text,
            type=message.type,
            file_url=message.file_url,
            file_name=message.file_name,
            timestamp=message.timestamp,
            read=message.read,
            starred_by=list(message.starred_by or []),
            reactions=list(message.reactions or []),
            edited=message.edited,
            edited_at=message.edited_at,
            edit_history=list(message.edit_history or []),
            pinned=message.pinned,
            pinned_at=message.pinned_at,
            pinned_by=message.pinned_by,
            deleted_for_everyone=message.deleted_for_everyone,
        )

    @classmethod
    def from_group_message(cls, message: GroupMessage) -> "MessageResponse":
        """Групповое сообщение: toUsername пустой, есть groupId и isGroup"""
        return cls(
            id=str(message.message_id),
            from_username=message.from_username,
            group_id=str(message.group_id),
            is_group=True,
            text=message.text,
            type=message.type,
            file_url=message.file_url,
            file_name=message.file_name,
            timestamp=message.timestamp,
            starred_by=list(message.starred_by or []),
            reactions=list(message.reactions or []),
            edited=message.edited,
            edited_at=message.edited_at,
            edit_history=list(message.edit_history or []),
            pinned=message.pinned,
            pinned_at=message.pinned_at,
            pinned_by=message.pinned_by,
            deleted_for_everyone=message.deleted_for_everyone,
        )

    def to_event(self) -> dict:
        """JSON-совместимое представление для отправки по WebSocket"""
        return self.model_dump(mode="json", by_alias=True)

class MarkReadResponse(BaseModel):
    message: str
    updated: int

class DeleteMessageResponse(BaseModel):
    message: str
    message_id: str = Field(..., alias="messageId")
    for_everyone: bool = Field(..., alias="forEveryone")

    class Config:
        populate_by_name = True
