# app/schemas/group.py
from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import datetime

from app.models.group import Group
from app.schemas.user import UserListItem

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Название группы")
    description: str = Field("", max_length=500)
    members: List[str] = Field(default_factory=list, description="Участники кроме создателя")
    profile_picture: str = Field("", alias="profilePicture")

    class Config:
        populate_by_name = True

class GroupMemberRequest(BaseModel):
    username: str = Field(..., min_length=1)

class GroupSettingsUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    profile_picture: Optional[str] = Field(None, alias="profilePicture")
    theme: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")

    class Config:
        populate_by_name = True

class GroupMessageCreate(BaseModel):
    text: Optional[str] = Field(None, description="Текст сообщения")
    type: Literal["text", "image", "file", "gif", "audio"] = "text"
    file_url: Optional[str] = Field(None, alias="fileUrl")
    file_name: Optional[str] = Field(None, alias="fileName")

    class Config:
        populate_by_name = True

class GroupResponse(BaseModel):
    id: str = Field(..., alias="_id")
    name: str
    description: str = ""
    profile_picture: str = Field("", alias="profilePicture")
    theme: str
    created_by: str = Field(..., alias="createdBy")
    admins: List[str] = Field(default_factory=list)
    members: List[str] = Field(default_factory=list)
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_group(cls, group: Group) -> "GroupResponse":
        return cls(
            id=str(group.group_id),
            name=group.name,
            description=group.description,
            profile_picture=group.profile_picture,
            theme=group.theme,
            created_by=group.created_by,
            admins=group.admin_usernames,
            members=group.member_usernames,
            created_at=group.created_at,
        )

    def to_event(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

class GroupDetailResponse(GroupResponse):
    # Профили участников проходят через фильтр приватности
    member_details: List[UserListItem] = Field(default_factory=list, alias="memberDetails")

class GroupCreateResponse(BaseModel):
    success: bool = True
    group: GroupResponse
