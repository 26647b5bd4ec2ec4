# app/schemas/user.py
from pydantic import BaseModel, Field
from typing import Optional, Literal
from datetime import datetime

Visibility = Literal["everyone", "contacts", "nobody"]

class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=50, description="Уникальное имя пользователя")
    password: str = Field(..., min_length=1, description="Пароль")
    email: Optional[str] = Field(None, max_length=255, description="Email (виден только владельцу)")
    phone_number: Optional[str] = Field(None, alias="phoneNumber", max_length=32, description="Телефон (виден только владельцу)")

    class Config:
        populate_by_name = True

class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class LoginResponse(BaseModel):
    token: str
    username: str

class MessageOnlyResponse(BaseModel):
    message: str

class SuccessResponse(BaseModel):
    success: bool = True
    message: str

class PrivacySettings(BaseModel):
    last_seen: Visibility = Field("everyone", alias="lastSeen")
    profile_photo: Visibility = Field("everyone", alias="profilePhoto")
    about: Visibility = "everyone"
    status: Visibility = "everyone"
    read_receipts: bool = Field(True, alias="readReceipts")

    class Config:
        populate_by_name = True

class PrivacySettingsUpdate(BaseModel):
    last_seen: Optional[Visibility] = Field(None, alias="lastSeen")
    profile_photo: Optional[Visibility] = Field(None, alias="profilePhoto")
    about: Optional[Visibility] = None
    status: Optional[Visibility] = None
    read_receipts: Optional[bool] = Field(None, alias="readReceipts")

    class Config:
        populate_by_name = True

class PrivacySettingsUpdateResponse(BaseModel):
    message: str
    privacy_settings: PrivacySettings = Field(..., alias="privacySettings")

    class Config:
        populate_by_name = True

class UserSettingsResponse(BaseModel):
    wallpaper: str
    email: str
    phone: str
    phone_number: str = Field(..., alias="phoneNumber")
    display_name: str = Field(..., alias="displayName")
    about: str
    profile_picture: str = Field(..., alias="profilePicture")
    privacy_settings: PrivacySettings = Field(..., alias="privacySettings")

    class Config:
        populate_by_name = True

class UpdateProfileRequest(BaseModel):
    display_name: Optional[str] = Field(None, alias="displayName", max_length=100)
    email: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, alias="phoneNumber", max_length=32)
    about: Optional[str] = Field(None, max_length=139)
    profile_picture: Optional[str] = Field(None, alias="profilePicture")

    class Config:
        populate_by_name = True

class WallpaperUpdate(BaseModel):
    wallpaper: str = Field(..., min_length=1, max_length=64)

class UserListItem(BaseModel):
    id: str = Field(..., alias="_id")
    username: str
    display_name: str = Field(..., alias="displayName")
    profile_picture: Optional[str] = Field(None, alias="profilePicture")
    about: Optional[str] = None
    is_online: Optional[bool] = Field(None, alias="isOnline")
    last_seen: Optional[datetime] = Field(None, alias="lastSeen")

    class Config:
        populate_by_name = True

class PublicProfileResponse(UserListItem):
    is_online: bool = Field(False, alias="isOnline")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    email: Optional[str] = None

class UpdateProfileResponse(BaseModel):
    message: str
    user: PublicProfileResponse

class BlockRequest(BaseModel):
    username: str = Field(..., min_length=1, description="Имя пользователя для блокировки")

class BlockedContactItem(BaseModel):
    username: str
    display_name: str = Field(..., alias="displayName")
    profile_picture: str = Field(..., alias="profilePicture")
    about: str

    class Config:
        populate_by_name = True

class BlockedContactsResponse(BaseModel):
    message: str
    blocked_contacts: list[BlockedContactItem] = Field(..., alias="blockedContacts")

    class Config:
        populate_by_name = True
