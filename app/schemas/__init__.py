from app.schemas.user import (
    RegisterRequest,
    LoginRequest,
    LoginResponse,
    MessageOnlyResponse,
    SuccessResponse,
    PrivacySettings,
    PrivacySettingsUpdate,
    PrivacySettingsUpdateResponse,
    UserSettingsResponse,
    UpdateProfileRequest,
    UpdateProfileResponse,
    WallpaperUpdate,
    UserListItem,
    PublicProfileResponse,
    BlockRequest,
    BlockedContactItem,
    BlockedContactsResponse
)
from app.schemas.message import (
    MessageCreate,
    MessageEdit,
    ReactionRequest,
    MessageResponse,
    MarkReadResponse,
    DeleteMessageResponse
)
from app.schemas.group import (
    GroupCreate,
    GroupMemberRequest,
    GroupSettingsUpdate,
    GroupMessageCreate,
    GroupResponse,
    GroupDetailResponse,
    GroupCreateResponse
)

__all__ = [
    "RegisterRequest", "LoginRequest", "LoginResponse", "MessageOnlyResponse",
    "SuccessResponse", "PrivacySettings", "PrivacySettingsUpdate",
    "PrivacySettingsUpdateResponse", "UserSettingsResponse", "UpdateProfileRequest",
    "UpdateProfileResponse", "WallpaperUpdate", "UserListItem", "PublicProfileResponse",
    "BlockRequest", "BlockedContactItem", "BlockedContactsResponse",
    "MessageCreate", "MessageEdit", "ReactionRequest", "MessageResponse",
    "MarkReadResponse", "DeleteMessageResponse",
    "GroupCreate", "GroupMemberRequest", "GroupSettingsUpdate", "GroupMessageCreate",
    "GroupResponse", "GroupDetailResponse", "GroupCreateResponse"
]
