# app/api/routes/user.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.schemas.user import (
    UserSettingsResponse,
    UpdateProfileRequest,
    UpdateProfileResponse,
    WallpaperUpdate,
    MessageOnlyResponse,
    SuccessResponse,
    PrivacySettings,
    PrivacySettingsUpdate,
    PrivacySettingsUpdateResponse,
    PublicProfileResponse,
    UserListItem,
    BlockRequest,
    BlockedContactItem,
    BlockedContactsResponse
)
from app.crud.user import UserCRUD
from app.crud.message import MessageCRUD
from app.crud.group import GroupCRUD
from app.database import get_db
from app.models.user import User, DEFAULT_ABOUT
from app.api.deps import get_current_user
from app.services.privacy import (
    get_contact_set,
    filter_user_object,
    filter_user_list,
    format_public_profile
)

logger = logging.getLogger(__name__)

router = APIRouter()

def _blocked_item(user: User) -> BlockedContactItem:
    return BlockedContactItem(
        username=user.username,
        display_name=user.display_name,
        profile_picture=user.profile_picture,
        about=user.about
    )

@router.get(
    "/user-settings",
    response_model=UserSettingsResponse,
    summary="Настройки текущего пользователя"
)
async def get_user_settings(current_user: User = Depends(get_current_user)):
    return UserSettingsResponse(
        wallpaper=current_user.wallpaper or "default",
        email=current_user.email or "",
        phone=current_user.phone_number or "",
        phone_number=current_user.phone_number or "",
        display_name=current_user.display_name or "",
        about=current_user.about or DEFAULT_ABOUT,
        profile_picture=current_user.profile_picture or "",
        privacy_settings=PrivacySettings(**current_user.privacy_settings)
    )

@router.post(
    "/update-profile",
    response_model=UpdateProfileResponse,
    summary="Обновить профиль"
)
async def update_profile(
    profile_update: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Частичное обновление профиля: меняются только переданные поля
    (**displayName**, **email**, **phoneNumber**, **about**, **profilePicture**).
    """
    try:
        user_crud = UserCRUD(db)
        user = await user_crud.update_profile(current_user, profile_update.model_dump(exclude_unset=True))
        own_view = format_public_profile(filter_user_object(user.username, user, set()))
        return UpdateProfileResponse(message="Profile updated successfully", user=own_view)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Error updating profile: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error updating profile"
        )

@router.post(
    "/update-wallpaper",
    response_model=MessageOnlyResponse,
    summary="Обновить обои чата"
)
async def update_wallpaper(
    wallpaper_update: WallpaperUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        await UserCRUD(db).update_wallpaper(current_user, wallpaper_update.wallpaper)
        return MessageOnlyResponse(message="Wallpaper updated successfully")
    except Exception as e:
        logger.error(f"Error updating wallpaper: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error updating wallpaper"
        )

@router.get(
    "/privacy-settings",
    response_model=PrivacySettings,
    summary="Настройки приватности"
)
async def get_privacy_settings(current_user: User = Depends(get_current_user)):
    return PrivacySettings(**current_user.privacy_settings)

@router.post(
    "/privacy-settings",
    response_model=PrivacySettingsUpdateResponse,
    summary="Обновить настройки приватности"
)
async def update_privacy_settings(
    privacy_update: PrivacySettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Переданные поля сливаются с текущими настройками.
    Значения видимости: `everyone`, `contacts`, `nobody`.
    """
    try:
        user = await UserCRUD(db).update_privacy_settings(current_user, privacy_update)
        return PrivacySettingsUpdateResponse(
            message="Privacy settings updated successfully",
            privacy_settings=PrivacySettings(**user.privacy_settings)
        )
    except Exception as e:
        logger.error(f"Error updating privacy settings: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error updating privacy settings"
        )

@router.get(
    "/user-public-profile/{username}",
    response_model=PublicProfileResponse,
    summary="Публичный профиль пользователя"
)
async def get_public_profile(
    username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Профиль с учётом настроек приватности владельца.
    Телефон и email видны только самому владельцу.
    """
    try:
        target_user = await UserCRUD(db).get_user_by_username(username)
        if not target_user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        contact_set = await get_contact_set(db, current_user.username)
        filtered = filter_user_object(current_user.username, target_user, contact_set)
        return format_public_profile(filtered)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching public profile {username}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching public profile"
        )

@router.get(
    "/users",
    response_model=list[UserListItem],
    summary="Все пользователи кроме текущего"
)
async def get_users(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        users = await UserCRUD(db).list_users(exclude_username=current_user.username)
        contact_set = await get_contact_set(db, current_user.username)
        return filter_user_list(current_user.username, users, contact_set)
    except Exception as e:
        logger.error(f"Error fetching users: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching users"
        )

@router.get(
    "/all-users",
    response_model=list[UserListItem],
    summary="Поиск пользователей"
)
async def search_all_users(
    search: str = Query("", max_length=50, description="Часть username или displayName"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Поиск по частичному совпадению username или displayName (регистронезависимо),
    не более 50 результатов.
    """
    try:
        users = await UserCRUD(db).search_users(search.strip(), exclude_username=current_user.username, limit=50)
        contact_set = await get_contact_set(db, current_user.username)
        return filter_user_list(current_user.username, users, contact_set)
    except Exception as e:
        logger.error(f"Error searching users: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching users"
        )

@router.get(
    "/recent-chats",
    response_model=list[UserListItem],
    summary="Недавние собеседники"
)
async def get_recent_chats(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        partners = await MessageCRUD(db).get_partner_usernames(current_user.username)
        users = await UserCRUD(db).get_users_by_usernames(partners)

        # Порядок как у собеседников: самая свежая переписка первой
        position = {username: index for index, username in enumerate(partners)}
        users = sorted(users, key=lambda u: position[u.username])

        contact_set = await get_contact_set(db, current_user.username)
        logger.info(f"Recent chats for {current_user.username}: {len(users)}")
        return filter_user_list(current_user.username, users, contact_set)
    except Exception as e:
        logger.error(f"Error fetching recent chats: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching recent chats"
        )

@router.get(
    "/unread-counts",
    response_model=dict[str, int],
    summary="Количество непрочитанных по отправителям"
)
async def get_unread_counts(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        return await MessageCRUD(db).get_unread_counts(current_user.username)
    except Exception as e:
        logger.error(f"Error fetching unread counts: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching unread counts"
        )

@router.get(
    "/blocked-contacts",
    response_model=list[BlockedContactItem],
    summary="Заблокированные пользователи"
)
async def get_blocked_contacts(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        blocked = await UserCRUD(db).get_blocked_users(current_user)
        return [_blocked_item(user) for user in blocked]
    except Exception as e:
        logger.error(f"Error fetching blocked contacts: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching blocked contacts"
        )

@router.post(
    "/block-contact",
    response_model=BlockedContactsResponse,
    summary="Заблокировать пользователя"
)
async def block_contact(
    block_request: BlockRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        user_crud = UserCRUD(db)
        target = await user_crud.get_user_by_username(block_request.username)
        if not target:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Contact not found"
            )

        await user_crud.block_user(current_user, target)
        blocked = await user_crud.get_blocked_users(current_user)
        return BlockedContactsResponse(
            message="Contact blocked successfully",
            blocked_contacts=[_blocked_item(user) for user in blocked]
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error blocking contact: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error blocking contact"
        )

@router.post(
    "/unblock-contact",
    response_model=BlockedContactsResponse,
    summary="Разблокировать пользователя"
)
async def unblock_contact(
    block_request: BlockRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        user_crud = UserCRUD(db)
        target = await user_crud.get_user_by_username(block_request.username)
        if target:
            await user_crud.unblock_user(current_user, target)

        blocked = await user_crud.get_blocked_users(current_user)
        return BlockedContactsResponse(
            message="Contact unblocked successfully",
            blocked_contacts=[_blocked_item(user) for user in blocked]
        )
    except Exception as e:
        logger.error(f"Error unblocking contact: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error unblocking contact"
        )

@router.delete(
    "/delete-account",
    response_model=SuccessResponse,
    summary="Удалить аккаунт"
)
async def delete_account(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Удаляет аккаунт текущего пользователя вместе с личными сообщениями,
    его сообщениями в группах и блокировками. Из групп пользователь выходит:
    опустевшие группы удаляются, при необходимости назначается новый админ.
    """
    try:
        username = current_user.username
        left = await GroupCRUD(db).leave_all_groups(username)
        deleted = await MessageCRUD(db).delete_user_messages(username)
        await UserCRUD(db).delete_account(current_user)

        logger.info(f"{username} deleted account: left {left} groups, removed {deleted} messages")
        return SuccessResponse(message="Account deleted successfully")
    except Exception as e:
        logger.error(f"Error deleting account: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error deleting account"
        )
