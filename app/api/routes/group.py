# app/api/routes/group.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid
import logging

from app.schemas.group import (
    GroupCreate,
    GroupMemberRequest,
    GroupSettingsUpdate,
    GroupMessageCreate,
    GroupResponse,
    GroupDetailResponse,
    GroupCreateResponse
)
from app.schemas.message import (
    MessageEdit,
    ReactionRequest,
    MessageResponse,
    DeleteMessageResponse
)
from app.schemas.user import SuccessResponse, UserListItem
from app.crud.group import GroupCRUD
from app.crud.message import MessageCRUD
from app.crud.user import UserCRUD
from app.database import get_db
from app.models.group import Group, GroupMessage
from app.models.user import User
from app.api.deps import get_current_user
from app.services.privacy import get_contact_set, filter_user_list
from app.websocket.manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()

async def get_member_group(group_id: uuid.UUID, user: User, group_crud: GroupCRUD) -> Group:
    """Группа, в которой состоит user (иначе 404/403)"""
    group = await group_crud.get_group(group_id)
    if not group:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Group not found"
        )
    if not group.is_member(user.username):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a member of this group"
        )
    return group

def require_admin(group: Group, user: User, detail: str) -> None:
    if not group.is_admin(user.username):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

async def get_group_message(group: Group, message_id: uuid.UUID, group_crud: GroupCRUD) -> GroupMessage:
    message = await group_crud.get_group_message(group.group_id, message_id)
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found"
        )
    return message

async def notify_members(usernames: list[str], event: dict, exclude: str | None = None):
    for username in usernames:
        if username != exclude:
            await manager.send_personal_message(event, username)

@router.post(
    "/groups/create",
    response_model=GroupCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Создать группу"
)
async def create_group(
    group_data: GroupCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Создать группу с названием **name** и участниками **members**.

    Создатель становится админом. Все участники получают событие `group_created`.
    """
    try:
        requested = [u for u in dict.fromkeys(group_data.members) if u != current_user.username]
        found = await UserCRUD(db).get_users_by_usernames(requested)
        missing = set(requested) - {u.username for u in found}
        if missing:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Users not found: {', '.join(sorted(missing))}"
            )

        group = await GroupCRUD(db).create_group(current_user.username, group_data)
        response = GroupResponse.from_group(group)

        await notify_members(group.member_usernames, {"type": "group_created", "group": response.to_event()})
        return GroupCreateResponse(group=response)

    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating group: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error creating group"
        )

@router.get(
    "/groups",
    response_model=list[GroupResponse],
    summary="Группы пользователя"
)
async def get_groups(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        groups = await GroupCRUD(db).get_user_groups(current_user.username)
        return [GroupResponse.from_group(g) for g in groups]
    except Exception as e:
        logger.error(f"Error fetching groups: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching groups"
        )

@router.get(
    "/groups/{group_id}",
    response_model=GroupDetailResponse,
    summary="Информация о группе"
)
async def get_group(
    group_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Группа и профили участников (с учётом их настроек приватности)"""
    try:
        group = await get_member_group(group_id, current_user, GroupCRUD(db))

        users = await UserCRUD(db).get_users_by_usernames(group.member_usernames)
        order = {username: i for i, username in enumerate(group.member_usernames)}
        users = sorted(users, key=lambda u: order[u.username])

        contact_set = await get_contact_set(db, current_user.username)
        member_details = [
            UserListItem(**item)
            for item in filter_user_list(current_user.username, users, contact_set)
        ]

        return GroupDetailResponse(
            **GroupResponse.from_group(group).model_dump(),
            member_details=member_details
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching group"
        )

@router.post(
    "/groups/{group_id}/add-member",
    response_model=GroupResponse,
    summary="Добавить участника"
)
async def add_member(
    group_id: uuid.UUID,
    member_request: GroupMemberRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        require_admin(group, current_user, "Only admins can add members")

        if not await UserCRUD(db).get_user_by_username(member_request.username):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        group = await group_crud.add_member(group, member_request.username)
        response = GroupResponse.from_group(group)

        await notify_members(group.member_usernames, {"type": "group_updated", "group": response.to_event()})
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error adding member to group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error adding member"
        )

@router.post(
    "/groups/{group_id}/remove-member",
    response_model=GroupResponse,
    summary="Удалить участника"
)
async def remove_member(
    group_id: uuid.UUID,
    member_request: GroupMemberRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Только для админов. Чтобы выйти самому, используйте /leave"""
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        require_admin(group, current_user, "Only admins can remove members")

        if member_request.username == current_user.username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Use leave to exit the group"
            )

        group = await group_crud.remove_member(group, member_request.username)
        response = GroupResponse.from_group(group)

        await notify_members(group.member_usernames, {"type": "group_updated", "group": response.to_event()})
        await manager.send_personal_message({
            "type": "group_removed",
            "groupId": str(group_id),
            "groupName": group.name
        }, member_request.username)
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error removing member from group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error removing member"
        )

@router.post(
    "/groups/{group_id}/leave",
    response_model=SuccessResponse,
    summary="Выйти из группы"
)
async def leave_group(
    group_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Последний вышедший участник удаляет группу вместе с историей"""
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        group = await group_crud.remove_member(group, current_user.username)

        if group is not None:
            await notify_members(
                group.member_usernames,
                {"type": "group_updated", "group": GroupResponse.from_group(group).to_event()}
            )
        return SuccessResponse(message="Left group successfully")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error leaving group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error leaving group"
        )

@router.put(
    "/groups/{group_id}/settings",
    response_model=GroupResponse,
    summary="Настройки группы"
)
async def update_group_settings(
    group_id: uuid.UUID,
    settings_update: GroupSettingsUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Название, описание, аватар и цвет темы (**theme**, `#rrggbb`). Только для админов"""
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        require_admin(group, current_user, "Only admins can update group settings")

        group = await group_crud.update_settings(group, settings_update)
        response = GroupResponse.from_group(group)

        await notify_members(group.member_usernames, {"type": "group_updated", "group": response.to_event()})
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error updating group"
        )

@router.delete(
    "/groups/{group_id}",
    response_model=SuccessResponse,
    summary="Удалить группу"
)
async def delete_group(
    group_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        require_admin(group, current_user, "Only admins can delete the group")

        members = group.member_usernames
        group_name = group.name
        await group_crud.delete_group(group)

        await notify_members(members, {
            "type": "group_deleted",
            "groupId": str(group_id),
            "groupName": group_name
        }, exclude=current_user.username)
        return SuccessResponse(message="Group deleted successfully")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error deleting group"
        )

@router.post(
    "/groups/{group_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Отправить сообщение в группу"
)
async def send_group_message(
    group_id: uuid.UUID,
    message_data: GroupMessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)

        message = await group_crud.create_group_message(group, current_user.username, message_data)
        response = MessageResponse.from_group_message(message)

        await notify_members(
            group.member_usernames,
            {"type": "receive_group_message", "message": response.to_event()},
            exclude=current_user.username
        )
        return response
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending group message: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error sending message"
        )

@router.get(
    "/groups/{group_id}/messages",
    response_model=list[MessageResponse],
    summary="История группы"
)
async def get_group_messages(
    group_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        messages = await group_crud.get_group_messages(group.group_id, current_user.username)
        return [MessageResponse.from_group_message(m) for m in messages]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching messages of group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching messages"
        )

@router.delete(
    "/groups/{group_id}/messages",
    response_model=SuccessResponse,
    summary="Очистить историю группы"
)
async def clear_group_messages(
    group_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Скрывает историю только для текущего пользователя"""
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        await group_crud.clear_group_messages(group.group_id, current_user.username)
        return SuccessResponse(message="Chat cleared successfully")
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error clearing group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error clearing chat"
        )

@router.get(
    "/groups/{group_id}/pinned",
    response_model=list[MessageResponse],
    summary="Закреплённые сообщения группы"
)
async def get_pinned_group_messages(
    group_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        messages = await group_crud.get_pinned_group_messages(group.group_id, current_user.username)
        return [MessageResponse.from_group_message(m) for m in messages]
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error fetching pinned messages of group {group_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching pinned messages"
        )

@router.delete(
    "/groups/{group_id}/messages/{message_id}",
    response_model=DeleteMessageResponse,
    summary="Удалить сообщение группы"
)
async def delete_group_message(
    group_id: uuid.UUID,
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Удаляет сообщение у всех участников; только отправитель"""
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        message = await get_group_message(group, message_id, group_crud)

        if message.from_username != current_user.username:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only delete your own messages"
            )

        await MessageCRUD(db).delete_message(message, current_user.username, for_everyone=True)

        await notify_members(group.member_usernames, {
            "type": "group_message_deleted",
            "groupId": str(group_id),
            "messageId": str(message_id),
            "deletedBy": current_user.username
        }, exclude=current_user.username)

        return DeleteMessageResponse(
            message="Message deleted",
            message_id=str(message_id),
            for_everyone=True
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting group message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error deleting message"
        )

@router.patch(
    "/groups/{group_id}/messages/{message_id}",
    response_model=MessageResponse,
    summary="Редактировать сообщение группы"
)
async def edit_group_message(
    group_id: uuid.UUID,
    message_id: uuid.UUID,
    message_edit: MessageEdit,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        message = await get_group_message(group, message_id, group_crud)

        if message.from_username != current_user.username:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the sender can edit a message"
            )
        if message.deleted_for_everyone:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message was deleted"
            )

        text = message_edit.text.strip()
        if not text:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Message text cannot be empty"
            )

        message = await MessageCRUD(db).edit_message(message, text)
        response = MessageResponse.from_group_message(message)

        await notify_members(
            group.member_usernames,
            {"type": "group_message_edited", "message": response.to_event()},
            exclude=current_user.username
        )
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error editing group message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error editing message"
        )

@router.post(
    "/groups/{group_id}/messages/{message_id}/star",
    response_model=MessageResponse,
    summary="Добавить/убрать из избранного"
)
async def star_group_message(
    group_id: uuid.UUID,
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        message = await get_group_message(group, message_id, group_crud)
        message = await MessageCRUD(db).toggle_star(message, current_user.username)
        return MessageResponse.from_group_message(message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error starring group message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error starring message"
        )

@router.post(
    "/groups/{group_id}/messages/{message_id}/react",
    response_model=MessageResponse,
    summary="Реакция на сообщение группы"
)
async def react_to_group_message(
    group_id: uuid.UUID,
    message_id: uuid.UUID,
    reaction: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        message = await get_group_message(group, message_id, group_crud)
        message = await MessageCRUD(db).toggle_reaction(message, current_user.username, reaction.emoji)
        response = MessageResponse.from_group_message(message)

        await notify_members(
            group.member_usernames,
            {"type": "group_message_reaction", "message": response.to_event()},
            exclude=current_user.username
        )
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reacting to group message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error reacting to message"
        )

@router.post(
    "/groups/{group_id}/messages/{message_id}/pin",
    response_model=MessageResponse,
    summary="Закрепить/открепить сообщение группы"
)
async def pin_group_message(
    group_id: uuid.UUID,
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        group_crud = GroupCRUD(db)
        group = await get_member_group(group_id, current_user, group_crud)
        message = await get_group_message(group, message_id, group_crud)
        message = await MessageCRUD(db).toggle_pin(message, current_user.username)
        return MessageResponse.from_group_message(message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error pinning group message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error pinning message"
        )
