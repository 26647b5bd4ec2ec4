# app/api/routes/message.py
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import uuid
import logging

from app.schemas.message import (
    MessageCreate,
    MessageEdit,
    ReactionRequest,
    MessageResponse,
    MarkReadResponse,
    DeleteMessageResponse
)
from app.schemas.user import SuccessResponse
from app.crud.message import MessageCRUD
from app.crud.group import GroupCRUD
from app.crud.user import UserCRUD
from app.database import get_db
from app.models.message import Message
from app.models.user import User
from app.api.deps import get_current_user
from app.websocket.manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()

SEARCH_LIMIT = 50

async def get_participant_message(message_id: uuid.UUID, user: User, message_crud: MessageCRUD) -> Message:
    """Сообщение, участником которого является user (иначе 404/403)"""
    message = await message_crud.get_message(message_id)
    if not message:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Message not found"
        )
    if not message.is_participant(user.username):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not a participant of this conversation"
        )
    return message

@router.post(
    "/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Отправить личное сообщение"
)
async def send_message(
    message_data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Отправить сообщение пользователю **toUsername**.

    Нужен **text** или **fileUrl**. После первого сообщения пользователи
    становятся контактами друг друга.
    """
    try:
        user_crud = UserCRUD(db)
        recipient = await user_crud.get_user_by_username(message_data.to_username)
        if not recipient:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Recipient not found"
            )

        if await user_crud.is_blocked(recipient.username, current_user.username):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You cannot message this user"
            )

        message = await MessageCRUD(db).create_message(current_user.username, message_data)
        response = MessageResponse.from_message(message)

        await manager.send_personal_message(
            {"type": "new_message", "message": response.to_event()},
            recipient.username
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
        logger.error(f"Error sending message: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error sending message"
        )

@router.get(
    "/messages/search",
    response_model=list[MessageResponse],
    summary="Поиск по сообщениям"
)
async def search_messages(
    q: str = Query("", description="Текст для поиска (без учёта регистра)"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Ищет в личных сообщениях пользователя и в сообщениях его групп.
    Групповые результаты помечены **isGroup**. Не больше 50 результатов,
    новые первыми; пустой запрос возвращает пустой список.
    """
    search = q.strip()
    if not search:
        return []

    try:
        direct = await MessageCRUD(db).search_messages(current_user.username, search, limit=SEARCH_LIMIT)

        group_crud = GroupCRUD(db)
        groups = await group_crud.get_user_groups(current_user.username)
        in_groups = await group_crud.search_group_messages(
            [g.group_id for g in groups], search, current_user.username, limit=SEARCH_LIMIT
        )

        results = [MessageResponse.from_message(m) for m in direct]
        results += [MessageResponse.from_group_message(m) for m in in_groups]
        results.sort(key=lambda m: m.timestamp, reverse=True)
        return results[:SEARCH_LIMIT]
    except Exception as e:
        logger.error(f"Error searching messages: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error searching messages"
        )

@router.get(
    "/messages/pinned/{chat_with}",
    response_model=list[MessageResponse],
    summary="Закреплённые сообщения переписки"
)
async def get_pinned_messages(
    chat_with: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        messages = await MessageCRUD(db).get_pinned_messages(current_user.username, chat_with)
        return [MessageResponse.from_message(m) for m in messages]
    except Exception as e:
        logger.error(f"Error fetching pinned messages with {chat_with}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching pinned messages"
        )

@router.delete(
    "/clear-chat/{other_username}",
    response_model=SuccessResponse,
    summary="Очистить переписку"
)
async def clear_chat(
    other_username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Скрывает всю переписку с **other_username** только для текущего пользователя"""
    try:
        await MessageCRUD(db).clear_conversation(current_user.username, other_username)
        return SuccessResponse(message="Chat cleared successfully")
    except Exception as e:
        logger.error(f"Error clearing chat with {other_username}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error clearing chat"
        )

@router.get(
    "/messages/{username}",
    response_model=list[MessageResponse],
    summary="Переписка с пользователем"
)
async def get_conversation(
    username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        messages = await MessageCRUD(db).get_conversation(current_user.username, username)
        return [MessageResponse.from_message(m) for m in messages]
    except Exception as e:
        logger.error(f"Error fetching conversation with {username}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching messages"
        )

@router.post(
    "/messages/{username}/read",
    response_model=MarkReadResponse,
    summary="Отметить переписку прочитанной"
)
async def mark_read(
    username: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Отмечает прочитанными сообщения от **username**. Отправитель получает
    уведомление только если у читателя включены read receipts.
    """
    try:
        updated = await MessageCRUD(db).mark_conversation_read(current_user.username, username)

        if updated and current_user.privacy_read_receipts:
            await manager.send_personal_message({
                "type": "messages_read",
                "readBy": current_user.username,
                "count": updated
            }, username)

        return MarkReadResponse(message="Messages marked as read", updated=updated)
    except Exception as e:
        logger.error(f"Error marking messages read: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error marking messages as read"
        )

@router.get(
    "/starred-messages",
    response_model=list[MessageResponse],
    summary="Избранные сообщения"
)
async def get_starred_messages(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        messages = await MessageCRUD(db).get_starred_messages(current_user.username)
        return [MessageResponse.from_message(m) for m in messages]
    except Exception as e:
        logger.error(f"Error fetching starred messages: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error fetching starred messages"
        )

@router.post(
    "/messages/{message_id}/star",
    response_model=MessageResponse,
    summary="Добавить/убрать из избранного"
)
async def toggle_star(
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        message_crud = MessageCRUD(db)
        message = await get_participant_message(message_id, current_user, message_crud)
        message = await message_crud.toggle_star(message, current_user.username)
        return MessageResponse.from_message(message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error starring message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error starring message"
        )

@router.post(
    "/messages/{message_id}/react",
    response_model=MessageResponse,
    summary="Реакция на сообщение"
)
async def react_to_message(
    message_id: uuid.UUID,
    reaction: ReactionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Одна реакция на пользователя; повтор той же реакции снимает её"""
    try:
        message_crud = MessageCRUD(db)
        message = await get_participant_message(message_id, current_user, message_crud)
        message = await message_crud.toggle_reaction(message, current_user.username, reaction.emoji)
        response = MessageResponse.from_message(message)

        await manager.send_personal_message(
            {"type": "message_reaction", "message": response.to_event()},
            message.peer_of(current_user.username)
        )
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error reacting to message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error reacting to message"
        )

@router.patch(
    "/messages/{message_id}",
    response_model=MessageResponse,
    summary="Редактировать сообщение"
)
async def edit_message(
    message_id: uuid.UUID,
    message_edit: MessageEdit,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        message_crud = MessageCRUD(db)
        message = await get_participant_message(message_id, current_user, message_crud)

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

        message = await message_crud.edit_message(message, text)
        response = MessageResponse.from_message(message)

        await manager.send_personal_message(
            {"type": "message_edited", "message": response.to_event()},
            message.to_username
        )
        return response
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error editing message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error editing message"
        )

@router.post(
    "/messages/{message_id}/pin",
    response_model=MessageResponse,
    summary="Закрепить/открепить сообщение"
)
async def toggle_pin(
    message_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        message_crud = MessageCRUD(db)
        message = await get_participant_message(message_id, current_user, message_crud)
        message = await message_crud.toggle_pin(message, current_user.username)
        return MessageResponse.from_message(message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error pinning message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error pinning message"
        )

@router.delete(
    "/messages/{message_id}",
    response_model=DeleteMessageResponse,
    summary="Удалить сообщение"
)
async def delete_message(
    message_id: uuid.UUID,
    for_everyone: bool = Query(False, description="Удалить у обоих (только отправитель)"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        message_crud = MessageCRUD(db)
        message = await get_participant_message(message_id, current_user, message_crud)

        if for_everyone and message.from_username != current_user.username:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the sender can delete for everyone"
            )

        message = await message_crud.delete_message(message, current_user.username, for_everyone)

        if for_everyone:
            await manager.send_personal_message({
                "type": "message_deleted",
                "messageId": str(message.message_id),
                "deletedBy": current_user.username
            }, message.to_username)

        return DeleteMessageResponse(
            message="Message deleted",
            message_id=str(message.message_id),
            for_everyone=for_everyone
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error deleting message {message_id}: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error deleting message"
        )
