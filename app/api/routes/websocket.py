# app/api/routes/websocket.py
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import anyio
import json
import logging
import uuid
from datetime import datetime

from app import database
from app.crud.user import UserCRUD
from app.crud.group import GroupCRUD
from app.security import decode_access_token
from app.websocket.manager import manager

logger = logging.getLogger(__name__)
router = APIRouter()

async def _set_presence(username: str, is_online: bool, socket_id: str | None = None):
    async with database.AsyncSessionLocal() as db:
        await UserCRUD(db).set_presence(username, is_online, socket_id)

    await manager.broadcast({
        "type": "user-status",
        "username": username,
        "isOnline": is_online,
        "timestamp": datetime.utcnow().isoformat()
    })

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket для присутствия и уведомлений.
    Параметры:
    - token: JWT из /api/login в query параметре (?token=...)
    """
    token = websocket.query_params.get("token")
    payload = decode_access_token(token) if token else None

    await websocket.accept()

    if not payload:
        logger.warning("WebSocket authentication failed: invalid or missing token")
        await websocket.close(code=4001, reason="Authentication failed")
        return

    username = payload["username"]
    async with database.AsyncSessionLocal() as db:
        user = await UserCRUD(db).get_user_by_username(username)

    if not user:
        logger.warning(f"WebSocket authentication failed: user {username} not found")
        await websocket.close(code=4001, reason="Authentication failed")
        return

    socket_id = await manager.connect(websocket, username)
    await _set_presence(username, True, socket_id)

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except json.JSONDecodeError:
                logger.error(f"Invalid JSON received from {username}")
                continue

            if not isinstance(data, dict):
                logger.warning(f"Unexpected frame from {username}: {data!r}")
                continue

            message_type = data.get("type")

            if message_type == "ping":
                await websocket.send_json({"type": "pong", "timestamp": datetime.utcnow().isoformat()})

            elif message_type == "typing":
                await handle_typing(data, username)

            elif message_type == "group_typing":
                await handle_group_typing(data, username)

            else:
                logger.warning(f"Unknown message type: {message_type}")

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {username}")
    except Exception as e:
        logger.error(f"WebSocket error for user {username}: {str(e)}")
    finally:
        # Если соединение уже заменено новым, статус не трогаем.
        # Задачу могут отменить при закрытии сокета, запись offline должна дойти до БД
        with anyio.CancelScope(shield=True):
            if manager.disconnect(username, socket_id):
                await _set_presence(username, False)

async def handle_typing(data: dict, sender: str):
    """Переслать индикатор набора текста получателю"""
    recipient = data.get("toUsername")
    if not recipient or recipient == sender:
        logger.warning(f"Typing event without valid recipient from {sender}")
        return

    await manager.send_personal_message({
        "type": "typing",
        "fromUsername": sender,
        "isTyping": bool(data.get("isTyping", True)),
        "timestamp": datetime.utcnow().isoformat()
    }, recipient)

async def handle_group_typing(data: dict, sender: str):
    """Переслать индикатор набора остальным участникам группы"""
    try:
        group_id = uuid.UUID(str(data.get("groupId")))
    except ValueError:
        logger.warning(f"Group typing event with invalid groupId from {sender}")
        return

    async with database.AsyncSessionLocal() as db:
        group = await GroupCRUD(db).get_group(group_id)

    if not group or not group.is_member(sender):
        logger.warning(f"Group typing from non-member {sender} in {group_id}")
        return

    event = {
        "type": "group_typing",
        "groupId": str(group_id),
        "fromUsername": sender,
        "isTyping": bool(data.get("isTyping", True)),
        "timestamp": datetime.utcnow().isoformat()
    }
    for username in group.member_usernames:
        if username != sender:
            await manager.send_personal_message(event, username)
