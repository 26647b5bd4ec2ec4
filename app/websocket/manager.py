# app/websocket/manager.py
from datetime import datetime
from fastapi import WebSocket
from typing import Dict
import uuid
import logging

logger = logging.getLogger(__name__)

class ConnectionManager:
    def __init__(self):
        # active_connections: {username: {"websocket": WebSocket, "socket_id": str, "connected_at": datetime}}
        self.active_connections: Dict[str, dict] = {}

    async def connect(self, websocket: WebSocket, username: str) -> str:
        """Зарегистрировать соединение, вернуть его socket_id"""
        # Новое соединение того же пользователя заменяет старое
        old_connection = self.active_connections.get(username)
        if old_connection:
            try:
                await old_connection["websocket"].close(code=1000, reason="New connection from same user")
            except RuntimeError as e:
                logger.debug(f"Old connection of {username} already closed: {str(e)}")

        socket_id = uuid.uuid4().hex
        self.active_connections[username] = {
            "websocket": websocket,
            "socket_id": socket_id,
            "connected_at": datetime.now()
        }

        logger.info(f"✅ User connected: {username} ({socket_id})")
        return socket_id

    def disconnect(self, username: str, socket_id: str | None = None) -> bool:
        """
        Удалить соединение. Если передан socket_id, удаляется только оно:
        закрытие старого соединения не должно выкидывать новое.
        """
        connection = self.active_connections.get(username)
        if not connection:
            return False
        if socket_id is not None and connection["socket_id"] != socket_id:
            return False

        del self.active_connections[username]
        logger.info(f"👋 User disconnected: {username}")
        return True

    async def send_personal_message(self, message: dict, username: str) -> bool:
        connection = self.active_connections.get(username)
        if not connection:
            logger.debug(f"User {username} is offline, {message.get('type')} not pushed")
            return False

        try:
            await connection["websocket"].send_json(message)
            return True
        except Exception as e:
            logger.error(f"❌ Error sending to {username}: {str(e)}")
            self.disconnect(username, connection["socket_id"])
            return False

    async def broadcast(self, message: dict):
        """Отправить сообщение всем подключенным пользователям"""
        disconnected_users = []

        for username, connection in list(self.active_connections.items()):
            try:
                await connection["websocket"].send_json(message)
            except Exception as e:
                logger.warning(f"Broadcast to {username} failed: {str(e)}")
                disconnected_users.append((username, connection["socket_id"]))

        for username, socket_id in disconnected_users:
            self.disconnect(username, socket_id)

    def is_online(self, username: str) -> bool:
        return username in self.active_connections

    def get_online_users(self) -> list:
        return [
            {
                "username": username,
                "socket_id": data["socket_id"],
                "connected_at": data["connected_at"]
            }
            for username, data in self.active_connections.items()
        ]

# Глобальный экземпляр менеджера
manager = ConnectionManager()
