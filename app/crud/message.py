# app/crud/message.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, or_, update, func, delete
from sqlalchemy.exc import SQLAlchemyError
from app.models.message import Message
from app.schemas.message import MessageCreate
from app.crud.user import escape_like
from datetime import datetime
import uuid
import logging

logger = logging.getLogger(__name__)

class MessageCRUD:
    """
    Личные сообщения. Методы изменения состояния (звезда, реакция, правка,
    закрепление, удаление) работают и с GroupMessage: поля у них общие.
    """
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_message(self, message_id: uuid.UUID) -> Message | None:
        try:
            query = select(Message).where(Message.message_id == message_id)
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting message {message_id}: {str(e)}")
            raise

    async def create_message(self, from_username: str, message_data: MessageCreate) -> Message:
        """Сохранить личное сообщение"""
        text = message_data.text.strip() if message_data.text else None
        if not text and not message_data.file_url:
            raise ValueError("Message must contain text or a file")

        try:
            db_message = Message(
                from_username=from_username,
                to_username=message_data.to_username,
                text=text,
                type=message_data.type,
                file_url=message_data.file_url,
                file_name=message_data.file_name
            )
            self.db.add(db_message)
            await self.db.commit()
            await self.db.refresh(db_message)

            logger.info(f"Message {db_message.message_id}: {from_username} -> {message_data.to_username}")
            return db_message
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating message: {str(e)}")
            raise RuntimeError("Database error during message creation")

    async def get_conversation(self, username: str, peer: str) -> list[Message]:
        """Переписка в обе стороны, по времени, без удалённых для username"""
        try:
            query = select(Message).where(
                or_(
                    and_(Message.from_username == username, Message.to_username == peer),
                    and_(Message.from_username == peer, Message.to_username == username)
                )
            ).order_by(Message.timestamp)

            result = await self.db.execute(query)
            return [m for m in result.scalars().all() if username not in (m.deleted_for or [])]
        except SQLAlchemyError as e:
            logger.error(f"Error getting conversation {username} <-> {peer}: {str(e)}")
            raise

    async def get_pinned_messages(self, username: str, peer: str) -> list[Message]:
        """Закреплённые в переписке, последние закреплённые первыми"""
        try:
            query = select(Message).where(
                and_(
                    or_(
                        and_(Message.from_username == username, Message.to_username == peer),
                        and_(Message.from_username == peer, Message.to_username == username)
                    ),
                    Message.pinned.is_(True),
                    Message.deleted_for_everyone.is_(False)
                )
            ).order_by(Message.pinned_at.desc())

            result = await self.db.execute(query)
            return [m for m in result.scalars().all() if username not in (m.deleted_for or [])]
        except SQLAlchemyError as e:
            logger.error(f"Error getting pinned messages {username} <-> {peer}: {str(e)}")
            raise

    async def search_messages(self, username: str, search: str, limit: int = 50) -> list[Message]:
        """Поиск по тексту личных сообщений пользователя, регистронезависимо"""
        try:
            query = select(Message).where(
                and_(
                    or_(
                        Message.from_username == username,
                        Message.to_username == username
                    ),
                    Message.text.ilike(f"%{escape_like(search)}%", escape="\\"),
                    Message.deleted_for_everyone.is_(False)
                )
            ).order_by(Message.timestamp.desc())

            result = await self.db.execute(query)
            messages = [m for m in result.scalars().all() if username not in (m.deleted_for or [])]
            return messages[:limit]
        except SQLAlchemyError as e:
            logger.error(f"Error searching messages for {username}: {str(e)}")
            raise

    async def clear_conversation(self, username: str, peer: str) -> int:
        """Очистить переписку только у username (собеседник её по-прежнему видит)"""
        try:
            query = select(Message).where(
                or_(
                    and_(Message.from_username == username, Message.to_username == peer),
                    and_(Message.from_username == peer, Message.to_username == username)
                )
            )
            result = await self.db.execute(query)

            cleared = 0
            for message in result.scalars().all():
                if username not in (message.deleted_for or []):
                    message.deleted_for = list(message.deleted_for or []) + [username]
                    cleared += 1

            await self.db.commit()
            logger.info(f"{username} cleared {cleared} messages with {peer}")
            return cleared
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error clearing chat {username} <-> {peer}: {str(e)}")
            raise RuntimeError("Database error during chat clear")

    async def delete_user_messages(self, username: str) -> int:
        """Удалить все личные сообщения пользователя (при удалении аккаунта)"""
        try:
            stmt = delete(Message).where(
                or_(
                    Message.from_username == username,
                    Message.to_username == username
                )
            ).execution_options(synchronize_session=False)

            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error deleting messages of {username}: {str(e)}")
            raise RuntimeError("Database error during message deletion")

    async def get_partner_usernames(self, username: str) -> list[str]:
        """Собеседники пользователя, начиная с самой свежей переписки"""
        try:
            query = select(Message.from_username, Message.to_username).where(
                or_(
                    Message.from_username == username,
                    Message.to_username == username
                )
            ).order_by(Message.timestamp.desc())

            result = await self.db.execute(query)
            partners: list[str] = []
            for from_username, to_username in result.all():
                peer = to_username if from_username == username else from_username
                if peer != username and peer not in partners:
                    partners.append(peer)
            return partners
        except SQLAlchemyError as e:
            logger.error(f"Error getting chat partners for {username}: {str(e)}")
            raise

    async def get_unread_counts(self, username: str) -> dict[str, int]:
        """{отправитель: количество непрочитанных}"""
        try:
            query = select(
                Message.from_username, func.count(Message.message_id)
            ).where(
                and_(
                    Message.to_username == username,
                    Message.read.is_(False),
                    Message.deleted_for_everyone.is_(False)
                )
            ).group_by(Message.from_username)

            result = await self.db.execute(query)
            return {from_username: count for from_username, count in result.all()}
        except SQLAlchemyError as e:
            logger.error(f"Error getting unread counts for {username}: {str(e)}")
            raise

    async def mark_conversation_read(self, reader: str, peer: str) -> int:
        """Отметить прочитанными все сообщения от peer к reader"""
        try:
            stmt = update(Message).where(
                and_(
                    Message.from_username == peer,
                    Message.to_username == reader,
                    Message.read.is_(False)
                )
            ).values(read=True).execution_options(synchronize_session=False)

            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount or 0
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error marking messages read {peer} -> {reader}: {str(e)}")
            raise

    async def toggle_star(self, message: Message, username: str) -> Message:
        starred_by = list(message.starred_by or [])
        if username in starred_by:
            starred_by.remove(username)
        else:
            starred_by.append(username)
        message.starred_by = starred_by
        return await self._save(message)

    async def get_starred_messages(self, username: str) -> list[Message]:
        """Сообщения, отмеченные пользователем (фильтруем в Python: JSON-колонка)"""
        try:
            query = select(Message).where(
                or_(
                    Message.from_username == username,
                    Message.to_username == username
                )
            ).order_by(Message.timestamp.desc())

            result = await self.db.execute(query)
            return [
                m for m in result.scalars().all()
                if username in (m.starred_by or [])
                and username not in (m.deleted_for or [])
                and not m.deleted_for_everyone
            ]
        except SQLAlchemyError as e:
            logger.error(f"Error getting starred messages for {username}: {str(e)}")
            raise

    async def toggle_reaction(self, message: Message, username: str, emoji: str) -> Message:
        """Одна реакция на пользователя; та же реакция повторно снимает её"""
        reactions = [r for r in (message.reactions or []) if r.get("username") != username]
        previous = next((r for r in (message.reactions or []) if r.get("username") == username), None)
        if previous is None or previous.get("emoji") != emoji:
            reactions.append({
                "emoji": emoji,
                "username": username,
                "timestamp": datetime.utcnow().isoformat()
            })
        message.reactions = reactions
        return await self._save(message)

    async def edit_message(self, message: Message, text: str) -> Message:
        now = datetime.utcnow()
        message.edit_history = list(message.edit_history or []) + [
            {"text": message.text, "editedAt": now.isoformat()}
        ]
        message.text = text
        message.edited = True
        message.edited_at = now
        return await self._save(message)

    async def toggle_pin(self, message: Message, username: str) -> Message:
        if message.pinned:
            message.pinned = False
            message.pinned_at = None
            message.pinned_by = None
        else:
            message.pinned = True
            message.pinned_at = datetime.utcnow()
            message.pinned_by = username
        return await self._save(message)

    async def delete_message(self, message: Message, username: str, for_everyone: bool) -> Message:
        if for_everyone:
            message.deleted_for_everyone = True
            message.text = None
            message.file_url = None
            message.file_name = None
        elif username not in (message.deleted_for or []):
            message.deleted_for = list(message.deleted_for or []) + [username]
        return await self._save(message)

    async def _save(self, message: Message) -> Message:
        try:
            await self.db.commit()
            await self.db.refresh(message)
            return message
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error saving message {message.message_id}: {str(e)}")
            raise RuntimeError("Database error during message update")
