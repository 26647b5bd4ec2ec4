# app/crud/group.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, and_, delete
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from app.models.group import Group, GroupMember, GroupMessage
from app.schemas.group import GroupCreate, GroupSettingsUpdate, GroupMessageCreate
from app.crud.user import escape_like
import uuid
import logging

logger = logging.getLogger(__name__)

class GroupCRUD:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_group(self, group_id: uuid.UUID) -> Group | None:
        try:
            query = select(Group).where(Group.group_id == group_id)
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting group {group_id}: {str(e)}")
            raise

    async def get_user_groups(self, username: str) -> list[Group]:
        """Группы, в которых состоит пользователь, новые первыми"""
        try:
            query = (
                select(Group)
                .join(GroupMember, Group.group_id == GroupMember.group_id)
                .where(GroupMember.username == username)
                .order_by(Group.created_at.desc())
            )
            result = await self.db.execute(query)
            return result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error getting groups for {username}: {str(e)}")
            raise

    async def create_group(self, creator: str, group_data: GroupCreate) -> Group:
        """Создать группу; создатель становится админом и первым участником"""
        try:
            db_group = Group(
                name=group_data.name.strip(),
                description=group_data.description,
                profile_picture=group_data.profile_picture,
                created_by=creator
            )
            db_group.members.append(GroupMember(username=creator, is_admin=True))

            # Уникальные участники в порядке передачи
            for username in dict.fromkeys(group_data.members):
                if username != creator:
                    db_group.members.append(GroupMember(username=username, is_admin=False))

            self.db.add(db_group)
            await self.db.commit()

            logger.info(f"Group {db_group.name} ({db_group.group_id}) created by {creator}")
            return db_group
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Integrity error creating group: {str(e)}")
            raise ValueError("Group creation failed - integrity error")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating group: {str(e)}")
            raise RuntimeError("Database error during group creation")

    async def add_member(self, group: Group, username: str) -> Group:
        """Добавить участника (повторное добавление ничего не меняет)"""
        if group.is_member(username):
            return group
        try:
            group.members.append(GroupMember(username=username, is_admin=False))
            await self.db.commit()
            logger.info(f"{username} added to group {group.group_id}")
            return group
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error adding member to group: {str(e)}")
            raise RuntimeError("Database error during member add")

    async def remove_member(self, group: Group, username: str) -> Group | None:
        """
        Убрать участника из группы.

        Если участников не осталось, группа удаляется вместе с сообщениями
        и возвращается None. Если не осталось админов, админом становится
        участник, состоящий в группе дольше всех.
        """
        member = group.get_member(username)
        if not member:
            return group

        try:
            group.members.remove(member)

            if not group.members:
                await self.db.execute(delete(GroupMessage).where(GroupMessage.group_id == group.group_id))
                await self.db.delete(group)
                await self.db.commit()
                logger.info(f"Group {group.group_id} deleted: last member {username} left")
                return None

            if not any(m.is_admin for m in group.members):
                group.members[0].is_admin = True
                logger.info(f"{group.members[0].username} promoted to admin of {group.group_id}")

            await self.db.commit()
            logger.info(f"{username} removed from group {group.group_id}")
            return group
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error removing member from group: {str(e)}")
            raise RuntimeError("Database error during member removal")

    async def leave_all_groups(self, username: str) -> int:
        groups = await self.get_user_groups(username)
        for group in groups:
            await self.remove_member(group, username)
        return len(groups)

    async def update_settings(self, group: Group, update: GroupSettingsUpdate) -> Group:
        try:
            for field, value in update.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(group, field, value.strip() if field == "name" else value)

            await self.db.commit()
            logger.info(f"Group {group.group_id} settings updated")
            return group
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error updating group settings {group.group_id}: {str(e)}")
            raise RuntimeError("Database error during group update")

    async def delete_group(self, group: Group) -> None:
        try:
            await self.db.execute(delete(GroupMessage).where(GroupMessage.group_id == group.group_id))
            await self.db.delete(group)
            await self.db.commit()
            logger.info(f"Group {group.group_id} deleted")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error deleting group {group.group_id}: {str(e)}")
            raise RuntimeError("Database error during group deletion")

    async def create_group_message(self, group: Group, from_username: str, message_data: GroupMessageCreate) -> GroupMessage:
        text = message_data.text.strip() if message_data.text else None
        if not text and not message_data.file_url:
            raise ValueError("Message must contain text or a file")

        try:
            db_message = GroupMessage(
                group_id=group.group_id,
                from_username=from_username,
                text=text,
                type=message_data.type,
                file_url=message_data.file_url,
                file_name=message_data.file_name
            )
            self.db.add(db_message)
            await self.db.commit()
            await self.db.refresh(db_message)

            logger.info(f"Group message {db_message.message_id}: {from_username} -> {group.group_id}")
            return db_message
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating group message: {str(e)}")
            raise RuntimeError("Database error during message creation")

    async def get_group_message(self, group_id: uuid.UUID, message_id: uuid.UUID) -> GroupMessage | None:
        try:
            query = select(GroupMessage).where(
                and_(
                    GroupMessage.message_id == message_id,
                    GroupMessage.group_id == group_id
                )
            )
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting group message {message_id}: {str(e)}")
            raise

    async def get_group_messages(self, group_id: uuid.UUID, username: str) -> list[GroupMessage]:
        """История группы по времени, без удалённых для всех и очищенных username"""
        try:
            query = select(GroupMessage).where(
                and_(
                    GroupMessage.group_id == group_id,
                    GroupMessage.deleted_for_everyone.is_(False)
                )
            ).order_by(GroupMessage.timestamp)

            result = await self.db.execute(query)
            return [m for m in result.scalars().all() if username not in (m.deleted_for or [])]
        except SQLAlchemyError as e:
            logger.error(f"Error getting messages of group {group_id}: {str(e)}")
            raise

    async def get_pinned_group_messages(self, group_id: uuid.UUID, username: str) -> list[GroupMessage]:
        try:
            query = select(GroupMessage).where(
                and_(
                    GroupMessage.group_id == group_id,
                    GroupMessage.pinned.is_(True),
                    GroupMessage.deleted_for_everyone.is_(False)
                )
            ).order_by(GroupMessage.pinned_at.desc())

            result = await self.db.execute(query)
            return [m for m in result.scalars().all() if username not in (m.deleted_for or [])]
        except SQLAlchemyError as e:
            logger.error(f"Error getting pinned messages of group {group_id}: {str(e)}")
            raise

    async def clear_group_messages(self, group_id: uuid.UUID, username: str) -> int:
        """Скрыть историю группы только для username"""
        try:
            query = select(GroupMessage).where(GroupMessage.group_id == group_id)
            result = await self.db.execute(query)

            cleared = 0
            for message in result.scalars().all():
                if username not in (message.deleted_for or []):
                    message.deleted_for = list(message.deleted_for or []) + [username]
                    cleared += 1

            await self.db.commit()
            logger.info(f"{username} cleared {cleared} messages in group {group_id}")
            return cleared
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error clearing group {group_id} for {username}: {str(e)}")
            raise RuntimeError("Database error during chat clear")

    async def search_group_messages(self, group_ids: list[uuid.UUID], search: str, username: str, limit: int = 50) -> list[GroupMessage]:
        if not group_ids:
            return []
        try:
            query = select(GroupMessage).where(
                and_(
                    GroupMessage.group_id.in_(group_ids),
                    GroupMessage.text.ilike(f"%{escape_like(search)}%", escape="\\"),
                    GroupMessage.deleted_for_everyone.is_(False)
                )
            ).order_by(GroupMessage.timestamp.desc())

            result = await self.db.execute(query)
            messages = [m for m in result.scalars().all() if username not in (m.deleted_for or [])]
            return messages[:limit]
        except SQLAlchemyError as e:
            logger.error(f"Error searching group messages for {username}: {str(e)}")
            raise
