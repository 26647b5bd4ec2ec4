# app/crud/user.py
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_, delete
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from app.models.user import User, BlockedContact, DEFAULT_ABOUT
from app.models.group import GroupMessage
from app.schemas.user import RegisterRequest, PrivacySettingsUpdate
from app.security import hash_password, verify_password
from datetime import datetime
import logging

logger = logging.getLogger(__name__)

# Поле схемы PrivacySettingsUpdate -> колонка модели User
PRIVACY_COLUMNS = {
    "last_seen": "privacy_last_seen",
    "profile_photo": "privacy_profile_photo",
    "about": "privacy_about",
    "status": "privacy_status",
    "read_receipts": "privacy_read_receipts",
}

PROFILE_COLUMNS = ("display_name", "email", "phone_number", "about", "profile_picture")

def escape_like(text: str) -> str:
    """Экранировать % _ и \\ для ilike(..., escape="\\")"""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

class UserCRUD:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user_by_username(self, username: str) -> User | None:
        """Получить пользователя по username"""
        try:
            query = select(User).where(User.username == username)
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting user {username}: {str(e)}")
            raise

    async def get_user_by_email(self, email: str) -> User | None:
        try:
            query = select(User).where(User.email == email.lower())
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting user by email: {str(e)}")
            raise

    async def get_user_by_phone(self, phone_number: str) -> User | None:
        try:
            query = select(User).where(User.phone_number == phone_number)
            result = await self.db.execute(query)
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error getting user by phone: {str(e)}")
            raise

    async def create_user(self, user_data: RegisterRequest) -> User:
        """Зарегистрировать нового пользователя"""
        try:
            if await self.get_user_by_username(user_data.username):
                raise ValueError("Username already exists")

            email = user_data.email.strip().lower() if user_data.email else None
            if email and await self.get_user_by_email(email):
                raise ValueError("Email already registered")

            phone_number = user_data.phone_number.strip() if user_data.phone_number else None
            if phone_number and await self.get_user_by_phone(phone_number):
                raise ValueError("Phone number already registered")

            db_user = User(
                username=user_data.username,
                hashed_password=hash_password(user_data.password),
                display_name=user_data.username,
                email=email,
                phone_number=phone_number,
                about=DEFAULT_ABOUT
            )

            self.db.add(db_user)
            await self.db.commit()
            await self.db.refresh(db_user)

            logger.info(f"User registered: {db_user.username} ({db_user.user_id})")
            return db_user

        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Integrity error creating user: {str(e)}")
            raise ValueError("User with this username, email or phone already exists")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Database error creating user: {str(e)}")
            raise RuntimeError("Database error during user creation")

    async def authenticate(self, username: str, password: str) -> User | None:
        """Проверить логин/пароль, вернуть пользователя или None"""
        user = await self.get_user_by_username(username)
        if not user:
            logger.info(f"Login failed, user not found: {username}")
            return None
        if not verify_password(password, user.hashed_password):
            logger.info(f"Login failed, invalid password for: {username}")
            return None
        return user

    async def update_profile(self, user: User, changes: dict) -> User:
        """
        Частичное обновление профиля (только переданные поля).
        null для displayName/about/profilePicture сбрасывает поле к значению
        по умолчанию, для email/phoneNumber очищает его.
        """
        try:
            for field, value in changes.items():
                if field not in PROFILE_COLUMNS:
                    continue

                if field == "email":
                    value = value.strip().lower() if value else None
                    if value:
                        owner = await self.get_user_by_email(value)
                        if owner and owner.user_id != user.user_id:
                            raise ValueError("Email already registered")
                elif field == "phone_number":
                    value = value.strip() if value else None
                    if value:
                        owner = await self.get_user_by_phone(value)
                        if owner and owner.user_id != user.user_id:
                            raise ValueError("Phone number already registered")
                elif value is None:
                    value = self._profile_default(user, field)

                setattr(user, field, value)

            await self.db.commit()
            await self.db.refresh(user)
            logger.info(f"Profile updated for {user.username}: {sorted(changes)}")
            return user
        except ValueError:
            await self.db.rollback()
            raise
        except IntegrityError as e:
            await self.db.rollback()
            logger.error(f"Integrity error updating profile: {str(e)}")
            raise ValueError("Email or phone number already in use")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error updating profile for {user.username}: {str(e)}")
            raise RuntimeError("Database error during profile update")

    @staticmethod
    def _profile_default(user: User, field: str) -> str:
        if field == "display_name":
            return user.username
        if field == "about":
            return DEFAULT_ABOUT
        return ""

    async def update_wallpaper(self, user: User, wallpaper: str) -> User:
        try:
            user.wallpaper = wallpaper
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error updating wallpaper for {user.username}: {str(e)}")
            raise

    async def update_privacy_settings(self, user: User, update: PrivacySettingsUpdate) -> User:
        """Слить переданные настройки приватности с текущими"""
        try:
            for field, value in update.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(user, PRIVACY_COLUMNS[field], value)

            await self.db.commit()
            await self.db.refresh(user)
            logger.info(f"Privacy settings updated for {user.username}")
            return user
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error updating privacy settings for {user.username}: {str(e)}")
            raise

    async def set_presence(self, username: str, is_online: bool, socket_id: str | None = None) -> User | None:
        """Обновить онлайн-статус (last write wins)"""
        try:
            user = await self.get_user_by_username(username)
            if not user:
                return None

            user.is_online = is_online
            user.socket_id = socket_id if is_online else None
            user.last_seen = datetime.utcnow()

            await self.db.commit()
            await self.db.refresh(user)
            return user
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error updating presence for {username}: {str(e)}")
            raise

    async def list_users(self, exclude_username: str) -> list[User]:
        """Все пользователи кроме текущего, по алфавиту"""
        try:
            query = select(User).where(User.username != exclude_username).order_by(User.username)
            result = await self.db.execute(query)
            return result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error listing users: {str(e)}")
            raise

    async def search_users(self, search: str, exclude_username: str, limit: int = 50) -> list[User]:
        """Поиск по частичному совпадению username или display_name, регистронезависимо"""
        try:
            query = select(User).where(User.username != exclude_username)
            if search:
                pattern = f"%{escape_like(search)}%"
                query = query.where(
                    or_(
                        User.username.ilike(pattern, escape="\\"),
                        User.display_name.ilike(pattern, escape="\\")
                    )
                )
            query = query.order_by(User.username).limit(limit)

            result = await self.db.execute(query)
            return result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error searching users by {search}: {str(e)}")
            raise

    async def get_users_by_usernames(self, usernames: list[str]) -> list[User]:
        if not usernames:
            return []
        try:
            query = select(User).where(User.username.in_(usernames))
            result = await self.db.execute(query)
            return result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error getting users by usernames: {str(e)}")
            raise

    async def get_blocked_users(self, user: User) -> list[User]:
        """Список заблокированных пользователем"""
        try:
            query = select(User).join(
                BlockedContact, BlockedContact.blocked_user_id == User.user_id
            ).where(
                BlockedContact.user_id == user.user_id
            ).order_by(User.username)

            result = await self.db.execute(query)
            return result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Error getting blocked contacts: {str(e)}")
            raise

    async def is_blocked(self, blocker_username: str, blocked_username: str) -> bool:
        """Заблокировал ли blocker пользователя blocked"""
        try:
            blocker = await self.get_user_by_username(blocker_username)
            blocked = await self.get_user_by_username(blocked_username)
            if not blocker or not blocked:
                return False

            query = select(BlockedContact).where(
                and_(
                    BlockedContact.user_id == blocker.user_id,
                    BlockedContact.blocked_user_id == blocked.user_id
                )
            )
            result = await self.db.execute(query)
            return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking block {blocker_username} -> {blocked_username}: {str(e)}")
            raise

    async def block_user(self, user: User, target: User) -> None:
        """Заблокировать пользователя (повторная блокировка ничего не меняет)"""
        try:
            if user.user_id == target.user_id:
                raise ValueError("Cannot block yourself")

            if await self.is_blocked(user.username, target.username):
                return

            self.db.add(BlockedContact(user_id=user.user_id, blocked_user_id=target.user_id))
            await self.db.commit()
            logger.info(f"{user.username} blocked {target.username}")
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Block already exists {user.username} -> {target.username}: {str(e)}")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error blocking user: {str(e)}")
            raise RuntimeError("Database error during block")

    async def unblock_user(self, user: User, target: User) -> None:
        try:
            delete_query = delete(BlockedContact).where(
                and_(
                    BlockedContact.user_id == user.user_id,
                    BlockedContact.blocked_user_id == target.user_id
                )
            )
            await self.db.execute(delete_query)
            await self.db.commit()
            logger.info(f"{user.username} unblocked {target.username}")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error unblocking user: {str(e)}")
            raise RuntimeError("Database error during unblock")

    async def delete_account(self, user: User) -> None:
        """
        Удалить пользователя, его блокировки (в обе стороны) и его сообщения
        в группах. Личные сообщения и членство в группах убираются до этого
        через MessageCRUD и GroupCRUD.
        """
        try:
            await self.db.execute(delete(GroupMessage).where(GroupMessage.from_username == user.username))
            await self.db.execute(delete(BlockedContact).where(
                or_(
                    BlockedContact.user_id == user.user_id,
                    BlockedContact.blocked_user_id == user.user_id
                )
            ))
            await self.db.execute(
                delete(User).where(User.user_id == user.user_id).execution_options(synchronize_session=False)
            )
            await self.db.commit()
            logger.info(f"Account deleted: {user.username} ({user.user_id})")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Error deleting account {user.username}: {str(e)}")
            raise RuntimeError("Database error during account deletion")
