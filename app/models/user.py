# app/models/user.py
from sqlalchemy import String, DateTime, Boolean, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import uuid
from datetime import datetime
from app.database import Base

DEFAULT_ABOUT = "Hey there! I am using WhatsApp-Lite"

class User(Base):
    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        index=True
    )
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )
    display_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default=""
    )
    # Приватные поля: видны только владельцу
    phone_number: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        unique=True,
        index=True
    )
    email: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        unique=True,
        index=True
    )
    profile_picture: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=""
    )
    about: Mapped[str] = mapped_column(
        String(139),
        nullable=False,
        default=DEFAULT_ABOUT
    )
    is_online: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False
    )
    last_seen: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        default=datetime.utcnow
    )
    socket_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True
    )
    wallpaper: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="default"
    )

    # Настройки приватности: everyone / contacts / nobody
    privacy_last_seen: Mapped[str] = mapped_column(String(16), nullable=False, default="everyone")
    privacy_profile_photo: Mapped[str] = mapped_column(String(16), nullable=False, default="everyone")
    privacy_about: Mapped[str] = mapped_column(String(16), nullable=False, default="everyone")
    privacy_status: Mapped[str] = mapped_column(String(16), nullable=False, default="everyone")
    privacy_read_receipts: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    blocked = relationship(
        "BlockedContact",
        foreign_keys="BlockedContact.user_id",
        cascade="all, delete-orphan",
        back_populates="user"
    )

    @property
    def privacy_settings(self) -> dict:
        return {
            "lastSeen": self.privacy_last_seen,
            "profilePhoto": self.privacy_profile_photo,
            "about": self.privacy_about,
            "status": self.privacy_status,
            "readReceipts": self.privacy_read_receipts,
        }

    def __repr__(self):
        return f"<User {self.username} ({self.user_id})>"

class BlockedContact(Base):
    __tablename__ = "blocked_contacts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    blocked_user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    user = relationship("User", foreign_keys=[user_id], back_populates="blocked")
    blocked_user = relationship("User", foreign_keys=[blocked_user_id])

    __table_args__ = (
        UniqueConstraint('user_id', 'blocked_user_id', name='uq_user_blocked'),
    )
