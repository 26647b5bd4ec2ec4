# app/models/group.py
from sqlalchemy import String, DateTime, Boolean, Text, JSON, Integer, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
import uuid
from datetime import datetime
from app.database import Base

DEFAULT_THEME = "#00a884"

class Group(Base):
    __tablename__ = "groups"

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    profile_picture: Mapped[str] = mapped_column(String, nullable=False, default="")
    theme: Mapped[str] = mapped_column(String(16), nullable=False, default=DEFAULT_THEME)
    created_by: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    members = relationship(
        "GroupMember",
        back_populates="group",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GroupMember.id"
    )

    @property
    def member_usernames(self) -> list[str]:
        return [m.username for m in self.members]

    @property
    def admin_usernames(self) -> list[str]:
        return [m.username for m in self.members if m.is_admin]

    def get_member(self, username: str) -> "GroupMember | None":
        return next((m for m in self.members if m.username == username), None)

    def is_member(self, username: str) -> bool:
        return self.get_member(username) is not None

    def is_admin(self, username: str) -> bool:
        member = self.get_member(username)
        return member is not None and member.is_admin

    def __repr__(self):
        return f"<Group {self.name} ({self.group_id})>"

class GroupMember(Base):
    __tablename__ = "group_members"

    # Порядковый id: первый оставшийся участник становится админом
    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True
    )
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.group_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True
    )
    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False
    )

    # Relationships
    group = relationship("Group", back_populates="members")

    __table_args__ = (
        UniqueConstraint('group_id', 'username', name='uq_group_member'),
    )

class GroupMessage(Base):
    __tablename__ = "group_messages"

    message_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.group_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    from_username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True
    )
    text: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="text")
    file_url: Mapped[str | None] = mapped_column(String, nullable=True)
    file_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True
    )

    # Те же поля состояния, что у Message: MessageCRUD работает с обоими
    starred_by: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    reactions: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    deleted_for: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    edit_history: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    deleted_for_everyone: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    edited_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pinned_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    pinned_by: Mapped[str | None] = mapped_column(String(50), nullable=True)

    def __repr__(self):
        return f"<GroupMessage {self.message_id} {self.from_username} -> {self.group_id}>"
