# app/models/message.py
from sqlalchemy import String, DateTime, Boolean, Text, JSON, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column
import uuid
from datetime import datetime
from app.database import Base

MESSAGE_TYPES = ("text", "image", "file", "gif", "audio")

class Message(Base):
    __tablename__ = "messages"

    message_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    from_username: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True
    )
    to_username: Mapped[str] = mapped_column(
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
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Списки хранятся в JSON; при изменении присваиваем новый список целиком
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

    __table_args__ = (
        Index("ix_messages_conversation", "from_username", "to_username", "timestamp"),
    )

    def is_participant(self, username: str) -> bool:
        return username in (self.from_username, self.to_username)

    def peer_of(self, username: str) -> str:
        return self.to_username if self.from_username == username else self.from_username

    def __repr__(self):
        return f"<Message {self.message_id} {self.from_username} -> {self.to_username}>"
