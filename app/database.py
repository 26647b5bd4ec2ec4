# app/database.py
from typing import AsyncIterator
import logging

from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def _make_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        # У aiosqlite соединения привязаны к event loop, пул не нужен
        return create_async_engine(url, poolclass=NullPool)
    return create_async_engine(
        url,
        pool_size=10,
        max_overflow=5,
        pool_timeout=30,
        pool_pre_ping=True,
    )


engine: AsyncEngine = _make_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


def configure_engine(url: str) -> None:
    """Пересоздать engine и фабрику сессий (используется тестами и CLI)"""
    global engine, AsyncSessionLocal
    engine = _make_engine(url)
    AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    logger.info(f"Database engine configured for {engine.url.render_as_string(hide_password=True)}")


async def init_models() -> None:
    """Создать таблицы, если их ещё нет"""
    # Импорт регистрирует модели в Base.metadata
    import app.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    await engine.dispose()


async def get_db() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session
