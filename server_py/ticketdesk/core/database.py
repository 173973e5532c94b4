import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ticketdesk.core.config import settings

# Создаем базовый класс для моделей
Base = declarative_base()

# Создаем движок SQLAlchemy для асинхронной работы
engine = create_async_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

# Создаем фабрику сессий
AsyncSessionLocal = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


def generate_id() -> str:
    """Globally unique id for clients, admins, companies and tickets."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    """Naive UTC timestamp, the form SQLite hands back on read."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Функция для получения сессии БД
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def session_scope(factory=AsyncSessionLocal) -> AsyncIterator[AsyncSession]:
    """Short-lived session for code running outside a request (websocket handlers)."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
