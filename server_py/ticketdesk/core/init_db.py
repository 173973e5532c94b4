from sqlalchemy.ext.asyncio import create_async_engine
from ticketdesk.core.config import settings
from ticketdesk.core.database import Base

# Импортируем модели чтобы они попали в metadata перед созданием таблиц
import ticketdesk.models  # noqa: F401


async def init_db(database_url: str | None = None):
    """Инициализация базы данных, каталога вложений и создание таблиц"""
    # Гарантируем наличие директорий для файла базы данных и загрузок
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    settings.UPLOADS_DIR.mkdir(parents=True, exist_ok=True)
    # Создаем временный движок для инициализации
    engine = create_async_engine(database_url or settings.DATABASE_URL)

    async with engine.begin() as conn:
        # Создаем все таблицы
        await conn.run_sync(Base.metadata.create_all)

    # Закрываем движок
    await engine.dispose()
