import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from ticketdesk.core.config import settings
from ticketdesk.core.database import engine
from ticketdesk.core.init_db import init_db
from ticketdesk.api.v1.api import api_router
from ticketdesk.websockets.chat_ws import router as chat_ws_router
from ticketdesk.websockets.hub import ChatHub

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not settings.DATABASE_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await init_db()

    chat_hub = ChatHub()
    app.state.chat_hub = chat_hub
    await chat_hub.start()
    logger.info("%s started", settings.PROJECT_NAME)
    try:
        yield
    finally:
        await chat_hub.stop()
        app.state.chat_hub = None
        await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)

# Настройка CORS
if settings.BACKEND_CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin) for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

# Подключаем роутеры API v1
app.include_router(api_router, prefix=settings.API_V1_STR)

# Подключаем роутеры БЕЗ префикса для обратной совместимости
app.include_router(api_router, prefix="")

# Вебсокет чата тикетов
app.include_router(chat_ws_router)

# Вложения чата; каталог создается в init_db
app.mount("/uploads", StaticFiles(directory=str(settings.UPLOADS_DIR), check_dir=False), name="uploads")
