from pydantic_settings import BaseSettings
from pathlib import Path
from typing import List


class Settings(BaseSettings):
    # Project
    PROJECT_NAME: str = "TicketDesk API"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"

    # Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    UPLOADS_DIR: Path = DATA_DIR / "uploads"

    # Server
    SERVER_HOST: str = "0.0.0.0"
    SERVER_PORT: int = 5000
    # Публичный адрес, из которого строятся ссылки на вложения
    BASE_URL: str = "http://localhost:5000"

    # Database
    DATABASE_URL: str = f"sqlite+aiosqlite:///{DATA_DIR}/app.db"
    DATABASE_ECHO: bool = False

    # Security
    SECRET_KEY: str = "your-secret-key-here"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 2

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = ["*"]

    # Chat
    CHAT_RATE_LIMIT_WINDOW_SECONDS: float = 60
    CHAT_RATE_LIMIT_MAX_REQUESTS: int = 100
    CHAT_RATE_LIMIT_SWEEP_SECONDS: float = 5 * 60
    CHAT_TYPING_TIMEOUT_SECONDS: float = 3
    CHAT_IDLE_TIMEOUT_SECONDS: float = 24 * 60 * 60
    CHAT_MAX_ATTACHMENT_BYTES: int = 10 * 1024 * 1024
    CHAT_MAX_UPLOAD_FILES: int = 10
    CHAT_DEFAULT_PAGE_SIZE: int = 50
    CHAT_ALLOWED_MIME_TYPES: List[str] = [
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ]

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


# Создаем экземпляр настроек
settings = Settings()
