# kipzra/core/config.py

from typing import Any, List, Optional
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
import os

# Корневой каталог проекта (на уровень выше пакета kipzra).
BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


class Settings(BaseSettings):
    """
    Все настройки приложения.
    Значения читаются из переменных окружения и файла .env в корне проекта.
    """

    model_config = SettingsConfigDict(
        env_file=os.path.join(BASE_DIR, '.env'),
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True
    )

    # --- Приложение ---
    APP_NAME: str = "KIP/ZRA Registry API"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Reference data service for KIP and ZRA equipment"
    APP_ENV: str = Field("development", description="Application environment (development, production, testing)")
    DEBUG_MODE: bool = Field(False, description="Echo SQL and enable verbose logging")

    # --- База данных ---
    DATABASE_URL: SecretStr = Field(..., description="Async database URL (postgresql+asyncpg:// or sqlite+aiosqlite://)")
    AUTO_CREATE_TABLES: bool = Field(False, description="Create missing tables on application startup")

    # --- Журналирование ---
    LOG_LEVEL: str = Field("INFO", description="Root log level")
    LOG_DIR: Optional[str] = Field(None, description="Directory for rotating log files; console only when empty")

    # --- Загрузка файлов импорта ---
    UPLOAD_DIR: str = Field("/app/data/uploads", description="Directory for uploaded import files.")

    # --- Проекты ---
    DEFAULT_PROJECT_CODE: str = Field("DEFAULT", description="Code of the built-in project that cannot be deleted")

    # --- CORS ---
    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")

    def model_post_init(self, __context: Any) -> None:  # noqa: ANN001
        # В режиме разработки загружаемые файлы хранятся внутри проекта
        if self.APP_ENV == "development" and self.UPLOAD_DIR == "/app/data/uploads":
            self.UPLOAD_DIR = os.path.join(BASE_DIR, "data", "uploads")


settings = Settings()
