# kipzra/core/database.py

"""
Подключение к базе данных и управление сессиями.

- Создаёт асинхронный движок SQLAlchemy для SQLModel-моделей.
- Предоставляет генератор сессий для зависимостей FastAPI и контекстный
  менеджер для работы вне запроса (скрипты, импорт файлов из каталога).
- Содержит функцию создания таблиц для режима разработки.
"""

import logging
from typing import Any, AsyncGenerator, Dict
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import configure_mappers, sessionmaker

from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.config import settings

# Все модели должны быть импортированы, чтобы SQLModel.metadata знала о таблицах.
from kipzra.domains import models  # noqa: F401

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> Dict[str, Any]:
    """Параметры пула имеют смысл только для серверных СУБД."""
    options: Dict[str, Any] = {"echo": settings.DEBUG_MODE, "future": True}
    if url.startswith("postgresql"):
        options.update(
            pool_recycle=3600,  # переоткрывать соединение раз в час
            pool_size=10,
            max_overflow=20,
        )
    return options


_database_url = settings.DATABASE_URL.get_secret_value()
engine: AsyncEngine = create_async_engine(_database_url, **_engine_options(_database_url))

AsyncSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

_mappers_configured = False


async def create_db_and_tables() -> None:
    """
    Создаёт недостающие таблицы. Существующие таблицы не изменяются.
    Используется при разработке; в эксплуатации схема ведётся миграциями.
    """
    global _mappers_configured
    logger.info("Creating database tables (missing only)")
    async with engine.begin() as conn:
        if not _mappers_configured:
            configure_mappers()
            _mappers_configured = True
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database tables are ready")


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Сессия на один HTTP-запрос; закрывается после обработки запроса.
    """
    async with AsyncSessionLocal() as session:
        yield session


@asynccontextmanager
async def get_async_session_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Самостоятельная сессия для работы вне запроса:
    фиксирует изменения при успехе и откатывает при исключении.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
