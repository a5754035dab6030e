# kipzra/core/dependencies.py

"""
Зависимости FastAPI.

- Сессия базы данных на время запроса (get_db_session).
- Необязательный фильтр по проекту для маршрутов чтения (project_scope).
"""

from typing import AsyncGenerator, Optional

from fastapi import Query
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.database import get_session as get_main_app_session


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Обёртка над kipzra.core.database.get_session для внедрения в маршруты.
    """
    async for session in get_main_app_session():
        yield session


def project_scope(
    project_id: Optional[int] = Query(None, description="ID проекта; без значения - все проекты"),
) -> Optional[int]:
    """Необязательный параметр projectId, общий для всех маршрутов чтения."""
    return project_id
