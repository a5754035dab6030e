# tests/conftest.py

import os

# Настройки читаются при импорте kipzra.core.config, поэтому окружение задаётся до импорта приложения.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "testing")

from typing import AsyncGenerator, Awaitable, Callable, Optional  # noqa: E402

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402
from sqlmodel.ext.asyncio.session import AsyncSession  # noqa: E402

from kipzra.main import app as main_app  # noqa: E402
from kipzra.core import dependencies as deps  # noqa: E402
from kipzra.core.database import get_session  # noqa: E402

# --- Все модели (для SQLModel.metadata.create_all) ---
from kipzra.domains.models import *  # noqa: F401, F403, E402
from kipzra.domains.prj import models as prj_models  # noqa: E402
from kipzra.domains.ref import models as ref_models  # noqa: E402
from kipzra.domains.sig import models as sig_models  # noqa: E402


# --- База данных: отдельный файл SQLite на каждый тест ---
@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        future=True,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine: AsyncEngine):
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Сессия для подготовки данных и проверок в тесте."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP-клиент приложения. Каждый запрос получает собственную сессию
    тестовой базы данных.
    """
    async def _override_get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    main_app.dependency_overrides[get_session] = _override_get_session
    main_app.dependency_overrides[deps.get_db_session] = _override_get_session

    async with AsyncClient(transport=ASGITransport(app=main_app), base_url="http://test") as ac:
        yield ac

    main_app.dependency_overrides.clear()


# --- Фабрики тестовых данных ---
@pytest_asyncio.fixture(scope="function")
async def test_project(db_session: AsyncSession) -> prj_models.Project:
    project = prj_models.Project(name="Тестовый проект", code="TEST")
    db_session.add(project)
    await db_session.commit()
    await db_session.refresh(project)
    return project


@pytest_asyncio.fixture(scope="function")
def device_factory(db_session: AsyncSession) -> Callable[..., Awaitable[ref_models.Device]]:
    async def _create_device(
        project_id: int,
        position_code: str,
        device_type: str = "Датчик давления",
        equipment_code: Optional[str] = None,
        **kwargs,
    ) -> ref_models.Device:
        device = ref_models.Device(
            project_id=project_id,
            position_code=position_code,
            device_type=device_type,
            equipment_code=equipment_code,
            **kwargs,
        )
        db_session.add(device)
        await db_session.commit()
        await db_session.refresh(device)
        return device
    return _create_device


@pytest_asyncio.fixture(scope="function")
def signal_factory(db_session: AsyncSession) -> Callable[..., Awaitable[sig_models.Signal]]:
    async def _create_signal(name: str, type: str = "AI", category: Optional[str] = None, **kwargs) -> sig_models.Signal:
        signal = sig_models.Signal(name=name, type=type, category=category, **kwargs)
        db_session.add(signal)
        await db_session.commit()
        await db_session.refresh(signal)
        return signal
    return _create_signal


@pytest_asyncio.fixture(scope="function")
def counter_factory(db_session: AsyncSession) -> Callable[..., Awaitable[sig_models.DeviceTypeSignal]]:
    async def _create_counter(device_type: str, ai=0, ao=0, di=0, do=0) -> sig_models.DeviceTypeSignal:
        counter = sig_models.DeviceTypeSignal(
            device_type=device_type, ai_count=ai, ao_count=ao, di_count=di, do_count=do
        )
        db_session.add(counter)
        await db_session.commit()
        await db_session.refresh(counter)
        return counter
    return _create_counter
