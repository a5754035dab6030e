# kipzra/main.py

"""
Точка входа FastAPI-приложения справочника КИП/ЗРА.
"""

import logging
from typing import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra import API_PREFIX
from kipzra.core.config import settings
from kipzra.core.database import engine, create_db_and_tables, get_session
from kipzra.core.exceptions import register_exception_handlers
from kipzra.core.logging import setup_logging

from kipzra.domains.prj.routers import router as prj_router
from kipzra.domains.ref.routers import router as ref_router
from kipzra.domains.sig.routers import router as sig_router
from kipzra.domains.imp.routers import router as imp_router
from kipzra.domains.adm.routers import router as adm_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Запуск: журналирование и (по настройке) создание таблиц.
    Остановка: закрытие пула соединений.
    """
    setup_logging()
    logger.info("Starting %s %s (%s)", settings.APP_NAME, settings.APP_VERSION, settings.APP_ENV)
    if settings.AUTO_CREATE_TABLES:
        await create_db_and_tables()

    yield

    logger.info("Shutting down, disposing database engine")
    await engine.dispose()


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(prj_router, prefix=f"{API_PREFIX}/prj", tags=["Projects"])
app.include_router(ref_router, prefix=f"{API_PREFIX}/ref", tags=["Device Reference"])
app.include_router(sig_router, prefix=f"{API_PREFIX}/sig", tags=["Signals"])
app.include_router(imp_router, prefix=f"{API_PREFIX}/imp", tags=["Import / Export"])
app.include_router(adm_router, prefix=f"{API_PREFIX}/adm", tags=["Database Maintenance"])


@app.get("/", summary="API Root", response_description="Welcome message and documentation link.")
async def read_root():
    return {"message": f"Welcome to {settings.APP_NAME}. Visit /docs for interactive API documentation."}


@app.get("/health-check", summary="Health Check", response_description="Status of the application and database connection.")
async def health_check(session: AsyncSession = Depends(get_session)):
    """
    Проверяет соединение с базой данных простым запросом.
    """
    try:
        result = await session.execute(text("SELECT 1"))
        if result.scalar_one() == 1:
            return {"status": "ok", "database_connection": "successful"}
    except SQLAlchemyError as e:
        logger.error("Health check failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database connection error during health check",
        ) from e
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Database health check failed: No result from test query",
    )
