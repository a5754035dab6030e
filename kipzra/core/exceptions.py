# kipzra/core/exceptions.py

"""
Иерархия прикладных исключений и их отображение в HTTP-ответы.

Сервисы и CRUD-слой бросают эти исключения, обработчики из
register_exception_handlers() превращают их в JSON-ответы
вида {"detail": ..., "kind": ...}.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class KipZraError(Exception):
    """Базовое исключение приложения."""
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, kind: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind


class ValidationError(KipZraError):
    """Не заполнено обязательное поле или значение недопустимо."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(KipZraError):
    """Запрошенная сущность отсутствует."""
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(KipZraError):
    """Нарушена уникальность (имя+тип сигнала, код проекта, позиция устройства)."""
    status_code = status.HTTP_400_BAD_REQUEST


class AggregationDegradedError(KipZraError):
    """
    Не удалось получить данные назначений для сводки сигналов.
    Наружу не передаётся: сводка строится по счётчикам типов устройств.
    """


class PersistenceError(KipZraError):
    """Неожиданный сбой хранилища. Клиент получает только общее сообщение."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Database operation failed", *, kind: Optional[str] = "persistence"):
        super().__init__(message, kind=kind)


async def _kipzra_error_handler(request: Request, exc: KipZraError) -> JSONResponse:
    if isinstance(exc, PersistenceError):
        logger.error("Persistence failure on %s %s: %s", request.method, request.url.path, exc.__cause__ or exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Подключает обработчики прикладных исключений к приложению."""
    app.add_exception_handler(KipZraError, _kipzra_error_handler)
