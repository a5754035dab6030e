# kipzra/core/logging.py

"""Единая настройка журналирования приложения."""

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

from kipzra.core.config import settings


def setup_logging(log_dir: Optional[str] = None, level: Optional[str] = None) -> None:
    """
    Настраивает журналирование через dictConfig.

    Args:
        log_dir: каталог для файлов журнала; если не задан, пишем только в консоль
        level: уровень корневого логгера (по умолчанию settings.LOG_LEVEL)
    """
    log_dir = log_dir if log_dir is not None else settings.LOG_DIR
    level = (level or settings.LOG_LEVEL).upper()

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "level": level,
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    }
    root_handlers = ["console"]

    if log_dir:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "level": level,
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(path / "application.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "formatter": "verbose",
            "encoding": "utf-8",
        }
        handlers["error_file"] = {
            "level": "ERROR",
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(path / "error.log"),
            "maxBytes": 10485760,
            "backupCount": 5,
            "formatter": "verbose",
            "encoding": "utf-8",
        }
        root_handlers += ["file", "error_file"]

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "verbose": {
                "format": "{levelname} {asctime} {name} {process:d} {message}",
                "style": "{",
            },
            "simple": {
                "format": "{levelname} {asctime} {name} {message}",
                "style": "{",
            },
        },
        "handlers": handlers,
        "loggers": {
            "sqlalchemy.engine": {
                "level": "INFO" if settings.DEBUG_MODE else "WARNING",
            },
        },
        "root": {
            "handlers": root_handlers,
            "level": level,
        },
    }

    logging.config.dictConfig(logging_config)
