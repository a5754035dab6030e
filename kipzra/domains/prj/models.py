# kipzra/domains/prj/models.py

"""
ORM-модели домена 'prj' (проекты).

Проект - контейнер, разделяющий данные устройств и сигналов на
независимые рабочие наборы. Все сущности справочника, кроме счётчиков
сигналов по типам устройств, несут project_id.
"""

from typing import Optional, Dict, Any
from datetime import datetime, UTC
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import JSON
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    TEMPLATE = "template"


# =============================================================================
# 1. Таблица projects
# =============================================================================
class ProjectBase(SQLModel):
    """
    Базовые атрибуты таблицы projects.
    """
    id: Optional[int] = Field(default=None, primary_key=True, description="ID проекта")
    name: str = Field(max_length=200, description="Название проекта")
    code: str = Field(max_length=50, sa_column_kwargs={"unique": True}, description="Код проекта (верхний регистр)")
    description: Optional[str] = Field(default=None, description="Описание")
    status: str = Field(default=ProjectStatus.ACTIVE.value, max_length=20, description="active / archived / template")
    settings: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON), description="Настройки проекта (JSON)")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="Дата создания"
    )
    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()),
        description="Дата последнего изменения"
    )


class Project(ProjectBase, table=True):
    __tablename__ = "projects"
