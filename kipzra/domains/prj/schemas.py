# kipzra/domains/prj/schemas.py

"""
Pydantic-схемы домена 'prj' для запросов и ответов API проектов.
"""

from typing import Optional, Dict, Any, List
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from sqlmodel import SQLModel

from kipzra.domains.prj.models import ProjectStatus


# =============================================================================
# 1. Проект
# =============================================================================
class ProjectBase(SQLModel):
    name: str = Field(..., max_length=200, description="Название проекта")
    code: str = Field(..., max_length=50, description="Код проекта")
    description: Optional[str] = Field(None, description="Описание")
    status: ProjectStatus = Field(ProjectStatus.ACTIVE, description="Статус проекта")
    settings: Optional[Dict[str, Any]] = Field(None, description="Настройки проекта")


class ProjectCreate(ProjectBase):
    """
    Создание проекта. Код приводится к верхнему регистру.
    """
    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        return value.strip()


class ProjectUpdate(SQLModel):
    """Все поля необязательны (частичное обновление)."""
    name: Optional[str] = Field(None, max_length=200)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    settings: Optional[Dict[str, Any]] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: Optional[str]) -> Optional[str]:
        return value.strip().upper() if value is not None else value


class ProjectRead(ProjectBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProjectListItem(ProjectRead):
    device_count: int = Field(0, description="Количество устройств в проекте")


# =============================================================================
# 2. Статистика, экспорт, копирование
# =============================================================================
class ProjectStats(BaseModel):
    project_id: int
    device_count: int = 0
    kip_count: int = 0
    zra_count: int = 0
    assignment_count: int = 0
    device_types: List[str] = Field(default_factory=list)


class ProjectDetail(ProjectRead):
    stats: ProjectStats


class ProjectExport(BaseModel):
    """JSON-выгрузка проекта со всеми устройствами и деталями."""
    version: str = "1.0"
    exported_at: datetime
    project: ProjectRead
    device_count: int
    devices: List[Dict[str, Any]]


class ProjectCopyRequest(BaseModel):
    name: str = Field(..., max_length=200, description="Название нового проекта")
    code: str = Field(..., max_length=50, description="Код нового проекта")
    description: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class ProjectDeleteResult(BaseModel):
    project_id: int
    archived: bool = Field(..., description="True - проект переведён в архив, False - удалён")
