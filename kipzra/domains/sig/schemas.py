# kipzra/domains/sig/schemas.py

"""
Pydantic-схемы домена 'sig'.
"""

from typing import Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, Field
from sqlmodel import SQLModel

from kipzra.domains.sig.models import SignalType


# =============================================================================
# 1. Сигналы
# =============================================================================
class SignalBase(SQLModel):
    name: str = Field(..., min_length=1, max_length=255, description="Имя сигнала")
    category: Optional[str] = Field(None, max_length=255, description="Категория (тип устройства)")
    description: Optional[str] = Field(None, description="Описание")
    connection_type: Optional[str] = Field(None, max_length=255)
    voltage: Optional[str] = Field(None, max_length=50)


class SignalCreate(SignalBase):
    """
    Тип передаётся как текст и приводится к AI/AO/DI/DO по таблице синонимов
    и справочнику signal_types; неизвестное значение отклоняется.
    """
    type: str = Field(..., min_length=1, description="Тип сигнала или его синоним")


class SignalUpdate(SQLModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    connection_type: Optional[str] = None
    voltage: Optional[str] = None


class SignalRead(SignalBase):
    id: int
    type: SignalType
    total_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# 2. Назначения сигналов устройствам
# =============================================================================
class DeviceSignalAssign(BaseModel):
    signal_id: int
    count: int = Field(1, ge=0, description="Количество сигналов на устройстве")


class DeviceSignalRead(BaseModel):
    id: int
    device_id: int
    signal_id: int
    count: int
    signal_name: Optional[str] = None
    signal_type: Optional[SignalType] = None
    signal_category: Optional[str] = None


# =============================================================================
# 3. Счётчики по типам устройств
# =============================================================================
class DeviceTypeSignalUpsert(BaseModel):
    """device_type обязателен; отсутствие проверяется в CRUD-слое (ValidationError)."""
    device_type: Optional[str] = Field(None, max_length=255)
    ai_count: int = Field(0, ge=0)
    ao_count: int = Field(0, ge=0)
    di_count: int = Field(0, ge=0)
    do_count: int = Field(0, ge=0)


class DeviceTypeSignalRead(BaseModel):
    id: int
    device_type: str
    ai_count: int
    ao_count: int
    di_count: int
    do_count: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =============================================================================
# 4. Сводка
# =============================================================================
class TypeSignalRow(BaseModel):
    device_type: str
    ai_count: int = 0
    ao_count: int = 0
    di_count: int = 0
    do_count: int = 0
    device_count: int = 0
    source: Literal["assignments", "counters"] = "counters"


class SignalTotals(BaseModel):
    total_ai: int = 0
    total_ao: int = 0
    total_di: int = 0
    total_do: int = 0
    total_signals: int = 0
    total_devices: int = 0


class SignalsSummary(BaseModel):
    per_device_type: List[TypeSignalRow] = Field(default_factory=list)
    totals: SignalTotals = Field(default_factory=SignalTotals)
    degraded: bool = Field(False, description="Данные назначений недоступны, показаны только счётчики")


class SignalTypeSummaryRow(BaseModel):
    type: SignalType
    signal_count: int = 0
    total_count: int = 0


# =============================================================================
# 5. Массовое назначение
# =============================================================================
class AssignTypeResult(BaseModel):
    device_type: str
    assigned_count: int


class AssignFailure(BaseModel):
    device_type: str
    kind: Optional[str] = None
    detail: str


class AssignAllResult(BaseModel):
    assigned_count: int = 0
    types_succeeded: int = 0
    types_failed: int = 0
    failures: List[AssignFailure] = Field(default_factory=list)


class RecomputeResult(BaseModel):
    updated_signals: int


# =============================================================================
# 6. Справочник кодов типов сигналов
# =============================================================================
class SignalTypeDefinitionCreate(BaseModel):
    """category приводится к AI/AO/DI/DO по встроенной таблице синонимов."""
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: str = Field(..., min_length=1, description="Базовый тип сигнала или его синоним")


class SignalTypeDefinitionUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = None


class SignalTypeDefinitionRead(BaseModel):
    id: int
    code: str
    name: str
    description: Optional[str] = None
    category: SignalType
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
