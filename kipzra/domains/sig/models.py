# kipzra/domains/sig/models.py

"""
ORM-модели домена 'sig' (сигналы).

- signals: справочник сигналов с вычисляемым total_count
- device_signals: назначения сигналов конкретным устройствам
- device_type_signals: базовые счётчики AI/AO/DI/DO на тип устройства
- signal_types: справочник кодов типов сигналов
"""

from typing import Optional
from datetime import datetime, UTC
from enum import Enum
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import ForeignKey, Integer, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


class SignalType(str, Enum):
    AI = "AI"
    AO = "AO"
    DI = "DI"
    DO = "DO"


# =============================================================================
# 1. Таблица signals
# =============================================================================
class SignalBase(SQLModel):
    """
    Базовые атрибуты сигнала.
    """
    id: Optional[int] = Field(default=None, primary_key=True, description="ID сигнала")
    name: str = Field(max_length=255, description="Имя сигнала")
    type: str = Field(max_length=2, index=True, description="Тип сигнала: AI / AO / DI / DO")
    category: Optional[str] = Field(default=None, max_length=255, index=True, description="Категория (тип устройства)")
    description: Optional[str] = Field(default=None, description="Описание")
    connection_type: Optional[str] = Field(default=None, max_length=255, description="Тип подключения")
    voltage: Optional[str] = Field(default=None, max_length=50, description="Напряжение")
    total_count: int = Field(default=0, description="Сумма назначений по всем устройствам")

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


class Signal(SignalBase, table=True):
    __tablename__ = "signals"
    __table_args__ = (
        UniqueConstraint('name', 'type'),
    )


# =============================================================================
# 2. Таблица device_signals (назначения)
# =============================================================================
class DeviceSignalBase(SQLModel):
    """
    Назначение сигнала устройству с количеством.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    device_id: int = Field(
        sa_column=Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, index=True),
        description="ID устройства (FK)"
    )
    signal_id: int = Field(
        sa_column=Column(Integer, ForeignKey("signals.id", ondelete="CASCADE"), nullable=False, index=True),
        description="ID сигнала (FK)"
    )
    count: int = Field(default=1, ge=0, description="Количество")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="Дата назначения"
    )


class DeviceSignal(DeviceSignalBase, table=True):
    __tablename__ = "device_signals"
    __table_args__ = (
        UniqueConstraint('device_id', 'signal_id'),
    )


# =============================================================================
# 3. Таблица device_type_signals (счётчики по типу устройства)
# =============================================================================
class DeviceTypeSignalBase(SQLModel):
    """
    Базовые счётчики сигналов для типа устройства (справочно, не по проекту).
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    device_type: str = Field(max_length=255, sa_column_kwargs={"unique": True}, description="Тип устройства")
    ai_count: int = Field(default=0, ge=0)
    ao_count: int = Field(default=0, ge=0)
    di_count: int = Field(default=0, ge=0)
    do_count: int = Field(default=0, ge=0)

    updated_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()),
        description="Дата последнего изменения"
    )


class DeviceTypeSignal(DeviceTypeSignalBase, table=True):
    __tablename__ = "device_type_signals"


# =============================================================================
# 4. Таблица signal_types (справочник кодов типов сигналов)
# =============================================================================
class SignalTypeDefinitionBase(SQLModel):
    """
    Пользовательский код типа сигнала, приводимый к одному из AI / AO / DI / DO.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(max_length=50, sa_column_kwargs={"unique": True}, description="Код типа (верхний регистр)")
    name: str = Field(max_length=255, description="Наименование")
    description: Optional[str] = Field(default=None, description="Описание")
    category: str = Field(max_length=2, description="Базовый тип: AI / AO / DI / DO")

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


class SignalTypeDefinition(SignalTypeDefinitionBase, table=True):
    __tablename__ = "signal_types"
