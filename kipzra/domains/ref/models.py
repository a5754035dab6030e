# kipzra/domains/ref/models.py

"""
ORM-модели домена 'ref' (справочник устройств).

Устройство хранится в одной таблице devices с единым идентификатором.
Детальные сведения КИП и ЗРА вынесены в подчинённые таблицы kips и zras,
которые ссылаются на тот же devices.id. Назначения сигналов (домен 'sig')
также ссылаются на devices.id, поэтому теневые копии устройств не нужны.
"""

from typing import Optional, Dict, Any
from datetime import datetime, UTC
from sqlmodel import Field, SQLModel, Column
from sqlalchemy import ForeignKey, Integer, JSON, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.types import TIMESTAMP


# =============================================================================
# 1. Таблица devices
# =============================================================================
class DeviceBase(SQLModel):
    """
    Базовые атрибуты устройства справочника.
    """
    id: Optional[int] = Field(default=None, primary_key=True, description="ID устройства")
    project_id: int = Field(
        sa_column=Column(Integer, ForeignKey("projects.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False, index=True),
        description="ID проекта (FK)"
    )
    position_code: str = Field(max_length=255, description="Позиционное обозначение")
    equipment_code: Optional[str] = Field(default=None, max_length=255, description="Код оборудования (сегменты через '.' и '-')")
    device_type: str = Field(max_length=255, index=True, description="Тип устройства")
    description: Optional[str] = Field(default=None, description="Описание")
    parent_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("devices.id", ondelete="SET NULL"), nullable=True),
        description="ID родительского устройства"
    )
    parent_system: Optional[str] = Field(default=None, max_length=255, description="Родительская система")
    system_code: Optional[str] = Field(default=None, max_length=255, description="Код системы")
    plc_type: Optional[str] = Field(default=None, max_length=255, description="Тип ПЛК")
    ex_version: Optional[str] = Field(default=None, max_length=255, description="Ex-исполнение")

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


class Device(DeviceBase, table=True):
    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint('project_id', 'position_code'),
    )


# =============================================================================
# 2. Таблица kips (детали КИП)
# =============================================================================
class KipBase(SQLModel):
    """
    Сведения о контрольно-измерительном приборе.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    device_id: int = Field(
        sa_column=Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, unique=True),
        description="ID устройства (FK)"
    )
    section: Optional[str] = Field(default=None, description="Секция")
    unit_area: Optional[str] = Field(default=None, description="Участок")
    manufacturer: Optional[str] = Field(default=None, description="Производитель")
    article: Optional[str] = Field(default=None, description="Артикул")
    measure_unit: Optional[str] = Field(default=None, description="Единица измерения")
    scale: Optional[str] = Field(default=None, description="Шкала")
    note: Optional[str] = Field(default=None, description="Примечание")
    doc_link: Optional[str] = Field(default=None, description="Ссылка на документацию")
    responsibility_zone: Optional[str] = Field(default=None, description="Зона ответственности")
    connection_scheme: Optional[str] = Field(default=None, description="Схема подключения")
    power: Optional[str] = Field(default=None, description="Питание")
    plc: Optional[str] = Field(default=None, description="ПЛК")
    ex_version: Optional[str] = Field(default=None, description="Ex-исполнение")
    environment_characteristics: Optional[str] = Field(default=None, description="Характеристики среды")
    signal_purpose: Optional[str] = Field(default=None, description="Назначение сигнала")
    control_points: Optional[int] = Field(default=None, description="Количество точек контроля")
    completeness: Optional[str] = Field(default=None, description="Комплектность")
    measuring_limits: Optional[str] = Field(default=None, description="Пределы измерений")


class Kip(KipBase, table=True):
    __tablename__ = "kips"


# =============================================================================
# 3. Таблица zras (детали ЗРА)
# =============================================================================
class ZraBase(SQLModel):
    """
    Сведения о запорно-регулирующей арматуре и приводе.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    device_id: int = Field(
        sa_column=Column(Integer, ForeignKey("devices.id", ondelete="CASCADE"), nullable=False, unique=True),
        description="ID устройства (FK)"
    )
    unit_area: Optional[str] = Field(default=None, description="Участок")
    design_type: Optional[str] = Field(default=None, description="Конструктивное исполнение")
    valve_type: Optional[str] = Field(default=None, description="Тип арматуры (запорная/регулирующая)")
    actuator_type: Optional[str] = Field(default=None, description="Тип привода")
    pipe_position: Optional[str] = Field(default=None, description="Позиция трубы")
    nominal_diameter: Optional[str] = Field(default=None, description="Условный диаметр DN")
    pressure_rating: Optional[str] = Field(default=None, description="Условное давление PN")
    pipe_material: Optional[str] = Field(default=None, description="Материал трубы")
    medium: Optional[str] = Field(default=None, description="Среда")
    position_sensor: Optional[str] = Field(default=None, description="Датчик положения")
    solenoid_type: Optional[str] = Field(default=None, description="Тип пневмораспределителя")
    emergency_position: Optional[str] = Field(default=None, description="Положение при аварийном отключении")
    control_panel: Optional[str] = Field(default=None, description="ШПУ")
    air_consumption: Optional[str] = Field(default=None, description="Расход воздуха на 1 операцию")
    connection_size: Optional[str] = Field(default=None, description="Ø и резьба пневмоприсоединения")
    fittings_count: Optional[int] = Field(default=None, description="Кол-во ответных фитингов")
    tube_diameter: Optional[str] = Field(default=None, description="Ø пневмотрубки")
    limit_switch_type: Optional[str] = Field(default=None, description="Тип концевого выключателя")
    positioner_type: Optional[str] = Field(default=None, description="Тип позиционера")
    device_description: Optional[str] = Field(default=None, description="Описание устройства")
    category: Optional[str] = Field(default=None, description="Категория")
    plc: Optional[str] = Field(default=None, description="ПЛК")
    ex_version: Optional[str] = Field(default=None, description="Ex-исполнение")
    operation: Optional[str] = Field(default=None, description="Операция")
    note: Optional[str] = Field(default=None, description="Примечание")


class Zra(ZraBase, table=True):
    __tablename__ = "zras"


# =============================================================================
# 4. Таблица filter_presets (сохранённые наборы фильтров)
# =============================================================================
class FilterPresetBase(SQLModel):
    """
    Именованный набор фильтров списка устройств, принадлежащий пользователю.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    owner: str = Field(max_length=100, description="Владелец набора")
    name: str = Field(max_length=100, description="Название набора")
    project_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True),
        description="Проект, к которому относится набор"
    )
    filters: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False), description="Фильтры (JSON)")

    created_at: Optional[datetime] = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_column=Column(TIMESTAMP(timezone=True), server_default=func.now()),
        description="Дата создания"
    )


class FilterPreset(FilterPresetBase, table=True):
    __tablename__ = "filter_presets"
    __table_args__ = (
        UniqueConstraint('owner', 'name'),
    )
