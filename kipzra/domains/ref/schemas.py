# kipzra/domains/ref/schemas.py

"""
Pydantic-схемы домена 'ref'.

Устройство передаётся вместе с необязательными деталями КИП или ЗРА.
Ответ на запрос одного устройства имеет вид
{reference, kip, zra, data_type}, где data_type - 'kip', 'zra' или 'unknown'.
"""

from typing import Optional, List, Dict, Any, Literal
from datetime import datetime
from pydantic import BaseModel, Field
from sqlmodel import SQLModel


# =============================================================================
# 1. Детали КИП / ЗРА
# =============================================================================
class KipData(SQLModel):
    section: Optional[str] = None
    unit_area: Optional[str] = None
    manufacturer: Optional[str] = None
    article: Optional[str] = None
    measure_unit: Optional[str] = None
    scale: Optional[str] = None
    note: Optional[str] = None
    doc_link: Optional[str] = None
    responsibility_zone: Optional[str] = None
    connection_scheme: Optional[str] = None
    power: Optional[str] = None
    plc: Optional[str] = None
    ex_version: Optional[str] = None
    environment_characteristics: Optional[str] = None
    signal_purpose: Optional[str] = None
    control_points: Optional[int] = None
    completeness: Optional[str] = None
    measuring_limits: Optional[str] = None


class KipRead(KipData):
    id: int
    device_id: int

    class Config:
        from_attributes = True


class ZraData(SQLModel):
    unit_area: Optional[str] = None
    design_type: Optional[str] = None
    valve_type: Optional[str] = None
    actuator_type: Optional[str] = None
    pipe_position: Optional[str] = None
    nominal_diameter: Optional[str] = None
    pressure_rating: Optional[str] = None
    pipe_material: Optional[str] = None
    medium: Optional[str] = None
    position_sensor: Optional[str] = None
    solenoid_type: Optional[str] = None
    emergency_position: Optional[str] = None
    control_panel: Optional[str] = None
    air_consumption: Optional[str] = None
    connection_size: Optional[str] = None
    fittings_count: Optional[int] = None
    tube_diameter: Optional[str] = None
    limit_switch_type: Optional[str] = None
    positioner_type: Optional[str] = None
    device_description: Optional[str] = None
    category: Optional[str] = None
    plc: Optional[str] = None
    ex_version: Optional[str] = None
    operation: Optional[str] = None
    note: Optional[str] = None


class ZraRead(ZraData):
    id: int
    device_id: int

    class Config:
        from_attributes = True


# =============================================================================
# 2. Устройство
# =============================================================================
class DeviceBase(SQLModel):
    position_code: str = Field(..., min_length=1, max_length=255, description="Позиционное обозначение")
    equipment_code: Optional[str] = Field(None, max_length=255, description="Код оборудования")
    device_type: str = Field(..., max_length=255, description="Тип устройства")
    description: Optional[str] = Field(None, description="Описание")
    parent_id: Optional[int] = Field(None, description="ID родительского устройства")
    parent_system: Optional[str] = Field(None, max_length=255)
    system_code: Optional[str] = Field(None, max_length=255)
    plc_type: Optional[str] = Field(None, max_length=255)
    ex_version: Optional[str] = Field(None, max_length=255)


class DeviceCreate(DeviceBase):
    """
    Создание устройства вместе с деталями.
    Без project_id устройство попадает в проект по умолчанию.
    """
    project_id: Optional[int] = Field(None, description="ID проекта")
    data_type: Optional[Literal["kip", "zra"]] = Field(None, description="Вид деталей: kip или zra")
    kip: Optional[KipData] = None
    zra: Optional[ZraData] = None


class DeviceUpdate(SQLModel):
    position_code: Optional[str] = Field(None, min_length=1, max_length=255)
    equipment_code: Optional[str] = Field(None, max_length=255)
    device_type: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[int] = None
    parent_system: Optional[str] = None
    system_code: Optional[str] = None
    plc_type: Optional[str] = None
    ex_version: Optional[str] = None
    kip: Optional[KipData] = None
    zra: Optional[ZraData] = None


class DeviceRead(DeviceBase):
    id: int
    project_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DeviceFull(BaseModel):
    reference: DeviceRead
    kip: Optional[KipRead] = None
    zra: Optional[ZraRead] = None
    data_type: Literal["kip", "zra", "unknown"] = "unknown"


class DeviceDeleteResult(BaseModel):
    device_id: int
    removed_devices: int = 0
    removed_kip: int = 0
    removed_zra: int = 0
    removed_assignments: int = 0


class DeletedCount(BaseModel):
    deleted_count: int = Field(..., description="Количество удалённых строк")


# =============================================================================
# 3. Дерево оборудования
# =============================================================================
class TreeNodeRead(BaseModel):
    """Узел дерева, построенного по сегментам кода оборудования."""
    id: str
    name: str
    children: Dict[str, "TreeNodeRead"] = Field(default_factory=dict, description="Дочерние узлы по идентификатору")
    devices: List[DeviceRead] = Field(default_factory=list)
    leaf_device: Optional[DeviceRead] = None

    class Config:
        from_attributes = True


class PrefixGroupRead(BaseModel):
    prefix: str
    devices: List[DeviceRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class TypeGroupRead(BaseModel):
    device_type: str
    device_count: int = 0
    groups: List[PrefixGroupRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


# =============================================================================
# 4. Наборы фильтров
# =============================================================================
class FilterPresetBase(SQLModel):
    owner: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=100)
    project_id: Optional[int] = None
    filters: Dict[str, Any] = Field(default_factory=dict)


class FilterPresetCreate(FilterPresetBase):
    pass


class FilterPresetUpdate(SQLModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    project_id: Optional[int] = None
    filters: Optional[Dict[str, Any]] = None


class FilterPresetRead(FilterPresetBase):
    id: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
