# kipzra/domains/ref/routers.py

"""
API-маршруты домена 'ref': устройства, дерево оборудования, наборы фильтров.
"""

from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core import dependencies as deps
from kipzra.domains.ref import crud as ref_crud
from kipzra.domains.ref import schemas as ref_schemas
from kipzra.domains.ref import services as ref_services

router = APIRouter(
    tags=["Device Reference"],
    responses={404: {"description": "Not found"}},
)

CodeField = Literal["equipment_code", "position_code"]


# =============================================================================
# 1. Дерево оборудования
# =============================================================================
@router.get("/device-tree", response_model=ref_schemas.TreeNodeRead, summary="Дерево оборудования")
async def read_device_tree(
    project_id: Optional[int] = Depends(deps.project_scope),
    code_field: CodeField = Query("equipment_code", description="Поле, по которому строится дерево"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Строит дерево по сегментам кода оборудования.
    Устройства без кода в дерево не включаются.
    """
    devices = await ref_crud.device.search(db, project_id=project_id)
    root = ref_services.build_tree(devices, code_field=code_field)
    return ref_schemas.TreeNodeRead.model_validate(root, from_attributes=True)


@router.get("/device-tree/by-type", response_model=List[ref_schemas.TypeGroupRead], summary="Устройства по типам и префиксам")
async def read_device_tree_by_type(
    project_id: Optional[int] = Depends(deps.project_scope),
    code_field: CodeField = Query("equipment_code"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    devices = await ref_crud.device.search(db, project_id=project_id)
    groups = ref_services.build_type_groups(devices, code_field=code_field)
    return [ref_schemas.TypeGroupRead.model_validate(group, from_attributes=True) for group in groups]


# =============================================================================
# 2. Устройства
# =============================================================================
@router.get("/devices", response_model=List[ref_schemas.DeviceRead], summary="Список устройств")
async def read_devices(
    project_id: Optional[int] = Depends(deps.project_scope),
    search: Optional[str] = Query(None, description="Подстрока для поиска"),
    device_type: Optional[str] = Query(None),
    skip: int = 0,
    limit: Optional[int] = None,
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await ref_crud.device.search(
        db, project_id=project_id, search=search, device_type=device_type, skip=skip, limit=limit
    )


@router.get("/devices/types", response_model=List[str], summary="Уникальные типы устройств")
async def read_device_types(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await ref_crud.device.get_unique_types(db, project_id=project_id)


@router.post("/devices", response_model=ref_schemas.DeviceFull, status_code=status.HTTP_201_CREATED, summary="Создать устройство")
async def create_device(
    device_in: ref_schemas.DeviceCreate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Создаёт устройство и детали одной транзакцией.
    - `data_type`: `kip` или `zra`
    - `kip` / `zra`: необязательные поля деталей
    """
    return await ref_crud.device.create_with_detail(db, obj_in=device_in)


@router.delete("/devices/clear", response_model=ref_schemas.DeletedCount, summary="Удалить все устройства")
async def clear_devices(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    deleted = await ref_crud.device.clear(db, project_id=project_id)
    return ref_schemas.DeletedCount(deleted_count=deleted)


@router.get("/devices/{device_id}", response_model=ref_schemas.DeviceFull, summary="Устройство с деталями")
async def read_device(device_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    full = await ref_crud.device.get_full(db, id=device_id)
    if full is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return full


@router.put("/devices/{device_id}", response_model=ref_schemas.DeviceFull, summary="Изменить устройство")
async def update_device(
    device_id: int,
    device_in: ref_schemas.DeviceUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    db_device = await ref_crud.device.get(db, id=device_id)
    if db_device is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return await ref_crud.device.update_with_detail(db, db_obj=db_device, obj_in=device_in)


@router.delete("/devices/{device_id}", response_model=ref_schemas.DeviceDeleteResult, summary="Удалить устройство")
async def delete_device(device_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    """
    Удаляет устройство вместе с деталями КИП/ЗРА и назначениями сигналов.
    """
    return await ref_crud.device.remove_with_cascade(db, id=device_id)


# =============================================================================
# 3. Наборы фильтров
# =============================================================================
@router.get("/filter-presets", response_model=List[ref_schemas.FilterPresetRead], summary="Наборы фильтров пользователя")
async def read_filter_presets(
    owner: str = Query(..., min_length=1),
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await ref_crud.filter_preset.get_for_owner(db, owner=owner, project_id=project_id)


@router.post(
    "/filter-presets",
    response_model=ref_schemas.FilterPresetRead,
    status_code=status.HTTP_201_CREATED,
    summary="Сохранить набор фильтров",
)
async def create_filter_preset(
    preset_in: ref_schemas.FilterPresetCreate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await ref_crud.filter_preset.create(db, obj_in=preset_in)


@router.put("/filter-presets/{preset_id}", response_model=ref_schemas.FilterPresetRead, summary="Изменить набор фильтров")
async def update_filter_preset(
    preset_id: int,
    preset_in: ref_schemas.FilterPresetUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    db_preset = await ref_crud.filter_preset.get(db, id=preset_id)
    if db_preset is None:
        raise HTTPException(status_code=404, detail="Filter preset not found")
    return await ref_crud.filter_preset.update(db, db_obj=db_preset, obj_in=preset_in)


@router.delete("/filter-presets/{preset_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Удалить набор фильтров")
async def delete_filter_preset(preset_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_preset = await ref_crud.filter_preset.delete(db, id=preset_id)
    if db_preset is None:
        raise HTTPException(status_code=404, detail="Filter preset not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
