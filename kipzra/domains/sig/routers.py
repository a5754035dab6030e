# kipzra/domains/sig/routers.py

"""
API-маршруты домена 'sig': сигналы, назначения устройствам,
счётчики по типам устройств, справочник кодов типов сигналов,
сводка и массовое назначение.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core import dependencies as deps
from kipzra.domains.ref import crud as ref_crud
from kipzra.domains.ref.schemas import DeletedCount
from kipzra.domains.sig import crud as sig_crud
from kipzra.domains.sig import schemas as sig_schemas
from kipzra.domains.sig import services as sig_services

router = APIRouter(
    tags=["Signals"],
    responses={404: {"description": "Not found"}},
)


# =============================================================================
# 1. Сводка и массовое назначение
# =============================================================================
@router.get("/summary", response_model=sig_schemas.SignalsSummary, summary="Сводка сигналов по типам устройств")
async def read_signals_summary(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Количество AI/AO/DI/DO по типам устройств и итоги.
    Если данные назначений недоступны, используются счётчики (`degraded=true`).
    """
    return await sig_services.get_signals_summary(db, project_id=project_id)


@router.get(
    "/summary/by-signal-type",
    response_model=List[sig_schemas.SignalTypeSummaryRow],
    summary="Сводка по типам сигналов",
)
async def read_summary_by_signal_type(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await sig_crud.signal.summary_by_type(db, project_id=project_id)


@router.post("/assign-type/{device_type}", response_model=sig_schemas.AssignTypeResult, summary="Назначить сигналы типу устройства")
async def assign_signals_to_type(
    device_type: str,
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Назначает сигналы с категорией `device_type` всем устройствам этого типа.
    Уже существующие назначения не изменяются.
    """
    assigned = await sig_services.assign_signals_to_type(db, device_type, project_id)
    return sig_schemas.AssignTypeResult(device_type=device_type, assigned_count=assigned)


@router.post("/assign-all", response_model=sig_schemas.AssignAllResult, summary="Назначить сигналы всем типам устройств")
async def assign_signals_to_all_types(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await sig_services.assign_signals_to_all_types(db, project_id)


@router.post("/recompute-totals", response_model=sig_schemas.RecomputeResult, summary="Пересчитать total_count сигналов")
async def recompute_totals(db: AsyncSession = Depends(deps.get_db_session)):
    updated = await sig_services.recompute_all_totals(db)
    return sig_schemas.RecomputeResult(updated_signals=updated)


# =============================================================================
# 2. Сигналы
# =============================================================================
@router.get("/signals", response_model=List[sig_schemas.SignalRead], summary="Список сигналов")
async def read_signals(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await sig_crud.signal.get_list(db, project_id=project_id)


@router.get("/signals/by-type/{signal_type}", response_model=List[sig_schemas.SignalRead], summary="Сигналы заданного типа")
async def read_signals_by_type(
    signal_type: str,
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await sig_crud.signal.get_list(db, project_id=project_id, signal_type=signal_type)


@router.post("/signals", response_model=sig_schemas.SignalRead, status_code=status.HTTP_201_CREATED, summary="Создать сигнал")
async def create_signal(
    signal_in: sig_schemas.SignalCreate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Создаёт сигнал. Тип приводится к AI/AO/DI/DO; пара имя+тип уникальна.
    """
    return await sig_crud.signal.create(db, obj_in=signal_in)


@router.delete("/signals/clear", response_model=DeletedCount, summary="Удалить все сигналы")
async def clear_signals(db: AsyncSession = Depends(deps.get_db_session)):
    deleted = await sig_crud.signal.clear(db)
    return DeletedCount(deleted_count=deleted)


@router.get("/signals/{signal_id}", response_model=sig_schemas.SignalRead, summary="Сигнал по ID")
async def read_signal(signal_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_signal = await sig_crud.signal.get(db, id=signal_id)
    if db_signal is None:
        raise HTTPException(status_code=404, detail="Signal not found")
    return db_signal


@router.put("/signals/{signal_id}", response_model=sig_schemas.SignalRead, summary="Изменить сигнал")
async def update_signal(
    signal_id: int,
    signal_in: sig_schemas.SignalUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    db_signal = await sig_crud.signal.get(db, id=signal_id)
    if db_signal is None:
        raise HTTPException(status_code=404, detail="Signal not found")
    return await sig_crud.signal.update(db, db_obj=db_signal, obj_in=signal_in)


@router.delete("/signals/{signal_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Удалить сигнал")
async def delete_signal(signal_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    await sig_crud.signal.remove(db, id=signal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# 3. Назначения сигналов устройству
# =============================================================================
@router.get("/devices/{device_id}/signals", response_model=List[sig_schemas.DeviceSignalRead], summary="Сигналы устройства")
async def read_device_signals(device_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    if await ref_crud.device.get(db, id=device_id) is None:
        raise HTTPException(status_code=404, detail="Device not found")
    return await sig_crud.device_signal.get_for_device(db, device_id=device_id)


@router.post("/devices/{device_id}/signals", response_model=sig_schemas.DeviceSignalRead, summary="Назначить сигнал устройству")
async def assign_signal_to_device(
    device_id: int,
    assign_in: sig_schemas.DeviceSignalAssign,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Назначает сигнал устройству или меняет количество (`count >= 0`).
    """
    db_obj = await sig_crud.device_signal.assign(db, device_id=device_id, obj_in=assign_in)
    return sig_schemas.DeviceSignalRead(
        id=db_obj.id, device_id=db_obj.device_id, signal_id=db_obj.signal_id, count=db_obj.count
    )


@router.delete(
    "/devices/{device_id}/signals/{signal_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Снять сигнал с устройства",
)
async def remove_signal_from_device(
    device_id: int,
    signal_id: int,
    db: AsyncSession = Depends(deps.get_db_session),
):
    await sig_crud.device_signal.unassign(db, device_id=device_id, signal_id=signal_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# 4. Счётчики сигналов по типам устройств
# =============================================================================
@router.get("/device-type-signals", response_model=List[sig_schemas.DeviceTypeSignalRead], summary="Счётчики по типам устройств")
async def read_device_type_signals(db: AsyncSession = Depends(deps.get_db_session)):
    return await sig_crud.device_type_signal.get_all(db)


@router.post("/device-type-signals", response_model=sig_schemas.DeviceTypeSignalRead, summary="Создать или изменить счётчики")
async def upsert_device_type_signal(
    counter_in: sig_schemas.DeviceTypeSignalUpsert,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Создаёт или обновляет счётчики AI/AO/DI/DO для типа устройства.
    - `device_type`: обязателен
    """
    return await sig_crud.device_type_signal.upsert(db, obj_in=counter_in)


@router.delete("/device-type-signals/clear", response_model=DeletedCount, summary="Удалить все счётчики")
async def clear_device_type_signals(db: AsyncSession = Depends(deps.get_db_session)):
    deleted = await sig_crud.device_type_signal.clear(db)
    return DeletedCount(deleted_count=deleted)


@router.get("/device-type-signals/{device_type}", response_model=sig_schemas.DeviceTypeSignalRead, summary="Счётчики типа устройства")
async def read_device_type_signal(device_type: str, db: AsyncSession = Depends(deps.get_db_session)):
    db_obj = await sig_crud.device_type_signal.get_by_device_type(db, device_type=device_type)
    if db_obj is None:
        raise HTTPException(status_code=404, detail="Device type signal counters not found")
    return db_obj


@router.delete("/device-type-signals/{device_type}", status_code=status.HTTP_204_NO_CONTENT, summary="Удалить счётчики типа")
async def delete_device_type_signal(device_type: str, db: AsyncSession = Depends(deps.get_db_session)):
    await sig_crud.device_type_signal.remove_by_device_type(db, device_type=device_type)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================================
# 5. Справочник кодов типов сигналов
# =============================================================================
@router.get("/signal-types", response_model=List[sig_schemas.SignalTypeDefinitionRead], summary="Коды типов сигналов")
async def read_signal_types(db: AsyncSession = Depends(deps.get_db_session)):
    return await sig_crud.signal_type_definition.get_all(db)


@router.post(
    "/signal-types",
    response_model=sig_schemas.SignalTypeDefinitionRead,
    status_code=status.HTTP_201_CREATED,
    summary="Создать код типа сигнала",
)
async def create_signal_type(
    signal_type_in: sig_schemas.SignalTypeDefinitionCreate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Регистрирует код, который принимается везде, где ожидается тип сигнала.
    - `code`: уникален без учёта регистра
    - `category`: AI / AO / DI / DO или синоним
    """
    return await sig_crud.signal_type_definition.create(db, obj_in=signal_type_in)


@router.put("/signal-types/{signal_type_id}", response_model=sig_schemas.SignalTypeDefinitionRead, summary="Изменить код типа сигнала")
async def update_signal_type(
    signal_type_id: int,
    signal_type_in: sig_schemas.SignalTypeDefinitionUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    db_obj = await sig_crud.signal_type_definition.get(db, id=signal_type_id)
    if db_obj is None:
        raise HTTPException(status_code=404, detail="Signal type not found")
    return await sig_crud.signal_type_definition.update(db, db_obj=db_obj, obj_in=signal_type_in)


@router.delete("/signal-types/{signal_type_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Удалить код типа сигнала")
async def delete_signal_type(signal_type_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    await sig_crud.signal_type_definition.remove(db, id=signal_type_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
