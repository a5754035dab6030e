# kipzra/domains/adm/crud.py

"""
Очистка таблиц справочника.

Перед очисткой таблицы удаляются зависимые строки:
- signals -> назначения сигналов;
- devices -> детали КИП/ЗРА и назначения.
После изменения назначений total_count сигналов пересчитывается.
"""

import logging
from typing import Dict, List, Type

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.exceptions import NotFoundError, PersistenceError
from kipzra.domains.ref import crud as ref_crud
from kipzra.domains.ref.models import Device, FilterPreset, Kip, Zra
from kipzra.domains.sig import crud as sig_crud
from kipzra.domains.sig.models import DeviceSignal, DeviceTypeSignal, Signal, SignalTypeDefinition

logger = logging.getLogger(__name__)

CLEARABLE_TABLES: Dict[str, Type[SQLModel]] = {
    model.__tablename__: model
    for model in (Signal, DeviceSignal, DeviceTypeSignal, SignalTypeDefinition, Device, Kip, Zra, FilterPreset)
}


async def list_tables(db: AsyncSession) -> List[Dict[str, object]]:
    """Таблицы, доступные для очистки, с количеством строк."""
    tables = []
    for name in sorted(CLEARABLE_TABLES):
        model = CLEARABLE_TABLES[name]
        count = (await db.execute(select(func.count()).select_from(model))).scalar_one()
        tables.append({"name": name, "row_count": count})
    return tables


async def clear_table(db: AsyncSession, *, name: str) -> int:
    """Очищает таблицу и возвращает количество удалённых строк."""
    model = CLEARABLE_TABLES.get(name)
    if model is None:
        raise NotFoundError(f"Table '{name}' not found", kind="table")

    if model is Device:
        return await ref_crud.device.clear(db)
    if model is Signal:
        return await sig_crud.signal.clear(db)

    try:
        result = await db.execute(delete(model).execution_options(synchronize_session=False))
        deleted = result.rowcount or 0
        if model is DeviceSignal:
            await sig_crud.recompute_signal_totals(db)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError() from e

    logger.info("Table %s cleared (%d rows)", name, deleted)
    return deleted
