# kipzra/domains/sig/services.py

"""
Сводка сигналов по типам устройств и массовое назначение сигналов.

Сводка опирается на три источника:
- счётчики device_type_signals (базовый слой, всегда доступен);
- количество устройств каждого типа из справочника;
- суммы назначений device_signals (необязательное уточнение).

Если уточняющий запрос невозможен или завершился ошибкой, сводка
строится только по счётчикам, а ответ помечается как degraded.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import func, inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.exceptions import AggregationDegradedError, KipZraError, NotFoundError, PersistenceError
from kipzra.domains.ref.models import Device
from kipzra.domains.sig import crud as sig_crud
from kipzra.domains.sig import schemas as sig_schemas
from kipzra.domains.sig.models import DeviceSignal, DeviceTypeSignal, Signal, SignalType

logger = logging.getLogger(__name__)

COUNT_FIELDS: Dict[SignalType, str] = {
    SignalType.AI: "ai_count",
    SignalType.AO: "ao_count",
    SignalType.DI: "di_count",
    SignalType.DO: "do_count",
}


# =============================================================================
# 1. Результат уточняющего запроса
# =============================================================================
@dataclass
class Enriched:
    """Суммы назначений по парам (тип устройства, тип сигнала)."""
    counts: Dict[Tuple[str, str], int] = field(default_factory=dict)


@dataclass
class BaselineOnly:
    """Назначения недоступны; используются только счётчики."""
    reason: str = ""


EnrichmentResult = Union[Enriched, BaselineOnly]


# =============================================================================
# 2. Сводка
# =============================================================================
async def _load_counters(db: AsyncSession) -> Dict[str, Dict[str, int]]:
    statement = select(
        DeviceTypeSignal.device_type,
        DeviceTypeSignal.ai_count,
        DeviceTypeSignal.ao_count,
        DeviceTypeSignal.di_count,
        DeviceTypeSignal.do_count,
    )
    rows = (await db.execute(statement)).all()
    return {
        row.device_type: {
            "ai_count": row.ai_count or 0,
            "ao_count": row.ao_count or 0,
            "di_count": row.di_count or 0,
            "do_count": row.do_count or 0,
        }
        for row in rows
    }


async def _load_device_counts(db: AsyncSession, project_id: Optional[int]) -> Dict[str, int]:
    statement = (
        select(Device.device_type, func.count(Device.id))
        .where(Device.device_type.is_not(None), Device.device_type != "")
        .group_by(Device.device_type)
    )
    if project_id is not None:
        statement = statement.where(Device.project_id == project_id)
    return {device_type: count for device_type, count in (await db.execute(statement)).all()}


async def _assignment_tables_available(db: AsyncSession) -> bool:
    required = (DeviceSignal.__tablename__, Signal.__tablename__, Device.__tablename__)
    conn = await db.connection()

    def _check(sync_conn) -> bool:
        inspector = inspect(sync_conn)
        return all(inspector.has_table(name) for name in required)

    return await conn.run_sync(_check)


async def _query_assignment_sums(db: AsyncSession, project_id: Optional[int]) -> Dict[Tuple[str, str], int]:
    """
    Суммы DeviceSignal.count по (тип устройства, тип сигнала).
    Любая ошибка запроса превращается в AggregationDegradedError.
    """
    try:
        if not await _assignment_tables_available(db):
            raise AggregationDegradedError("assignment tables are missing", kind="degraded")

        statement = (
            select(Device.device_type, Signal.type, func.coalesce(func.sum(DeviceSignal.count), 0))
            .select_from(DeviceSignal)
            .join(Device, Device.id == DeviceSignal.device_id)
            .join(Signal, Signal.id == DeviceSignal.signal_id)
            .group_by(Device.device_type, Signal.type)
        )
        if project_id is not None:
            statement = statement.where(Device.project_id == project_id)
        rows = (await db.execute(statement)).all()
    except SQLAlchemyError as e:
        raise AggregationDegradedError(f"assignment query failed: {e}", kind="degraded") from e

    return {(device_type, signal_type): int(total or 0) for device_type, signal_type, total in rows}


async def enrich_with_assignments(db: AsyncSession, project_id: Optional[int] = None) -> EnrichmentResult:
    """Уточнение сводки по назначениям; при сбое - BaselineOnly."""
    try:
        return Enriched(counts=await _query_assignment_sums(db, project_id))
    except AggregationDegradedError as e:
        logger.warning("Signal summary degraded to counters only: %s", e.message)
        # после ошибки запроса PostgreSQL не принимает команды до отката
        await db.rollback()
        return BaselineOnly(reason=e.message)


def reconcile(
    counters: Dict[str, Dict[str, int]],
    device_counts: Dict[str, int],
    enrichment: EnrichmentResult,
    project_id: Optional[int] = None,
) -> sig_schemas.SignalsSummary:
    """
    Сводит счётчики и назначения в строки по типам устройств.

    Пара (тип устройства, тип сигнала), присутствующая в результате
    уточнения, берётся из назначений, даже если сумма равна нулю.
    Остальные пары берутся из счётчиков.
    """
    device_types = list(counters)
    if project_id is not None:
        device_types = [t for t in device_types if t in device_counts]

    rows: List[sig_schemas.TypeSignalRow] = []
    for device_type in sorted(device_types):
        values = {}
        from_assignments = False
        for signal_type, count_field in COUNT_FIELDS.items():
            key = (device_type, signal_type.value)
            if isinstance(enrichment, Enriched) and key in enrichment.counts:
                values[count_field] = enrichment.counts[key]
                from_assignments = True
            else:
                values[count_field] = counters[device_type].get(count_field, 0)
        rows.append(sig_schemas.TypeSignalRow(
            device_type=device_type,
            device_count=device_counts.get(device_type, 0),
            source="assignments" if from_assignments else "counters",
            **values,
        ))

    totals = sig_schemas.SignalTotals(
        total_ai=sum(r.ai_count for r in rows),
        total_ao=sum(r.ao_count for r in rows),
        total_di=sum(r.di_count for r in rows),
        total_do=sum(r.do_count for r in rows),
        total_devices=sum(r.device_count for r in rows),
    )
    totals.total_signals = totals.total_ai + totals.total_ao + totals.total_di + totals.total_do

    return sig_schemas.SignalsSummary(
        per_device_type=rows,
        totals=totals,
        degraded=isinstance(enrichment, BaselineOnly),
    )


async def get_signals_summary(db: AsyncSession, project_id: Optional[int] = None) -> sig_schemas.SignalsSummary:
    """
    Сводка сигналов AI/AO/DI/DO по типам устройств и итоги.
    Ошибки базовых запросов передаются вызывающему коду.
    """
    try:
        counters = await _load_counters(db)
        device_counts = await _load_device_counts(db, project_id)
    except SQLAlchemyError as e:
        raise PersistenceError() from e

    enrichment = await enrich_with_assignments(db, project_id)
    return reconcile(counters, device_counts, enrichment, project_id)


# =============================================================================
# 3. Массовое назначение сигналов по типу устройства
# =============================================================================
async def _insert_missing_assignments(db: AsyncSession, device_id: int, signal_ids: List[int]) -> int:
    """
    Добавляет назначения count=1 для пар, которых ещё нет.
    Существующие назначения не меняются. Возвращает число новых строк.
    """
    rows = [{"device_id": device_id, "signal_id": signal_id, "count": 1} for signal_id in signal_ids]
    return await sig_crud.insert_ignoring_conflicts(
        db, DeviceSignal.__table__, rows, index_elements=["device_id", "signal_id"]
    )


async def assign_signals_to_type(db: AsyncSession, device_type: str, project_id: Optional[int] = None) -> int:
    """
    Назначает все сигналы категории device_type каждому устройству этого типа.

    Повторный вызов ничего не добавляет. После вставки total_count
    пересчитывается для всех сигналов. Возвращает число новых назначений.
    """
    signal_ids = [s.id for s in await sig_crud.signal.get_by_category(db, category=device_type)]
    if not signal_ids:
        raise NotFoundError(f"No signals found for device type '{device_type}'", kind="no-signals-for-type")

    statement = select(Device.id).where(Device.device_type == device_type).order_by(Device.id)
    if project_id is not None:
        statement = statement.where(Device.project_id == project_id)
    device_ids = list((await db.execute(statement)).scalars().all())
    if not device_ids:
        raise NotFoundError(f"No devices found for device type '{device_type}'", kind="no-devices-for-type")

    try:
        if await sig_crud.device_type_signal.ensure(db, device_type=device_type):
            logger.info("Created empty signal counters for device type '%s'", device_type)

        assigned = 0
        for device_id in device_ids:
            assigned += await _insert_missing_assignments(db, device_id, signal_ids)

        await sig_crud.recompute_signal_totals(db)
        await db.commit()
    except KipZraError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError() from e

    logger.info(
        "Assigned %d signals to device type '%s' (%d devices, project=%s)",
        assigned, device_type, len(device_ids), project_id,
    )
    return assigned


async def assign_signals_to_all_types(db: AsyncSession, project_id: Optional[int] = None) -> sig_schemas.AssignAllResult:
    """
    Выполняет assign_signals_to_type для каждой непустой категории сигналов.
    Ошибка одного типа не прерывает обработку остальных.
    """
    result = sig_schemas.AssignAllResult()
    for device_type in await sig_crud.signal.get_categories(db):
        try:
            result.assigned_count += await assign_signals_to_type(db, device_type, project_id)
            result.types_succeeded += 1
        except KipZraError as e:
            logger.warning("Signal assignment for device type '%s' failed: %s", device_type, e.message)
            result.types_failed += 1
            result.failures.append(sig_schemas.AssignFailure(device_type=device_type, kind=e.kind, detail=e.message))
    return result


async def recompute_all_totals(db: AsyncSession) -> int:
    """Полный пересчёт total_count всех сигналов."""
    try:
        updated = await sig_crud.recompute_signal_totals(db)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError() from e
    return updated
