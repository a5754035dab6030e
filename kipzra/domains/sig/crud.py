# kipzra/domains/sig/crud.py

"""
CRUD-логика домена 'sig': сигналы, назначения, счётчики по типам устройств
и справочник кодов типов сигналов.

total_count сигнала - производное значение. После любого изменения
назначений он пересчитывается из device_signals целиком
(recompute_signal_totals), а не увеличивается на разницу.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import Table, func, select as sa_select, update as sa_update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.crud_base import CRUDBase
from kipzra.core.exceptions import ConflictError, KipZraError, NotFoundError, PersistenceError, ValidationError
from kipzra.domains.ref.models import Device
from kipzra.domains.sig import models as sig_models
from kipzra.domains.sig import schemas as sig_schemas
from kipzra.domains.sig.signal_types import normalize_signal_type, normalize_token

logger = logging.getLogger(__name__)


async def recompute_signal_totals(db: AsyncSession, *, signal_ids: Optional[Iterable[int]] = None) -> int:
    """
    Пересчитывает signals.total_count как сумму count по назначениям.
    Без signal_ids пересчитываются все сигналы. Транзакцию не фиксирует.
    """
    Signal = sig_models.Signal
    DeviceSignal = sig_models.DeviceSignal

    assigned_sum = (
        sa_select(func.coalesce(func.sum(DeviceSignal.count), 0))
        .where(DeviceSignal.signal_id == Signal.id)
        .scalar_subquery()
    )
    statement = sa_update(Signal).values(total_count=assigned_sum)
    if signal_ids is not None:
        ids = list(signal_ids)
        if not ids:
            return 0
        statement = statement.where(Signal.id.in_(ids))
    result = await db.execute(statement.execution_options(synchronize_session=False))
    return result.rowcount or 0


async def insert_ignoring_conflicts(
    db: AsyncSession, table: Table, rows: List[Dict[str, Any]], *, index_elements: List[str]
) -> int:
    """
    INSERT ... ON CONFLICT DO NOTHING (PostgreSQL и SQLite).
    Строки, уже созданные другим запросом, пропускаются без ошибки.
    Транзакцию не фиксирует. Возвращает число вставленных строк.
    """
    if not rows:
        return 0
    insert = sqlite.insert if db.get_bind().dialect.name == "sqlite" else postgresql.insert
    statement = insert(table).values(rows).on_conflict_do_nothing(index_elements=index_elements)
    result = await db.execute(statement)
    return max(result.rowcount or 0, 0)


async def _require_signal_type(db: AsyncSession, raw: Optional[str]) -> str:
    signal_type = normalize_signal_type(raw)
    if signal_type is None:
        signal_type = normalize_signal_type(raw, extra_aliases=await signal_type_definition.get_aliases(db))
    if signal_type is None:
        raise ValidationError(
            f"Unknown signal type '{raw}'. Allowed: AI, AO, DI, DO or a registered signal type code",
            kind="signal-type",
        )
    return signal_type.value


# =============================================================================
# 1. Сигнал (Signal) CRUD
# =============================================================================
class CRUDSignal(
    CRUDBase[
        sig_models.Signal,
        sig_schemas.SignalCreate,
        sig_schemas.SignalUpdate
    ]
):
    def __init__(self):
        super().__init__(model=sig_models.Signal)

    async def get(self, db: AsyncSession, id: Any) -> Optional[sig_models.Signal]:
        # total_count меняется массовым UPDATE, поэтому объект перечитывается
        return await db.get(self.model, id, populate_existing=True)

    async def get_by_name_and_type(
        self, db: AsyncSession, *, name: str, signal_type: str
    ) -> Optional[sig_models.Signal]:
        statement = select(self.model).where(self.model.name == name, self.model.type == signal_type)
        result = await db.execute(statement.execution_options(populate_existing=True))
        return result.scalars().one_or_none()

    async def get_by_category(self, db: AsyncSession, *, category: str) -> List[sig_models.Signal]:
        statement = select(self.model).where(self.model.category == category).order_by(self.model.id)
        result = await db.execute(statement)
        return result.scalars().all()

    async def get_list(
        self, db: AsyncSession, *, project_id: Optional[int] = None, signal_type: Optional[str] = None
    ) -> List[sig_models.Signal]:
        """
        Сигналы по типу и имени. С project_id - только сигналы,
        назначенные устройствам этого проекта.
        """
        statement = select(self.model)
        if signal_type:
            statement = statement.where(self.model.type == await _require_signal_type(db, signal_type))
        if project_id is not None:
            assigned = (
                select(sig_models.DeviceSignal.signal_id)
                .join(Device, Device.id == sig_models.DeviceSignal.device_id)
                .where(Device.project_id == project_id)
            )
            statement = statement.where(self.model.id.in_(assigned))
        result = await db.execute(
            statement.order_by(self.model.type, self.model.name).execution_options(populate_existing=True)
        )
        return result.scalars().all()

    async def get_categories(self, db: AsyncSession) -> List[str]:
        """Непустые категории сигналов (кандидаты типов устройств)."""
        statement = (
            select(self.model.category)
            .where(self.model.category.is_not(None), self.model.category != "")
            .distinct()
            .order_by(self.model.category)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    async def create(self, db: AsyncSession, *, obj_in: sig_schemas.SignalCreate) -> sig_models.Signal:
        signal_type = await _require_signal_type(db, obj_in.type)
        name = obj_in.name.strip()
        if await self.get_by_name_and_type(db, name=name, signal_type=signal_type):
            raise ConflictError(f"Signal '{name}' of type {signal_type} already exists", kind="duplicate")
        data = obj_in.model_dump()
        data.update(name=name, type=signal_type, total_count=0)
        return await super().create(db, obj_in=data)

    async def update(
        self, db: AsyncSession, *, db_obj: sig_models.Signal, obj_in: sig_schemas.SignalUpdate
    ) -> sig_models.Signal:
        update_data = obj_in.model_dump(exclude_unset=True)
        if update_data.get("type") is not None:
            update_data["type"] = await _require_signal_type(db, update_data["type"])
        else:
            update_data.pop("type", None)

        name = update_data.get("name", db_obj.name)
        signal_type = update_data.get("type", db_obj.type)
        if (name, signal_type) != (db_obj.name, db_obj.type):
            existing = await self.get_by_name_and_type(db, name=name, signal_type=signal_type)
            if existing and existing.id != db_obj.id:
                raise ConflictError(f"Signal '{name}' of type {signal_type} already exists", kind="duplicate")
        return await super().update(db, db_obj=db_obj, obj_in=update_data)

    async def remove(self, db: AsyncSession, *, id: int) -> sig_models.Signal:
        """Удаляет сигнал и все его назначения."""
        db_obj = await self.get(db, id=id)
        if db_obj is None:
            raise NotFoundError(f"Signal {id} not found", kind="signal")
        try:
            await device_signal.delete_where(db, sig_models.DeviceSignal.signal_id == id)
            await db.delete(db_obj)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e
        return db_obj

    async def clear(self, db: AsyncSession) -> int:
        """Удаляет все сигналы вместе с назначениями. Возвращает число сигналов."""
        try:
            await device_signal.delete_where(db)
            deleted = await self.delete_where(db)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e
        logger.info("Cleared %d signals", deleted)
        return deleted

    async def summary_by_type(
        self, db: AsyncSession, *, project_id: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """
        Количество сигналов и сумма назначений по каждому типу AI/AO/DI/DO.
        """
        DeviceSignal = sig_models.DeviceSignal
        signal_counts = dict((await db.execute(
            select(self.model.type, func.count(self.model.id)).group_by(self.model.type)
        )).all())

        assigned = (
            select(self.model.type, func.coalesce(func.sum(DeviceSignal.count), 0))
            .join(DeviceSignal, DeviceSignal.signal_id == self.model.id)
        )
        if project_id is not None:
            assigned = assigned.join(Device, Device.id == DeviceSignal.device_id).where(Device.project_id == project_id)
        assigned_counts = dict((await db.execute(assigned.group_by(self.model.type))).all())

        return [
            {
                "type": signal_type.value,
                "signal_count": signal_counts.get(signal_type.value, 0),
                "total_count": int(assigned_counts.get(signal_type.value, 0) or 0),
            }
            for signal_type in sig_models.SignalType
        ]


signal = CRUDSignal()


# =============================================================================
# 2. Назначение сигнала устройству (DeviceSignal) CRUD
# =============================================================================
class CRUDDeviceSignal(
    CRUDBase[
        sig_models.DeviceSignal,
        sig_schemas.DeviceSignalAssign,
        sig_schemas.DeviceSignalAssign
    ]
):
    def __init__(self):
        super().__init__(model=sig_models.DeviceSignal)

    async def get_pair(self, db: AsyncSession, *, device_id: int, signal_id: int) -> Optional[sig_models.DeviceSignal]:
        statement = select(self.model).where(self.model.device_id == device_id, self.model.signal_id == signal_id)
        result = await db.execute(statement)
        return result.scalars().one_or_none()

    async def get_for_device(self, db: AsyncSession, *, device_id: int) -> List[Dict[str, Any]]:
        Signal = sig_models.Signal
        statement = (
            select(self.model, Signal.name, Signal.type, Signal.category)
            .join(Signal, Signal.id == self.model.signal_id)
            .where(self.model.device_id == device_id)
            .order_by(Signal.type, Signal.name)
        )
        result = await db.execute(statement)
        return [
            {
                "id": row.id,
                "device_id": row.device_id,
                "signal_id": row.signal_id,
                "count": row.count,
                "signal_name": name,
                "signal_type": signal_type,
                "signal_category": category,
            }
            for row, name, signal_type, category in result.all()
        ]

    async def assign(
        self, db: AsyncSession, *, device_id: int, obj_in: sig_schemas.DeviceSignalAssign
    ) -> sig_models.DeviceSignal:
        """
        Назначает сигнал устройству или меняет количество существующего
        назначения, затем пересчитывает total_count сигнала.
        """
        if await db.get(Device, device_id) is None:
            raise NotFoundError(f"Device {device_id} not found", kind="device")
        if await db.get(sig_models.Signal, obj_in.signal_id) is None:
            raise NotFoundError(f"Signal {obj_in.signal_id} not found", kind="signal")

        try:
            db_obj = await self.get_pair(db, device_id=device_id, signal_id=obj_in.signal_id)
            if db_obj is None:
                db_obj = self.model(device_id=device_id, signal_id=obj_in.signal_id, count=obj_in.count)
            else:
                db_obj.count = obj_in.count
            db.add(db_obj)
            await db.flush()
            await recompute_signal_totals(db, signal_ids=[obj_in.signal_id])
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Signal is already assigned to this device", kind="duplicate") from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e
        await db.refresh(db_obj)
        return db_obj

    async def unassign(self, db: AsyncSession, *, device_id: int, signal_id: int) -> None:
        db_obj = await self.get_pair(db, device_id=device_id, signal_id=signal_id)
        if db_obj is None:
            raise NotFoundError("Signal is not assigned to this device", kind="assignment")
        try:
            await db.delete(db_obj)
            await db.flush()
            await recompute_signal_totals(db, signal_ids=[signal_id])
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e


device_signal = CRUDDeviceSignal()


# =============================================================================
# 3. Счётчики сигналов по типу устройства (DeviceTypeSignal) CRUD
# =============================================================================
class CRUDDeviceTypeSignal(
    CRUDBase[
        sig_models.DeviceTypeSignal,
        sig_schemas.DeviceTypeSignalUpsert,
        sig_schemas.DeviceTypeSignalUpsert
    ]
):
    def __init__(self):
        super().__init__(model=sig_models.DeviceTypeSignal)

    async def get_by_device_type(self, db: AsyncSession, *, device_type: str) -> Optional[sig_models.DeviceTypeSignal]:
        return await self.get_by_attribute(db, attribute="device_type", value=device_type)

    async def get_all(self, db: AsyncSession) -> List[sig_models.DeviceTypeSignal]:
        return await self.get_filtered(db, order_by_field="device_type", limit=None)

    async def upsert(self, db: AsyncSession, *, obj_in: sig_schemas.DeviceTypeSignalUpsert) -> sig_models.DeviceTypeSignal:
        """Создаёт или обновляет счётчики для типа устройства."""
        device_type = (obj_in.device_type or "").strip()
        if not device_type:
            raise ValidationError("Device type is required", kind="device-type")

        counts = obj_in.model_dump(exclude={"device_type"})
        db_obj = await self.get_by_device_type(db, device_type=device_type)
        if db_obj is None:
            return await super().create(db, obj_in={"device_type": device_type, **counts})
        return await super().update(db, db_obj=db_obj, obj_in=counts)

    async def ensure(self, db: AsyncSession, *, device_type: str) -> bool:
        """
        Добавляет нулевые счётчики для типа, если строки ещё нет.
        Транзакцию не фиксирует. Возвращает True, если строка создана.
        Строка, созданная параллельным запросом, считается существующей.
        """
        row = {"device_type": device_type, "ai_count": 0, "ao_count": 0, "di_count": 0, "do_count": 0}
        created = await insert_ignoring_conflicts(
            db, self.model.__table__, [row], index_elements=["device_type"]
        )
        return created > 0

    async def remove_by_device_type(self, db: AsyncSession, *, device_type: str) -> None:
        db_obj = await self.get_by_device_type(db, device_type=device_type)
        if db_obj is None:
            raise NotFoundError(f"No signal counters for device type '{device_type}'", kind="device-type")
        await super().delete(db, id=db_obj.id)

    async def clear(self, db: AsyncSession) -> int:
        try:
            deleted = await self.delete_where(db)
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e
        logger.info("Cleared %d device type signal counters", deleted)
        return deleted


device_type_signal = CRUDDeviceTypeSignal()


# =============================================================================
# 4. Справочник кодов типов сигналов (SignalTypeDefinition) CRUD
# =============================================================================
def _require_base_type(code: str, raw_category: Optional[str]) -> str:
    category = normalize_signal_type(raw_category)
    if category is None:
        raise ValidationError(
            f"Unknown signal type category '{raw_category}'. Allowed: AI, AO, DI, DO", kind="signal-type"
        )
    builtin = normalize_signal_type(code)
    if builtin is not None and builtin != category:
        raise ValidationError(
            f"Code '{code}' is a built-in alias of {builtin.value} and cannot map to {category.value}",
            kind="signal-type",
        )
    return category.value


class CRUDSignalTypeDefinition(
    CRUDBase[
        sig_models.SignalTypeDefinition,
        sig_schemas.SignalTypeDefinitionCreate,
        sig_schemas.SignalTypeDefinitionUpdate
    ]
):
    def __init__(self):
        super().__init__(model=sig_models.SignalTypeDefinition)

    async def get_by_code(self, db: AsyncSession, *, code: str) -> Optional[sig_models.SignalTypeDefinition]:
        return await self.get_by_attribute(db, attribute="code", value=normalize_token(code))

    async def get_all(self, db: AsyncSession) -> List[sig_models.SignalTypeDefinition]:
        return await self.get_filtered(db, order_by_field="id", limit=None)

    async def get_aliases(self, db: AsyncSession) -> Dict[str, sig_models.SignalType]:
        """Код -> базовый тип для normalize_signal_type."""
        rows = (await db.execute(select(self.model.code, self.model.category))).all()
        return {code: sig_models.SignalType(category) for code, category in rows}

    async def create(
        self, db: AsyncSession, *, obj_in: sig_schemas.SignalTypeDefinitionCreate
    ) -> sig_models.SignalTypeDefinition:
        code = normalize_token(obj_in.code)
        if not code:
            raise ValidationError("Signal type code is required", kind="signal-type")
        category = _require_base_type(code, obj_in.category)
        if await self.get_by_code(db, code=code):
            raise ConflictError(f"Signal type with code '{code}' already exists", kind="duplicate")
        data = obj_in.model_dump()
        data.update(code=code, category=category)
        return await super().create(db, obj_in=data)

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: sig_models.SignalTypeDefinition,
        obj_in: sig_schemas.SignalTypeDefinitionUpdate
    ) -> sig_models.SignalTypeDefinition:
        update_data = obj_in.model_dump(exclude_unset=True)
        code = normalize_token(update_data.pop("code", None)) or db_obj.code
        category = update_data.pop("category", None) or db_obj.category
        update_data.update(code=code, category=_require_base_type(code, category))

        if code != db_obj.code:
            existing = await self.get_by_code(db, code=code)
            if existing and existing.id != db_obj.id:
                raise ConflictError(f"Signal type with code '{code}' already exists", kind="duplicate")
        return await super().update(db, db_obj=db_obj, obj_in=update_data)

    async def remove(self, db: AsyncSession, *, id: int) -> sig_models.SignalTypeDefinition:
        """Удаляет код. Сигналы хранят базовый тип и не затрагиваются."""
        db_obj = await super().delete(db, id=id)
        if db_obj is None:
            raise NotFoundError(f"Signal type {id} not found", kind="signal-type")
        return db_obj


signal_type_definition = CRUDSignalTypeDefinition()
