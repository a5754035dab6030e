# kipzra/domains/ref/crud.py

"""
CRUD-логика домена 'ref'.

Создание устройства вместе с деталями и каскадное удаление выполняются
одной транзакцией: при любой ошибке изменения откатываются целиком.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, true, update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.crud_base import CRUDBase
from kipzra.core.exceptions import ConflictError, KipZraError, NotFoundError, PersistenceError
from kipzra.domains.prj import crud as prj_crud
from kipzra.domains.ref import models as ref_models
from kipzra.domains.ref import schemas as ref_schemas
from kipzra.domains.sig import crud as sig_crud
from kipzra.domains.sig.models import DeviceSignal

logger = logging.getLogger(__name__)


# =============================================================================
# 1. Устройство (Device) CRUD
# =============================================================================
class CRUDDevice(
    CRUDBase[
        ref_models.Device,
        ref_schemas.DeviceCreate,
        ref_schemas.DeviceUpdate
    ]
):
    def __init__(self):
        super().__init__(model=ref_models.Device)

    async def get_by_position(
        self, db: AsyncSession, *, project_id: int, position_code: str
    ) -> Optional[ref_models.Device]:
        statement = select(self.model).where(
            self.model.project_id == project_id,
            self.model.position_code == position_code,
        )
        result = await db.execute(statement)
        return result.scalars().one_or_none()

    async def search(
        self,
        db: AsyncSession,
        *,
        project_id: Optional[int] = None,
        search: Optional[str] = None,
        device_type: Optional[str] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[ref_models.Device]:
        """
        Устройства, упорядоченные по позиционному обозначению.
        search ищет подстроку в позиции, коде оборудования, типе и описании.
        """
        statement = select(self.model)
        if project_id is not None:
            statement = statement.where(self.model.project_id == project_id)
        if device_type:
            statement = statement.where(self.model.device_type == device_type)
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(or_(
                self.model.position_code.ilike(pattern),
                self.model.equipment_code.ilike(pattern),
                self.model.device_type.ilike(pattern),
                self.model.description.ilike(pattern),
            ))
        statement = statement.order_by(self.model.position_code, self.model.id).offset(skip)
        if limit is not None:
            statement = statement.limit(limit)
        result = await db.execute(statement)
        return result.scalars().all()

    async def get_unique_types(self, db: AsyncSession, *, project_id: Optional[int] = None) -> List[str]:
        statement = select(self.model.device_type).where(
            self.model.device_type.is_not(None), self.model.device_type != ""
        )
        if project_id is not None:
            statement = statement.where(self.model.project_id == project_id)
        result = await db.execute(statement.distinct().order_by(self.model.device_type))
        return list(result.scalars().all())

    async def get_full(self, db: AsyncSession, *, id: int) -> Optional[Dict[str, Any]]:
        """Устройство с деталями: {reference, kip, zra, data_type}."""
        device = await self.get(db, id=id)
        if device is None:
            return None
        kip = (await db.execute(
            select(ref_models.Kip).where(ref_models.Kip.device_id == id)
        )).scalars().one_or_none()
        zra = (await db.execute(
            select(ref_models.Zra).where(ref_models.Zra.device_id == id)
        )).scalars().one_or_none()
        data_type = "kip" if kip else "zra" if zra else "unknown"
        return {"reference": device, "kip": kip, "zra": zra, "data_type": data_type}

    async def create_with_detail(self, db: AsyncSession, *, obj_in: ref_schemas.DeviceCreate) -> Dict[str, Any]:
        """
        Создаёт устройство и, в зависимости от data_type, запись КИП или ЗРА.
        """
        project_id = obj_in.project_id
        if project_id is None:
            project_id = (await prj_crud.project.ensure_default(db)).id
        elif await prj_crud.project.get(db, id=project_id) is None:
            raise NotFoundError(f"Project {project_id} not found", kind="project")

        if await self.get_by_position(db, project_id=project_id, position_code=obj_in.position_code):
            raise ConflictError(
                f"Device '{obj_in.position_code}' already exists in this project", kind="duplicate"
            )

        data_type = obj_in.data_type
        if data_type is None:
            data_type = "kip" if obj_in.kip is not None else "zra" if obj_in.zra is not None else None

        device_data = obj_in.model_dump(exclude={"project_id", "data_type", "kip", "zra"})
        try:
            device = self.model(project_id=project_id, **device_data)
            db.add(device)
            await db.flush()

            if data_type == "kip":
                kip_data = obj_in.kip.model_dump() if obj_in.kip else {}
                db.add(ref_models.Kip(device_id=device.id, **kip_data))
            elif data_type == "zra":
                zra_data = obj_in.zra.model_dump() if obj_in.zra else {}
                db.add(ref_models.Zra(device_id=device.id, **zra_data))

            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Device violates a uniqueness constraint", kind="duplicate") from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e

        logger.info("Device %s created in project %s (%s)", device.position_code, project_id, data_type or "no details")
        return await self.get_full(db, id=device.id)

    async def update_with_detail(
        self, db: AsyncSession, *, db_obj: ref_models.Device, obj_in: ref_schemas.DeviceUpdate
    ) -> Dict[str, Any]:
        """Обновляет устройство и переданные детали КИП/ЗРА (создаёт их при отсутствии)."""
        update_data = obj_in.model_dump(exclude_unset=True, exclude={"kip", "zra"})
        new_position = update_data.get("position_code")
        if new_position and new_position != db_obj.position_code:
            if await self.get_by_position(db, project_id=db_obj.project_id, position_code=new_position):
                raise ConflictError(f"Device '{new_position}' already exists in this project", kind="duplicate")

        try:
            for key, value in update_data.items():
                setattr(db_obj, key, value)
            db.add(db_obj)

            for detail_model, payload in ((ref_models.Kip, obj_in.kip), (ref_models.Zra, obj_in.zra)):
                if payload is None:
                    continue
                detail = (await db.execute(
                    select(detail_model).where(detail_model.device_id == db_obj.id)
                )).scalars().one_or_none()
                if detail is None:
                    db.add(detail_model(device_id=db_obj.id, **payload.model_dump()))
                else:
                    for key, value in payload.model_dump(exclude_unset=True).items():
                        setattr(detail, key, value)
                    db.add(detail)

            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Device violates a uniqueness constraint", kind="duplicate") from e
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e

        await db.refresh(db_obj)
        return await self.get_full(db, id=db_obj.id)

    async def _delete_dependents(self, db: AsyncSession, *device_conditions: Any) -> Dict[str, int]:
        """
        Удаляет детали и назначения устройств, отобранных условиями.
        Возвращает счётчики удалённых строк и затронутые сигналы. Без commit.
        """
        device_ids = select(self.model.id).where(*device_conditions)
        signal_ids = (await db.execute(
            select(DeviceSignal.signal_id).where(DeviceSignal.device_id.in_(device_ids)).distinct()
        )).scalars().all()

        removed_assignments = await sig_crud.device_signal.delete_where(db, DeviceSignal.device_id.in_(device_ids))
        removed_kip = await kip.delete_where(db, ref_models.Kip.device_id.in_(device_ids))
        removed_zra = await zra.delete_where(db, ref_models.Zra.device_id.in_(device_ids))
        await db.execute(
            sa_update(self.model)
            .where(self.model.parent_id.in_(device_ids))
            .values(parent_id=None)
        )
        return {
            "removed_assignments": removed_assignments,
            "removed_kip": removed_kip,
            "removed_zra": removed_zra,
            "signal_ids": list(signal_ids),
        }

    async def remove_with_cascade(self, db: AsyncSession, *, id: int) -> ref_schemas.DeviceDeleteResult:
        """
        Удаляет устройство вместе с деталями КИП/ЗРА и назначениями сигналов
        и пересчитывает total_count затронутых сигналов.
        """
        device = await self.get(db, id=id)
        if device is None:
            raise NotFoundError(f"Device {id} not found", kind="device")

        try:
            removed = await self._delete_dependents(db, self.model.id == id)
            removed_devices = await self.delete_where(db, self.model.id == id)
            await sig_crud.recompute_signal_totals(db, signal_ids=removed["signal_ids"])
            await db.commit()
        except KipZraError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e

        logger.info(
            "Device %s deleted (kip=%d, zra=%d, assignments=%d)",
            id, removed["removed_kip"], removed["removed_zra"], removed["removed_assignments"],
        )
        return ref_schemas.DeviceDeleteResult(
            device_id=id,
            removed_devices=removed_devices,
            removed_kip=removed["removed_kip"],
            removed_zra=removed["removed_zra"],
            removed_assignments=removed["removed_assignments"],
        )

    async def clear(self, db: AsyncSession, *, project_id: Optional[int] = None) -> int:
        """
        Удаляет все устройства (проекта, если задан) со всеми зависимыми
        строками. Возвращает число удалённых устройств.
        """
        conditions = [self.model.project_id == project_id] if project_id is not None else [true()]
        try:
            removed = await self._delete_dependents(db, *conditions)
            deleted = await self.delete_where(db, *conditions)
            await sig_crud.recompute_signal_totals(db, signal_ids=removed["signal_ids"])
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e
        logger.info("Cleared %d devices (project=%s)", deleted, project_id)
        return deleted


device = CRUDDevice()


# =============================================================================
# 2. Детали КИП / ЗРА
# =============================================================================
class CRUDKip(CRUDBase[ref_models.Kip, ref_schemas.KipData, ref_schemas.KipData]):
    def __init__(self):
        super().__init__(model=ref_models.Kip)


class CRUDZra(CRUDBase[ref_models.Zra, ref_schemas.ZraData, ref_schemas.ZraData]):
    def __init__(self):
        super().__init__(model=ref_models.Zra)


kip = CRUDKip()
zra = CRUDZra()


# =============================================================================
# 3. Наборы фильтров (FilterPreset) CRUD
# =============================================================================
class CRUDFilterPreset(
    CRUDBase[
        ref_models.FilterPreset,
        ref_schemas.FilterPresetCreate,
        ref_schemas.FilterPresetUpdate
    ]
):
    def __init__(self):
        super().__init__(model=ref_models.FilterPreset)

    async def get_for_owner(
        self, db: AsyncSession, *, owner: str, project_id: Optional[int] = None
    ) -> List[ref_models.FilterPreset]:
        """Наборы владельца; при заданном проекте - его наборы и общие (без проекта)."""
        statement = select(self.model).where(self.model.owner == owner)
        if project_id is not None:
            statement = statement.where(
                or_(self.model.project_id == project_id, self.model.project_id.is_(None))
            )
        result = await db.execute(statement.order_by(self.model.name))
        return result.scalars().all()


filter_preset = CRUDFilterPreset()
