# kipzra/domains/prj/crud.py

"""
CRUD-логика домена 'prj' (проекты).
"""

import logging
from datetime import datetime, UTC
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.config import settings
from kipzra.core.crud_base import CRUDBase
from kipzra.core.exceptions import ConflictError, KipZraError, PersistenceError, ValidationError
from kipzra.domains.prj import models as prj_models
from kipzra.domains.prj import schemas as prj_schemas
from kipzra.domains.ref.models import Device, Kip, Zra
from kipzra.domains.sig.models import DeviceSignal

logger = logging.getLogger(__name__)


# =============================================================================
# 1. Проект (Project) CRUD
# =============================================================================
class CRUDProject(
    CRUDBase[
        prj_models.Project,
        prj_schemas.ProjectCreate,
        prj_schemas.ProjectUpdate
    ]
):
    def __init__(self):
        super().__init__(model=prj_models.Project)

    async def get_by_code(self, db: AsyncSession, *, code: str) -> Optional[prj_models.Project]:
        statement = select(self.model).where(self.model.code == code.upper())
        result = await db.execute(statement)
        return result.scalars().one_or_none()

    async def get_multi_with_counts(self, db: AsyncSession) -> List[Dict[str, Any]]:
        """
        Активные и архивные проекты (сначала новые) с количеством устройств.
        """
        device_count = (
            select(Device.project_id, func.count(Device.id).label("device_count"))
            .group_by(Device.project_id)
            .subquery()
        )
        statement = (
            select(self.model, func.coalesce(device_count.c.device_count, 0))
            .outerjoin(device_count, device_count.c.project_id == self.model.id)
            .where(self.model.status.in_([
                prj_models.ProjectStatus.ACTIVE.value,
                prj_models.ProjectStatus.ARCHIVED.value,
            ]))
            .order_by(self.model.created_at.desc(), self.model.id.desc())
        )
        result = await db.execute(statement)
        items = []
        for project, count in result.all():
            item = project.model_dump()
            item["device_count"] = count
            items.append(item)
        return items

    async def create(self, db: AsyncSession, *, obj_in: prj_schemas.ProjectCreate) -> prj_models.Project:
        """Проверяет обязательные поля и уникальность кода, затем создаёт проект."""
        if not obj_in.name or not obj_in.code:
            raise ValidationError("Project name and code are required", kind="project")
        if await self.get_by_code(db, code=obj_in.code):
            raise ConflictError(f"Project with code '{obj_in.code}' already exists", kind="project")
        return await super().create(db, obj_in=obj_in.model_dump(mode="json"))

    async def update(
        self, db: AsyncSession, *, db_obj: prj_models.Project, obj_in: prj_schemas.ProjectUpdate
    ) -> prj_models.Project:
        update_data = obj_in.model_dump(exclude_unset=True, mode="json")
        new_code = update_data.get("code")
        if new_code and new_code != db_obj.code:
            if db_obj.code == settings.DEFAULT_PROJECT_CODE:
                raise ValidationError("The default project code cannot be changed", kind="project")
            if await self.get_by_code(db, code=new_code):
                raise ConflictError(f"Project with code '{new_code}' already exists", kind="project")
        return await super().update(db, db_obj=db_obj, obj_in=update_data)

    async def get_stats(self, db: AsyncSession, *, project_id: int) -> prj_schemas.ProjectStats:
        device_count = (await db.execute(
            select(func.count(Device.id)).where(Device.project_id == project_id)
        )).scalar_one()
        kip_count = (await db.execute(
            select(func.count(Kip.id)).join(Device, Device.id == Kip.device_id).where(Device.project_id == project_id)
        )).scalar_one()
        zra_count = (await db.execute(
            select(func.count(Zra.id)).join(Device, Device.id == Zra.device_id).where(Device.project_id == project_id)
        )).scalar_one()
        assignment_count = (await db.execute(
            select(func.count(DeviceSignal.id))
            .join(Device, Device.id == DeviceSignal.device_id)
            .where(Device.project_id == project_id)
        )).scalar_one()
        types = (await db.execute(
            select(Device.device_type)
            .where(Device.project_id == project_id, Device.device_type != "")
            .distinct()
            .order_by(Device.device_type)
        )).scalars().all()
        return prj_schemas.ProjectStats(
            project_id=project_id,
            device_count=device_count,
            kip_count=kip_count,
            zra_count=zra_count,
            assignment_count=assignment_count,
            device_types=list(types),
        )

    async def remove(self, db: AsyncSession, *, db_obj: prj_models.Project, force: bool = False) -> bool:
        """
        Архивирует проект, а при force=True удаляет его окончательно.
        Окончательное удаление возможно только для проекта без устройств.
        Возвращает True, если проект переведён в архив.
        """
        if db_obj.code == settings.DEFAULT_PROJECT_CODE:
            raise ValidationError("The default project cannot be deleted", kind="project")

        if not force:
            await super().update(db, db_obj=db_obj, obj_in={"status": prj_models.ProjectStatus.ARCHIVED.value})
            logger.info("Project %s archived", db_obj.code)
            return True

        device_count = (await db.execute(
            select(func.count(Device.id)).where(Device.project_id == db_obj.id)
        )).scalar_one()
        if device_count:
            raise ValidationError(
                f"Project contains {device_count} devices. Delete the devices first or archive the project.",
                kind="project-not-empty",
            )
        await super().delete(db, id=db_obj.id)
        logger.info("Project %s deleted", db_obj.code)
        return False

    async def export(self, db: AsyncSession, *, db_obj: prj_models.Project) -> Dict[str, Any]:
        """Проект, его устройства и детали КИП/ЗРА в виде JSON-документа."""
        rows = (await db.execute(
            select(Device, Kip, Zra)
            .outerjoin(Kip, Kip.device_id == Device.id)
            .outerjoin(Zra, Zra.device_id == Device.id)
            .where(Device.project_id == db_obj.id)
            .order_by(Device.position_code)
        )).all()
        devices = []
        for device, kip, zra in rows:
            item = device.model_dump(mode="json")
            item["kip"] = kip.model_dump(mode="json", exclude={"id", "device_id"}) if kip else None
            item["zra"] = zra.model_dump(mode="json", exclude={"id", "device_id"}) if zra else None
            devices.append(item)
        return {
            "version": "1.0",
            "exported_at": datetime.now(UTC),
            "project": db_obj.model_dump(),
            "device_count": len(devices),
            "devices": devices,
        }

    async def copy(
        self, db: AsyncSession, *, source: prj_models.Project, obj_in: prj_schemas.ProjectCopyRequest
    ) -> prj_models.Project:
        """
        Создаёт новый проект с копиями устройств и их деталей КИП/ЗРА.
        Выполняется одной транзакцией.
        """
        if not obj_in.name or not obj_in.code:
            raise ValidationError("Project name and code are required", kind="project")
        if await self.get_by_code(db, code=obj_in.code):
            raise ConflictError(f"Project with code '{obj_in.code}' already exists", kind="project")

        try:
            new_project = prj_models.Project(
                name=obj_in.name,
                code=obj_in.code,
                description=obj_in.description if obj_in.description is not None else source.description,
                status=prj_models.ProjectStatus.ACTIVE.value,
                settings=source.settings,
            )
            db.add(new_project)
            await db.flush()

            rows = (await db.execute(
                select(Device, Kip, Zra)
                .outerjoin(Kip, Kip.device_id == Device.id)
                .outerjoin(Zra, Zra.device_id == Device.id)
                .where(Device.project_id == source.id)
                .order_by(Device.id)
            )).all()

            id_map: Dict[int, int] = {}
            copies = []
            for device, kip, zra in rows:
                data = device.model_dump(exclude={"id", "project_id", "parent_id", "created_at", "updated_at"})
                new_device = Device(project_id=new_project.id, **data)
                db.add(new_device)
                await db.flush()
                id_map[device.id] = new_device.id
                copies.append((device, new_device))
                if kip:
                    db.add(Kip(device_id=new_device.id, **kip.model_dump(exclude={"id", "device_id"})))
                if zra:
                    db.add(Zra(device_id=new_device.id, **zra.model_dump(exclude={"id", "device_id"})))

            # родительские ссылки переводятся на копии
            for original, new_device in copies:
                if original.parent_id is not None and original.parent_id in id_map:
                    new_device.parent_id = id_map[original.parent_id]
                    db.add(new_device)

            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            raise ConflictError("Project copy violates a uniqueness constraint", kind="project") from e
        except KipZraError:
            await db.rollback()
            raise
        except SQLAlchemyError as e:
            await db.rollback()
            raise PersistenceError() from e

        await db.refresh(new_project)
        logger.info("Project %s copied to %s (%d devices)", source.code, new_project.code, len(copies))
        return new_project

    async def ensure_default(self, db: AsyncSession) -> prj_models.Project:
        """Возвращает проект по умолчанию, создавая его при отсутствии."""
        project = await self.get_by_code(db, code=settings.DEFAULT_PROJECT_CODE)
        if project is None:
            project = await super().create(db, obj_in={
                "name": "Default project",
                "code": settings.DEFAULT_PROJECT_CODE,
                "description": "Built-in project",
                "status": prj_models.ProjectStatus.ACTIVE.value,
            })
            logger.info("Default project %s created", project.code)
        return project


project = CRUDProject()
