# kipzra/domains/prj/routers.py

"""
API-маршруты домена 'prj' (проекты).
"""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core import dependencies as deps
from kipzra.domains.prj import crud as prj_crud
from kipzra.domains.prj import schemas as prj_schemas

router = APIRouter(
    tags=["Projects"],
    responses={404: {"description": "Not found"}},
)


async def _get_project_or_404(db: AsyncSession, project_id: int):
    db_project = await prj_crud.project.get(db, id=project_id)
    if db_project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return db_project


# =============================================================================
# 1. Проекты
# =============================================================================
@router.get("/projects", response_model=List[prj_schemas.ProjectListItem], summary="Список проектов")
async def read_projects(db: AsyncSession = Depends(deps.get_db_session)):
    """
    Активные и архивные проекты, сначала новые, с количеством устройств.
    """
    return await prj_crud.project.get_multi_with_counts(db)


@router.post("/projects", response_model=prj_schemas.ProjectRead, status_code=status.HTTP_201_CREATED, summary="Создать проект")
async def create_project(
    project_in: prj_schemas.ProjectCreate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Создаёт проект.
    - `name`, `code`: обязательны; код хранится в верхнем регистре и должен быть уникален
    """
    return await prj_crud.project.create(db, obj_in=project_in)


@router.get("/projects/{project_id}", response_model=prj_schemas.ProjectDetail, summary="Проект со статистикой")
async def read_project(project_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_project = await _get_project_or_404(db, project_id)
    stats = await prj_crud.project.get_stats(db, project_id=project_id)
    return prj_schemas.ProjectDetail(**db_project.model_dump(), stats=stats)


@router.put("/projects/{project_id}", response_model=prj_schemas.ProjectRead, summary="Изменить проект")
async def update_project(
    project_id: int,
    project_in: prj_schemas.ProjectUpdate,
    db: AsyncSession = Depends(deps.get_db_session),
):
    db_project = await _get_project_or_404(db, project_id)
    return await prj_crud.project.update(db, db_obj=db_project, obj_in=project_in)


@router.delete("/projects/{project_id}", response_model=prj_schemas.ProjectDeleteResult, summary="Архивировать или удалить проект")
async def delete_project(
    project_id: int,
    force: bool = Query(False, description="Удалить окончательно (только пустой проект)"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Без `force` проект переводится в архив. Проект по умолчанию удалить нельзя.
    """
    db_project = await _get_project_or_404(db, project_id)
    archived = await prj_crud.project.remove(db, db_obj=db_project, force=force)
    return prj_schemas.ProjectDeleteResult(project_id=project_id, archived=archived)


@router.get("/projects/{project_id}/stats", response_model=prj_schemas.ProjectStats, summary="Статистика проекта")
async def read_project_stats(project_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    await _get_project_or_404(db, project_id)
    return await prj_crud.project.get_stats(db, project_id=project_id)


@router.get("/projects/{project_id}/export", response_model=prj_schemas.ProjectExport, summary="Экспорт проекта в JSON")
async def export_project(project_id: int, db: AsyncSession = Depends(deps.get_db_session)):
    db_project = await _get_project_or_404(db, project_id)
    return await prj_crud.project.export(db, db_obj=db_project)


@router.post(
    "/projects/{project_id}/copy",
    response_model=prj_schemas.ProjectRead,
    status_code=status.HTTP_201_CREATED,
    summary="Копировать проект",
)
async def copy_project(
    project_id: int,
    copy_in: prj_schemas.ProjectCopyRequest,
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Создаёт новый проект с копиями устройств и деталей КИП/ЗРА исходного проекта.
    """
    db_project = await _get_project_or_404(db, project_id)
    return await prj_crud.project.copy(db, source=db_project, obj_in=copy_in)
