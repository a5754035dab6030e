# kipzra/domains/imp/routers.py

"""
API-маршруты домена 'imp': загрузка файлов импорта и выгрузка XLSX.
"""

from datetime import datetime, UTC
from typing import Optional
from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core import dependencies as deps
from kipzra.domains.imp import schemas as imp_schemas
from kipzra.domains.imp import services as imp_services
from kipzra.domains.sig import services as sig_services
from kipzra.utils.files import save_upload_file

router = APIRouter(
    tags=["Import / Export"],
    responses={404: {"description": "Not found"}},
)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx_response(content: bytes, prefix: str) -> Response:
    filename = f"{prefix}_{datetime.now(UTC):%Y%m%d_%H%M%S}.xlsx"
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _to_read(file_name: str, result: imp_services.ImportResult) -> imp_schemas.ImportResultRead:
    return imp_schemas.ImportResultRead(
        file_name=file_name,
        imported=result.imported,
        created_devices=result.created_devices,
        created_signals=result.created_signals,
        skipped=result.skipped,
        warnings=result.warnings,
    )


# =============================================================================
# 1. Импорт
# =============================================================================
@router.post("/kip", response_model=imp_schemas.ImportResultRead, summary="Импорт КИП из CSV/XLSX")
async def import_kip(
    file: UploadFile = File(..., description="CSV или XLSX с таблицей КИП"),
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    """
    Импортирует КИП. Строки без позиционного обозначения или типа прибора пропускаются.
    Без `project_id` данные попадают в проект по умолчанию.
    """
    path = await save_upload_file(file, "kip")
    rows = await imp_services.read_rows(path)
    result = await imp_services.import_kip(db, rows, project_id)
    return _to_read(file.filename, result)


@router.post("/zra", response_model=imp_schemas.ImportResultRead, summary="Импорт ЗРА из CSV/XLSX")
async def import_zra(
    file: UploadFile = File(..., description="CSV или XLSX с таблицей ЗРА"),
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    path = await save_upload_file(file, "zra")
    rows = await imp_services.read_rows(path)
    result = await imp_services.import_zra(db, rows, project_id)
    return _to_read(file.filename, result)


@router.post("/signals", response_model=imp_schemas.ImportResultRead, summary="Импорт сигналов из CSV/XLSX")
async def import_signals(
    file: UploadFile = File(..., description="CSV или XLSX со списком сигналов"),
    db: AsyncSession = Depends(deps.get_db_session),
):
    path = await save_upload_file(file, "signals")
    rows = await imp_services.read_rows(path)
    result = await imp_services.import_signals(db, rows)
    return _to_read(file.filename, result)


@router.get("/stats", response_model=imp_schemas.ImportStats, summary="Статистика загруженных данных")
async def read_import_stats(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    return await imp_services.get_import_stats(db, project_id)


# =============================================================================
# 2. Выгрузка
# =============================================================================
@router.get("/export/devices", summary="Выгрузка устройств в XLSX")
async def export_devices(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    content = await imp_services.export_devices_xlsx(db, project_id)
    return _xlsx_response(content, "devices")


@router.get("/export/signals-summary", summary="Выгрузка сводки сигналов в XLSX")
async def export_signals_summary(
    project_id: Optional[int] = Depends(deps.project_scope),
    db: AsyncSession = Depends(deps.get_db_session),
):
    summary = await sig_services.get_signals_summary(db, project_id=project_id)
    content = await imp_services.export_summary_xlsx(summary)
    return _xlsx_response(content, "signals_summary")
