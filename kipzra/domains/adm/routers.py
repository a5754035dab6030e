# kipzra/domains/adm/routers.py

"""
API-маршруты домена 'adm'.
"""

from typing import List
from fastapi import APIRouter, Depends
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core import dependencies as deps
from kipzra.domains.adm import crud as adm_crud
from kipzra.domains.adm import schemas as adm_schemas

router = APIRouter(
    tags=["Database Maintenance"],
    responses={404: {"description": "Not found"}},
)


@router.get("/tables", response_model=List[adm_schemas.TableInfo], summary="Таблицы и количество строк")
async def read_tables(db: AsyncSession = Depends(deps.get_db_session)):
    return await adm_crud.list_tables(db)


@router.delete("/tables/{table_name}", response_model=adm_schemas.ClearTableResult, summary="Очистить таблицу")
async def clear_table(table_name: str, db: AsyncSession = Depends(deps.get_db_session)):
    """
    Удаляет все строки таблицы вместе с зависимыми строками других таблиц.
    """
    deleted = await adm_crud.clear_table(db, name=table_name)
    return adm_schemas.ClearTableResult(table=table_name, deleted_count=deleted)
