# scripts/manage.py

"""
Служебные команды:

    python -m scripts.manage init-db
    python -m scripts.manage import-file kip ./data/kip.xlsx --project-id 1
    python -m scripts.manage assign-all --project-id 1
"""

import asyncio
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from kipzra.core.database import create_db_and_tables, engine, get_async_session_context
from kipzra.core.exceptions import KipZraError
from kipzra.core.logging import setup_logging
from kipzra.domains.imp import services as imp_services
from kipzra.domains.prj import crud as prj_crud
from kipzra.domains.sig import services as sig_services

cli = typer.Typer(help="KIP/ZRA registry management commands")


class ImportKind(str, Enum):
    kip = "kip"
    zra = "zra"
    signals = "signals"


def _run(coro) -> None:
    async def _wrapper():
        try:
            await coro
        finally:
            await engine.dispose()

    asyncio.run(_wrapper())


@cli.command("init-db")
def init_db():
    """Создаёт недостающие таблицы и проект по умолчанию."""
    setup_logging()

    async def _init():
        await create_db_and_tables()
        async with get_async_session_context() as db:
            project = await prj_crud.project.ensure_default(db)
            typer.echo(f"Default project: {project.code} (id={project.id})")

    _run(_init())


@cli.command("import-file")
def import_file(
    kind: ImportKind = typer.Argument(..., help="Что импортируется: kip, zra или signals"),
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="CSV или XLSX файл"),
    project_id: Optional[int] = typer.Option(None, "--project-id", "-p", help="ID проекта"),
):
    """Импортирует файл из локального каталога, минуя загрузку через API."""
    setup_logging()

    async def _import():
        rows = await imp_services.read_rows(path)
        async with get_async_session_context() as db:
            if kind is ImportKind.kip:
                result = await imp_services.import_kip(db, rows, project_id)
            elif kind is ImportKind.zra:
                result = await imp_services.import_zra(db, rows, project_id)
            else:
                result = await imp_services.import_signals(db, rows)
        typer.echo(
            f"Imported {result.imported} rows, created {result.created_devices} devices, "
            f"{result.created_signals} signals, skipped {result.skipped}"
        )
        for warning in result.warnings:
            typer.echo(f"  warning: {warning}")

    try:
        _run(_import())
    except KipZraError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=1)


@cli.command("assign-all")
def assign_all(project_id: Optional[int] = typer.Option(None, "--project-id", "-p", help="ID проекта")):
    """Назначает сигналы всем типам устройств по категориям сигналов."""
    setup_logging()

    async def _assign():
        async with get_async_session_context() as db:
            result = await sig_services.assign_signals_to_all_types(db, project_id)
        typer.echo(
            f"Assigned {result.assigned_count} signals: "
            f"{result.types_succeeded} types succeeded, {result.types_failed} failed"
        )
        for failure in result.failures:
            typer.echo(f"  {failure.device_type}: {failure.detail}")

    _run(_assign())


if __name__ == "__main__":
    cli()
