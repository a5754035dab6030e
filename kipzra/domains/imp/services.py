# kipzra/domains/imp/services.py

"""
Импорт справочных данных из CSV/XLSX и выгрузка в XLSX.

Заголовки столбцов берутся из исходных таблиц проектной документации
(на русском языке). Пробелы и переводы строк в заголовках схлопываются,
поэтому "Позиционное обозначение ОАС\\n (ТЕМП)" и
"Позиционное обозначение ОАС (ТЕМП)" считаются одним столбцом.

Каждый файл импортируется одной транзакцией. Строки без ключевых данных
пропускаются и попадают в список предупреждений.
"""

import csv
import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type

import aiofiles
import openpyxl
from fastapi.concurrency import run_in_threadpool
from openpyxl.styles import Alignment, Font
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.utils import get_column_letter
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.exceptions import KipZraError, NotFoundError, PersistenceError, ValidationError
from kipzra.domains.prj import crud as prj_crud
from kipzra.domains.ref import crud as ref_crud
from kipzra.domains.ref.models import Device, Kip, Zra
from kipzra.domains.sig import crud as sig_crud
from kipzra.domains.sig import schemas as sig_schemas
from kipzra.domains.sig.models import DeviceSignal, Signal
from kipzra.domains.sig.signal_types import normalize_signal_type

logger = logging.getLogger(__name__)

Row = Dict[str, str]


# =============================================================================
# 1. Соответствие столбцов полям
# =============================================================================
KIP_POSITION_COLUMNS = (
    "Позиционное обозначение ОТХ",
    "Позиционное обозначение ОАС (ТЕМП)",
    "Позиционное обозначение",
)
KIP_TYPE_COLUMNS = ("Тип прибора", "Тип устройства")

KIP_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "unit_area": ("Участок",),
    "section": ("Секция",),
    "manufacturer": ("Производитель",),
    "article": ("Артикул",),
    "measure_unit": ("Ед. измерения",),
    "scale": ("Шкала",),
    "note": ("Примечание",),
    "doc_link": ("Ссылка на документацию",),
    "responsibility_zone": ("Зона отв.",),
    "connection_scheme": ("Схема подключения",),
    "power": ("Питание",),
    "plc": ("PLC", "ПЛК"),
    "ex_version": ("Ex-исполнение",),
    "environment_characteristics": (
        "Характеристика среды, физическое состояние, температура, давление, расход, Dn, плотность, "
        "содержание агрессивных примесей регулирование и пр.)",
        "Характеристика среды",
    ),
    "signal_purpose": ("Назначение сигнала: предупредительный, аварийный", "Назначение сигнала"),
    "control_points": ("Количество точек контроля",),
    "completeness": ("Комплектность",),
    "measuring_limits": ("Пределы измерений и нормальное значение параметра", "Пределы измерений"),
}

ZRA_POSITION_COLUMNS = ("Позиция запорной арматуры", "Позиционное обозначение")
ZRA_DEFAULT_DEVICE_TYPE = "Запорная арматура"
ZRA_DEFAULT_VALVE_TYPE = "Неизвестный"

ZRA_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "unit_area": ("Участок",),
    "design_type": ("Конструктивное исполнение",),
    "valve_type": ("Тип арматуры (запорная/ Регулирующая)", "Тип арматуры (запорная/Регулирующая)", "Тип арматуры"),
    "actuator_type": ("Тип привода",),
    "pipe_position": ("Позиция трубы",),
    "nominal_diameter": ("Условный диаметр трубы DN", "DN"),
    "pressure_rating": ("Условное давление рабочей среды PN, бар", "PN"),
    "pipe_material": ("Материал трубы",),
    "medium": ("Среда",),
    "position_sensor": ("Датчик положения",),
    "solenoid_type": ("Тип пневмораспределителя",),
    "emergency_position": ("Положение при аварийном отключении (НЗ/НО/БИ)",),
    "control_panel": ("ШПУ",),
    "air_consumption": ("Расход воздуха на 1 операцию, л.",),
    "connection_size": ("Ø и резьба пневмоприсоединения",),
    "fittings_count": ("Кол-во ответных фитингов",),
    "tube_diameter": ("Ø пневмотрубки, мм",),
    "limit_switch_type": ("Тип концевого выключателя",),
    "positioner_type": ("Тип позиционера",),
    "device_description": ("Описание устройства",),
    "category": ("Категория",),
    "plc": ("PLC", "ПЛК"),
    "ex_version": ("Ex-исполнение",),
    "operation": ("Операция",),
    "note": ("Примечание",),
}

DEVICE_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "equipment_code": ("Код оборудования",),
    "system_code": ("Код системы",),
    "parent_system": ("Родительская система",),
    "plc_type": ("Тип ПЛК",),
}
KIP_DESCRIPTION_COLUMNS = ("Описание",)
ZRA_DESCRIPTION_COLUMNS = ("Описание (ТЕМП)", "Описание")

SIGNAL_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "name": ("Имя сигнала", "Наименование сигнала", "Наименование", "Сигнал"),
    "type": ("Тип сигнала", "Тип"),
    "category": ("Категория", "Тип устройства"),
    "description": ("Описание",),
    "connection_type": ("Тип подключения",),
    "voltage": ("Напряжение",),
}

INTEGER_FIELDS = {"control_points", "fittings_count"}


# =============================================================================
# 2. Чтение файлов
# =============================================================================
def normalize_header(header: Any) -> str:
    return " ".join(str(header).split()) if header is not None else ""


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_csv(text: str) -> List[Row]:
    """Строки CSV; разделитель (',', ';' или табуляция) определяется по началу файла."""
    sample = text[:4096]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t")
    except csv.Error:
        dialect = csv.excel
    reader = csv.DictReader(io.StringIO(text), dialect=dialect)
    rows = []
    for raw in reader:
        row = {normalize_header(k): (v or "").strip() for k, v in raw.items() if k is not None}
        if any(row.values()):
            rows.append(row)
    return rows


def parse_xlsx(path: Path) -> List[Row]:
    """Строки первого листа книги; первая строка - заголовки."""
    workbook = openpyxl.load_workbook(path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        values = sheet.iter_rows(values_only=True)
        header_row = next(values, None)
        if header_row is None:
            return []
        headers = [normalize_header(h) for h in header_row]
        rows = []
        for cells in values:
            row = {h: _cell_text(v) for h, v in zip(headers, cells) if h}
            if any(row.values()):
                rows.append(row)
        return rows
    finally:
        workbook.close()


async def read_rows(path: Path) -> List[Row]:
    """Читает CSV (UTF-8, допускается BOM) или XLSX."""
    suffix = path.suffix.lower()
    if suffix == ".csv":
        async with aiofiles.open(path, "rb") as f:
            content = await f.read()
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = content.decode("cp1251")
        return parse_csv(text)
    if suffix == ".xlsx":
        try:
            return await run_in_threadpool(parse_xlsx, path)
        except (zipfile.BadZipFile, InvalidFileException) as e:
            raise ValidationError(f"File is not a valid XLSX workbook: {e}", kind="file-format") from e
    raise ValidationError(f"Unsupported file type '{suffix}'", kind="file-type")


def _pick(row: Row, columns: Sequence[str]) -> str:
    for column in columns:
        value = row.get(column)
        if value:
            return value
    return ""


def _to_int(value: str, line_no: int, field_name: str, warnings: List[str]) -> Optional[int]:
    if not value:
        return None
    try:
        return int(float(value.replace(",", ".")))
    except ValueError:
        warnings.append(f"Row {line_no}: '{value}' is not a number ({field_name}), value ignored")
        return None


def _map_fields(row: Row, columns: Dict[str, Tuple[str, ...]], line_no: int, warnings: List[str]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for field_name, headers in columns.items():
        value = _pick(row, headers)
        if field_name in INTEGER_FIELDS:
            data[field_name] = _to_int(value, line_no, field_name, warnings)
        else:
            data[field_name] = value or None
    return data


# =============================================================================
# 3. Импорт
# =============================================================================
@dataclass
class ImportResult:
    imported: int = 0
    created_devices: int = 0
    created_signals: int = 0
    skipped: int = 0
    warnings: List[str] = field(default_factory=list)
    device_types: set = field(default_factory=set)

    def skip(self, line_no: int, reason: str) -> None:
        self.skipped += 1
        self.warnings.append(f"Row {line_no}: {reason}, skipped")


async def _resolve_project_id(db: AsyncSession, project_id: Optional[int]) -> int:
    if project_id is None:
        return (await prj_crud.project.ensure_default(db)).id
    if await prj_crud.project.get(db, id=project_id) is None:
        raise NotFoundError(f"Project {project_id} not found", kind="project")
    return project_id


async def _find_or_create_device(
    db: AsyncSession,
    cache: Dict[str, Device],
    result: ImportResult,
    *,
    project_id: int,
    position_code: str,
    defaults: Dict[str, Any],
) -> Device:
    device = cache.get(position_code)
    if device is None:
        device = await ref_crud.device.get_by_position(db, project_id=project_id, position_code=position_code)
    if device is None:
        device = Device(project_id=project_id, position_code=position_code, **defaults)
        db.add(device)
        await db.flush()
        result.created_devices += 1
    else:
        # существующие значения не перезаписываются, заполняются только пустые поля
        for key, value in defaults.items():
            if value and not getattr(device, key):
                setattr(device, key, value)
        db.add(device)
    cache[position_code] = device
    result.device_types.add(device.device_type)
    return device


async def _upsert_detail(db: AsyncSession, model: Type[SQLModel], device_id: int, data: Dict[str, Any]) -> None:
    detail = (await db.execute(select(model).where(model.device_id == device_id))).scalars().one_or_none()
    if detail is None:
        db.add(model(device_id=device_id, **data))
    else:
        for key, value in data.items():
            if value is not None:
                setattr(detail, key, value)
        db.add(detail)
    await db.flush()


async def _finish(db: AsyncSession, result: ImportResult) -> None:
    for device_type in sorted(t for t in result.device_types if t):
        await sig_crud.device_type_signal.ensure(db, device_type=device_type)
    await db.commit()


async def _run_in_transaction(db: AsyncSession, label: str, coro) -> ImportResult:
    try:
        result = await coro
        await _finish(db, result)
    except KipZraError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("%s import failed: %s", label, e)
        raise PersistenceError() from e
    logger.info(
        "%s import: %d rows imported, %d devices created, %d skipped",
        label, result.imported, result.created_devices, result.skipped,
    )
    return result


async def import_kip(db: AsyncSession, rows: List[Row], project_id: Optional[int] = None) -> ImportResult:
    """Импорт КИП: позиционное обозначение и тип прибора обязательны."""
    project_id = await _resolve_project_id(db, project_id)

    async def _rows() -> ImportResult:
        result = ImportResult()
        cache: Dict[str, Device] = {}
        for line_no, row in enumerate(rows, start=2):
            position_code = _pick(row, KIP_POSITION_COLUMNS)
            device_type = _pick(row, KIP_TYPE_COLUMNS)
            if not position_code or not device_type:
                result.skip(line_no, "position code or device type is missing")
                continue
            defaults = {
                "device_type": device_type,
                "description": _pick(row, KIP_DESCRIPTION_COLUMNS) or None,
                **_map_fields(row, DEVICE_COLUMNS, line_no, result.warnings),
            }
            device = await _find_or_create_device(
                db, cache, result, project_id=project_id, position_code=position_code, defaults=defaults
            )
            await _upsert_detail(db, Kip, device.id, _map_fields(row, KIP_COLUMNS, line_no, result.warnings))
            result.imported += 1
        return result

    return await _run_in_transaction(db, "KIP", _rows())


async def import_zra(db: AsyncSession, rows: List[Row], project_id: Optional[int] = None) -> ImportResult:
    """Импорт ЗРА: обязательна позиция запорной арматуры."""
    project_id = await _resolve_project_id(db, project_id)

    async def _rows() -> ImportResult:
        result = ImportResult()
        cache: Dict[str, Device] = {}
        for line_no, row in enumerate(rows, start=2):
            position_code = _pick(row, ZRA_POSITION_COLUMNS)
            if not position_code:
                result.skip(line_no, "valve position is missing")
                continue
            detail = _map_fields(row, ZRA_COLUMNS, line_no, result.warnings)
            detail["valve_type"] = detail["valve_type"] or ZRA_DEFAULT_VALVE_TYPE
            defaults = {
                "device_type": detail["design_type"] or ZRA_DEFAULT_DEVICE_TYPE,
                "description": _pick(row, ZRA_DESCRIPTION_COLUMNS) or None,
                **_map_fields(row, DEVICE_COLUMNS, line_no, result.warnings),
            }
            device = await _find_or_create_device(
                db, cache, result, project_id=project_id, position_code=position_code, defaults=defaults
            )
            await _upsert_detail(db, Zra, device.id, detail)
            result.imported += 1
        return result

    return await _run_in_transaction(db, "ZRA", _rows())


async def import_signals(db: AsyncSession, rows: List[Row]) -> ImportResult:
    """
    Импорт определений сигналов. Тип приводится по таблице синонимов
    и справочнику signal_types; строка с неизвестным типом пропускается
    с предупреждением.
    """
    async def _rows() -> ImportResult:
        result = ImportResult()
        registered = await sig_crud.signal_type_definition.get_aliases(db)
        for line_no, row in enumerate(rows, start=2):
            data = {key: _pick(row, headers) or None for key, headers in SIGNAL_COLUMNS.items()}
            if not data["name"] or not data["type"]:
                result.skip(line_no, "signal name or type is missing")
                continue
            signal_type = normalize_signal_type(data["type"], extra_aliases=registered)
            if signal_type is None:
                result.skip(line_no, f"unknown signal type '{data['type']}'")
                continue
            data["type"] = signal_type.value

            signal = await sig_crud.signal.get_by_name_and_type(db, name=data["name"], signal_type=data["type"])
            if signal is None:
                db.add(Signal(**data))
                result.created_signals += 1
            else:
                for key in ("category", "description", "connection_type", "voltage"):
                    if data[key]:
                        setattr(signal, key, data[key])
                db.add(signal)
            await db.flush()
            result.imported += 1
        return result

    return await _run_in_transaction(db, "Signal", _rows())


async def get_import_stats(db: AsyncSession, project_id: Optional[int] = None) -> Dict[str, int]:
    device_filter = [Device.project_id == project_id] if project_id is not None else []

    async def _count(statement) -> int:
        return (await db.execute(statement)).scalar_one()

    return {
        "devices": await _count(select(func.count(Device.id)).where(*device_filter)),
        "kips": await _count(select(func.count(Kip.id)).join(Device, Device.id == Kip.device_id).where(*device_filter)),
        "zras": await _count(select(func.count(Zra.id)).join(Device, Device.id == Zra.device_id).where(*device_filter)),
        "signals": await _count(select(func.count(Signal.id))),
        "assignments": await _count(
            select(func.count(DeviceSignal.id)).join(Device, Device.id == DeviceSignal.device_id).where(*device_filter)
        ),
    }


# =============================================================================
# 4. Выгрузка в XLSX
# =============================================================================
DEVICE_EXPORT_COLUMNS = (
    ("ID", "id", 10),
    ("Позиционное обозначение", "position_code", 25),
    ("Код оборудования", "equipment_code", 25),
    ("Тип устройства", "device_type", 25),
    ("Описание", "description", 40),
    ("Код системы", "system_code", 15),
    ("Родительская система", "parent_system", 20),
    ("ID родителя", "parent_id", 12),
    ("Тип ПЛК", "plc_type", 15),
    ("Ex-исполнение", "ex_version", 15),
    ("Вид", "data_type", 8),
)

SUMMARY_EXPORT_COLUMNS = (
    ("Тип устройства", 30),
    ("AI", 8),
    ("AO", 8),
    ("DI", 8),
    ("DO", 8),
    ("Всего сигналов", 15),
    ("Устройств", 12),
    ("Источник", 14),
)


def _write_sheet(title: str, headers: Sequence[Tuple[str, int]], rows: List[Sequence[Any]]) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = title
    sheet.append([header for header, _ in headers])
    for cell in sheet[1]:
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
    for index, (_, width) in enumerate(headers, start=1):
        sheet.column_dimensions[get_column_letter(index)].width = width
    for row in rows:
        sheet.append(list(row))
    sheet.freeze_panes = "A2"

    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


async def export_devices_xlsx(db: AsyncSession, project_id: Optional[int] = None) -> bytes:
    statement = (
        select(Device, Kip.id, Zra.id)
        .outerjoin(Kip, Kip.device_id == Device.id)
        .outerjoin(Zra, Zra.device_id == Device.id)
        .order_by(Device.position_code, Device.id)
    )
    if project_id is not None:
        statement = statement.where(Device.project_id == project_id)

    rows = []
    for device, kip_id, zra_id in (await db.execute(statement)).all():
        values = device.model_dump()
        values["data_type"] = "kip" if kip_id else "zra" if zra_id else ""
        rows.append([values.get(attr) for _, attr, _ in DEVICE_EXPORT_COLUMNS])

    headers = [(header, width) for header, _, width in DEVICE_EXPORT_COLUMNS]
    return await run_in_threadpool(_write_sheet, "Устройства", headers, rows)


async def export_summary_xlsx(summary: sig_schemas.SignalsSummary) -> bytes:
    rows: List[Sequence[Any]] = []
    for item in summary.per_device_type:
        total = item.ai_count + item.ao_count + item.di_count + item.do_count
        rows.append([
            item.device_type, item.ai_count, item.ao_count, item.di_count, item.do_count,
            total, item.device_count, item.source,
        ])
    totals = summary.totals
    rows.append([
        "Итого", totals.total_ai, totals.total_ao, totals.total_di, totals.total_do,
        totals.total_signals, totals.total_devices, "",
    ])
    return await run_in_threadpool(_write_sheet, "Сводка сигналов", SUMMARY_EXPORT_COLUMNS, rows)
