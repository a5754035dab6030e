# tests/domains/test_imp.py

"""
Маршруты домена 'imp':
- `POST /imp/kip`, `POST /imp/zra`, `POST /imp/signals` (CSV и XLSX)
- `GET /imp/stats`
- `GET /imp/export/devices`, `GET /imp/export/signals-summary`
"""

import io

import openpyxl
import pytest
from httpx import AsyncClient
from sqlalchemy.exc import OperationalError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.config import settings
from kipzra.domains.imp import services as imp_services
from kipzra.domains.ref import models as ref_models
from kipzra.domains.sig import models as sig_models

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Загруженные файлы сохраняются во временный каталог теста."""
    target = tmp_path / "uploads"
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(target))
    return target


def _csv(*lines: str) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


def _xlsx(rows) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


# =============================================================================
# 1. Импорт
# =============================================================================
@pytest.mark.asyncio
async def test_import_kip_csv(client: AsyncClient, db_session: AsyncSession, test_project, upload_dir):
    print("\n--- Running test_import_kip_csv ---")
    content = _csv(
        "Позиционное обозначение;Тип прибора;Производитель;Количество точек контроля",
        "PT-101;Датчик давления;Метран;2",
        ";Манометр;Wika;1",
        "PT-102;Датчик давления;;abc",
    )
    response = await client.post(
        "/api/v1/imp/kip",
        params={"project_id": test_project.id},
        files={"file": ("kip.csv", content, "text/csv")},
    )
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 200
    data = response.json()
    assert data["file_name"] == "kip.csv"
    assert data["imported"] == 2
    assert data["created_devices"] == 2
    assert data["skipped"] == 1
    assert any(w.startswith("Row 3:") for w in data["warnings"])
    assert any("'abc' is not a number" in w for w in data["warnings"])

    kip = (await db_session.execute(
        select(ref_models.Kip)
        .join(ref_models.Device, ref_models.Device.id == ref_models.Kip.device_id)
        .where(ref_models.Device.position_code == "PT-101")
    )).scalars().one()
    assert kip.manufacturer == "Метран"
    assert kip.control_points == 2

    # для импортированного типа появились нулевые счётчики
    counter = (await db_session.execute(
        select(sig_models.DeviceTypeSignal).where(sig_models.DeviceTypeSignal.device_type == "Датчик давления")
    )).scalars().one_or_none()
    assert counter is not None

    assert len(list((upload_dir / "kip").iterdir())) == 1


@pytest.mark.asyncio
async def test_import_kip_twice_updates_existing(client: AsyncClient, test_project):
    first = _csv("Позиционное обозначение;Тип прибора;Производитель", "PT-101;Датчик давления;Метран")
    second = _csv("Позиционное обозначение;Тип прибора;Производитель", "PT-101;Датчик давления;Элемер")

    await client.post("/api/v1/imp/kip", params={"project_id": test_project.id}, files={"file": ("a.csv", first)})
    response = await client.post("/api/v1/imp/kip", params={"project_id": test_project.id}, files={"file": ("b.csv", second)})
    assert response.json()["created_devices"] == 0
    assert response.json()["imported"] == 1

    devices = (await client.get("/api/v1/ref/devices", params={"project_id": test_project.id})).json()
    assert len(devices) == 1
    full = (await client.get(f"/api/v1/ref/devices/{devices[0]['id']}")).json()
    assert full["kip"]["manufacturer"] == "Элемер"


@pytest.mark.asyncio
async def test_import_kip_failure_mid_file_rolls_back(
    client: AsyncClient, db_session: AsyncSession, test_project, monkeypatch
):
    print("\n--- Running test_import_kip_failure_mid_file_rolls_back ---")
    original = imp_services._upsert_detail
    calls = []

    async def _fail_on_second_row(db, model, device_id, data):
        calls.append(device_id)
        if len(calls) == 2:
            raise OperationalError("INSERT INTO kip", {}, Exception("disk I/O error"))
        await original(db, model, device_id, data)

    monkeypatch.setattr(imp_services, "_upsert_detail", _fail_on_second_row)
    content = _csv(
        "Позиционное обозначение;Тип прибора",
        "PT-101;Датчик давления",
        "PT-102;Датчик давления",
        "PT-103;Датчик давления",
    )
    response = await client.post(
        "/api/v1/imp/kip", params={"project_id": test_project.id}, files={"file": ("kip.csv", content)}
    )
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 500
    assert response.json()["kind"] == "persistence"

    assert (await db_session.execute(select(ref_models.Device))).scalars().all() == []
    assert (await db_session.execute(select(ref_models.Kip))).scalars().all() == []
    assert (await db_session.execute(select(sig_models.DeviceTypeSignal))).scalars().all() == []


@pytest.mark.asyncio
async def test_import_kip_xlsx(client: AsyncClient, test_project):
    print("\n--- Running test_import_kip_xlsx ---")
    content = _xlsx([
        ["Позиционное обозначение ОТХ", "Тип прибора", "Ед. измерения", "Код оборудования"],
        ["TT-1", "Термометр", "°C", "A.1-B"],
        [None, None, None, None],
        ["TT-2", "Термометр", "°C", "A.1-C"],
    ])
    response = await client.post(
        "/api/v1/imp/kip",
        params={"project_id": test_project.id},
        files={"file": ("kip.xlsx", content, XLSX_MEDIA_TYPE)},
    )
    assert response.status_code == 200
    assert response.json()["imported"] == 2
    assert response.json()["skipped"] == 0

    devices = (await client.get("/api/v1/ref/devices", params={"project_id": test_project.id})).json()
    assert [d["equipment_code"] for d in devices] == ["A.1-B", "A.1-C"]


@pytest.mark.asyncio
async def test_import_zra_csv_defaults(client: AsyncClient, test_project):
    content = _csv(
        "Позиция запорной арматуры;Конструктивное исполнение;Тип арматуры;DN",
        "XV-1;Шаровой кран;Запорная;DN50",
        "XV-2;;;",
    )
    response = await client.post(
        "/api/v1/imp/zra", params={"project_id": test_project.id}, files={"file": ("zra.csv", content)}
    )
    assert response.status_code == 200
    assert response.json()["imported"] == 2

    devices = {
        d["position_code"]: d
        for d in (await client.get("/api/v1/ref/devices", params={"project_id": test_project.id})).json()
    }
    assert devices["XV-1"]["device_type"] == "Шаровой кран"
    assert devices["XV-2"]["device_type"] == "Запорная арматура"

    full = (await client.get(f"/api/v1/ref/devices/{devices['XV-2']['id']}")).json()
    assert full["data_type"] == "zra"
    assert full["zra"]["valve_type"] == "Неизвестный"


@pytest.mark.asyncio
async def test_import_signals_csv(client: AsyncClient):
    print("\n--- Running test_import_signals_csv ---")
    content = _csv(
        "Имя сигнала;Тип сигнала;Категория",
        "Давление;AI;Датчик давления",
        "Авария;дискретный вход;Насос",
        "Непонятный;XYZ;Насос",
    )
    response = await client.post("/api/v1/imp/signals", files={"file": ("signals.csv", content)})
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 200
    data = response.json()
    assert data["created_signals"] == 2
    assert data["skipped"] == 1
    assert "unknown signal type 'XYZ'" in data["warnings"][0]

    signals = (await client.get("/api/v1/sig/signals")).json()
    assert {(s["name"], s["type"]) for s in signals} == {("Давление", "AI"), ("Авария", "DI")}


@pytest.mark.asyncio
async def test_import_signals_accepts_registered_codes(client: AsyncClient):
    response = await client.post(
        "/api/v1/sig/signal-types", json={"code": "4-20mA", "name": "Токовая петля", "category": "AI"}
    )
    assert response.status_code == 201

    content = _csv("Имя сигнала;Тип сигнала;Категория", "Уровень;4-20ma;Уровнемер")
    response = await client.post("/api/v1/imp/signals", files={"file": ("signals.csv", content)})
    assert response.status_code == 200
    assert response.json()["created_signals"] == 1

    signals = (await client.get("/api/v1/sig/signals")).json()
    assert [(s["name"], s["type"]) for s in signals] == [("Уровень", "AI")]


@pytest.mark.asyncio
async def test_import_rejects_unsupported_extension(client: AsyncClient):
    response = await client.post("/api/v1/imp/kip", files={"file": ("kip.txt", b"data")})
    assert response.status_code == 400
    assert response.json()["kind"] == "file-type"


@pytest.mark.asyncio
async def test_import_rejects_empty_file(client: AsyncClient):
    response = await client.post("/api/v1/imp/kip", files={"file": ("kip.csv", b"")})
    assert response.status_code == 400
    assert response.json()["kind"] == "file-empty"


@pytest.mark.asyncio
async def test_import_rejects_broken_xlsx(client: AsyncClient):
    response = await client.post("/api/v1/imp/kip", files={"file": ("kip.xlsx", b"not a workbook")})
    assert response.status_code == 400
    assert response.json()["kind"] == "file-format"


@pytest.mark.asyncio
async def test_import_unknown_project(client: AsyncClient):
    content = _csv("Позиционное обозначение;Тип прибора", "PT-1;Манометр")
    response = await client.post("/api/v1/imp/kip", params={"project_id": 999}, files={"file": ("kip.csv", content)})
    assert response.status_code == 404
    assert response.json()["kind"] == "project"


@pytest.mark.asyncio
async def test_import_stats(client: AsyncClient, db_session: AsyncSession, test_project, device_factory, signal_factory):
    device = await device_factory(test_project.id, "PT-1")
    await device_factory(test_project.id, "XV-1", device_type="Кран")
    db_session.add(ref_models.Kip(device_id=device.id))
    await db_session.commit()
    await signal_factory("Давление", "AI")

    response = await client.get("/api/v1/imp/stats", params={"project_id": test_project.id})
    assert response.json() == {"devices": 2, "kips": 1, "zras": 0, "signals": 1, "assignments": 0}


# =============================================================================
# 2. Выгрузка в XLSX
# =============================================================================
@pytest.mark.asyncio
async def test_export_devices_xlsx(client: AsyncClient, db_session: AsyncSession, test_project, device_factory):
    print("\n--- Running test_export_devices_xlsx ---")
    device = await device_factory(test_project.id, "PT-1", equipment_code="A.1")
    db_session.add(ref_models.Kip(device_id=device.id))
    await db_session.commit()

    response = await client.get("/api/v1/imp/export/devices", params={"project_id": test_project.id})
    assert response.status_code == 200
    assert response.headers["content-type"] == XLSX_MEDIA_TYPE
    assert "attachment" in response.headers["content-disposition"]

    sheet = openpyxl.load_workbook(io.BytesIO(response.content)).active
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[0][1] == "Позиционное обозначение"
    assert rows[1][1] == "PT-1"
    assert rows[1][2] == "A.1"
    assert rows[1][-1] == "kip"


@pytest.mark.asyncio
async def test_export_signals_summary_xlsx(client: AsyncClient, counter_factory):
    await counter_factory("Насос", ai=2, do=1)

    response = await client.get("/api/v1/imp/export/signals-summary")
    assert response.status_code == 200

    sheet = openpyxl.load_workbook(io.BytesIO(response.content)).active
    rows = list(sheet.iter_rows(values_only=True))
    assert rows[1][:6] == ("Насос", 2, 0, 0, 1, 3)
    assert rows[-1][0] == "Итого"
    assert rows[-1][5] == 3
