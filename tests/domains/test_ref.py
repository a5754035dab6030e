# tests/domains/test_ref.py

"""
Маршруты домена 'ref':
- `POST /ref/devices` (создание с деталями КИП/ЗРА)
- `GET /ref/devices`, `GET /ref/devices/{id}`, `GET /ref/devices/types`
- `PUT /ref/devices/{id}`
- `DELETE /ref/devices/{id}` (каскадное удаление), `DELETE /ref/devices/clear`
- наборы фильтров `/ref/filter-presets`
"""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.core.config import settings
from kipzra.domains.prj import models as prj_models
from kipzra.domains.ref import models as ref_models
from kipzra.domains.sig import crud as sig_crud
from kipzra.domains.sig import models as sig_models


async def _count(db: AsyncSession, model, *conditions) -> int:
    return (await db.execute(select(func.count()).select_from(model).where(*conditions))).scalar_one()


@pytest.mark.asyncio
async def test_create_kip_device_round_trip(client: AsyncClient, test_project):
    print("\n--- Running test_create_kip_device_round_trip ---")
    payload = {
        "project_id": test_project.id,
        "position_code": "PT-101",
        "equipment_code": "A.1-B-C-D.1",
        "device_type": "Датчик давления",
        "data_type": "kip",
        "kip": {"manufacturer": "Метран", "measure_unit": "МПа", "control_points": 2},
    }
    response = await client.post("/api/v1/ref/devices", json=payload)
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 201
    device_id = response.json()["reference"]["id"]

    response = await client.get(f"/api/v1/ref/devices/{device_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["data_type"] == "kip"
    assert data["kip"]["manufacturer"] == "Метран"
    assert data["kip"]["control_points"] == 2
    assert data["zra"] is None
    assert data["reference"]["position_code"] == "PT-101"


@pytest.mark.asyncio
async def test_create_zra_device_round_trip(client: AsyncClient, test_project):
    print("\n--- Running test_create_zra_device_round_trip ---")
    payload = {
        "project_id": test_project.id,
        "position_code": "XV-201",
        "device_type": "Шаровой кран",
        "data_type": "zra",
        "zra": {"valve_type": "Запорная", "nominal_diameter": "DN50"},
    }
    response = await client.post("/api/v1/ref/devices", json=payload)
    assert response.status_code == 201
    device_id = response.json()["reference"]["id"]

    data = (await client.get(f"/api/v1/ref/devices/{device_id}")).json()
    assert data["data_type"] == "zra"
    assert data["zra"]["valve_type"] == "Запорная"
    assert data["kip"] is None


@pytest.mark.asyncio
async def test_create_device_without_details_is_unknown(client: AsyncClient, test_project):
    response = await client.post("/api/v1/ref/devices", json={
        "project_id": test_project.id, "position_code": "X-1", "device_type": "Прочее",
    })
    assert response.status_code == 201
    assert response.json()["data_type"] == "unknown"


@pytest.mark.asyncio
async def test_create_device_without_project_uses_default(client: AsyncClient, db_session: AsyncSession):
    response = await client.post("/api/v1/ref/devices", json={"position_code": "X-1", "device_type": "Прочее"})
    assert response.status_code == 201

    default = (await db_session.execute(
        select(prj_models.Project).where(prj_models.Project.code == settings.DEFAULT_PROJECT_CODE)
    )).scalars().one()
    assert response.json()["reference"]["project_id"] == default.id


@pytest.mark.asyncio
async def test_create_device_duplicate_position(client: AsyncClient, test_project, device_factory):
    print("\n--- Running test_create_device_duplicate_position ---")
    await device_factory(test_project.id, "PT-101")
    response = await client.post("/api/v1/ref/devices", json={
        "project_id": test_project.id, "position_code": "PT-101", "device_type": "Датчик",
    })
    assert response.status_code == 400
    assert response.json()["kind"] == "duplicate"


@pytest.mark.asyncio
async def test_create_device_unknown_project(client: AsyncClient):
    response = await client.post("/api/v1/ref/devices", json={
        "project_id": 999, "position_code": "PT-1", "device_type": "Датчик",
    })
    assert response.status_code == 404
    assert response.json()["kind"] == "project"


@pytest.mark.asyncio
async def test_read_devices_search_and_order(client: AsyncClient, test_project, device_factory):
    print("\n--- Running test_read_devices_search_and_order ---")
    await device_factory(test_project.id, "TT-2", device_type="Термометр", description="Температура воды")
    await device_factory(test_project.id, "PT-1", device_type="Манометр")
    await device_factory(test_project.id, "TT-1", device_type="Термометр")

    response = await client.get("/api/v1/ref/devices", params={"project_id": test_project.id})
    assert [d["position_code"] for d in response.json()] == ["PT-1", "TT-1", "TT-2"]

    response = await client.get("/api/v1/ref/devices", params={"search": "воды"})
    assert [d["position_code"] for d in response.json()] == ["TT-2"]

    response = await client.get("/api/v1/ref/devices/types", params={"project_id": test_project.id})
    assert response.json() == ["Манометр", "Термометр"]


@pytest.mark.asyncio
async def test_update_device_and_detail(client: AsyncClient, test_project):
    created = (await client.post("/api/v1/ref/devices", json={
        "project_id": test_project.id, "position_code": "PT-1", "device_type": "Манометр",
        "data_type": "kip", "kip": {"manufacturer": "Old"},
    })).json()
    device_id = created["reference"]["id"]

    response = await client.put(f"/api/v1/ref/devices/{device_id}", json={
        "description": "Новый", "kip": {"manufacturer": "New"},
    })
    assert response.status_code == 200
    data = response.json()
    assert data["reference"]["description"] == "Новый"
    assert data["kip"]["manufacturer"] == "New"


@pytest.mark.asyncio
async def test_delete_device_cascades(
    client: AsyncClient, db_session: AsyncSession, test_project, signal_factory
):
    print("\n--- Running test_delete_device_cascades ---")
    created = (await client.post("/api/v1/ref/devices", json={
        "project_id": test_project.id, "position_code": "FT-1", "device_type": "Расходомер",
        "data_type": "kip", "kip": {"manufacturer": "Endress"},
    })).json()
    device_id = created["reference"]["id"]
    signal = await signal_factory("Расход", "AI", "Расходомер")

    response = await client.post(f"/api/v1/sig/devices/{device_id}/signals", json={"signal_id": signal.id, "count": 3})
    assert response.status_code == 200

    response = await client.delete(f"/api/v1/ref/devices/{device_id}")
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 200
    assert response.json() == {
        "device_id": device_id,
        "removed_devices": 1,
        "removed_kip": 1,
        "removed_zra": 0,
        "removed_assignments": 1,
    }

    assert await _count(db_session, ref_models.Kip, ref_models.Kip.device_id == device_id) == 0
    assert await _count(db_session, ref_models.Zra, ref_models.Zra.device_id == device_id) == 0
    assert await _count(db_session, sig_models.DeviceSignal, sig_models.DeviceSignal.device_id == device_id) == 0

    response = await client.get(f"/api/v1/sig/signals/{signal.id}")
    assert response.json()["total_count"] == 0


def _failing(*args, **kwargs):
    raise OperationalError("statement", {}, Exception("database is locked"))


@pytest.mark.asyncio
async def test_create_device_rolls_back_when_detail_fails(
    client: AsyncClient, db_session: AsyncSession, test_project, monkeypatch
):
    print("\n--- Running test_create_device_rolls_back_when_detail_fails ---")
    monkeypatch.setattr(ref_models, "Kip", _failing)

    response = await client.post("/api/v1/ref/devices", json={
        "project_id": test_project.id, "position_code": "FT-9", "device_type": "Расходомер",
        "data_type": "kip", "kip": {"manufacturer": "Endress"},
    })
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 500
    assert response.json()["kind"] == "persistence"
    assert await _count(db_session, ref_models.Device, ref_models.Device.position_code == "FT-9") == 0


@pytest.mark.asyncio
async def test_delete_device_rolls_back_when_recompute_fails(
    client: AsyncClient, db_session: AsyncSession, test_project, signal_factory, monkeypatch
):
    print("\n--- Running test_delete_device_rolls_back_when_recompute_fails ---")
    created = (await client.post("/api/v1/ref/devices", json={
        "project_id": test_project.id, "position_code": "FT-1", "device_type": "Расходомер",
        "data_type": "kip", "kip": {"manufacturer": "Endress"},
    })).json()
    device_id = created["reference"]["id"]
    signal = await signal_factory("Расход", "AI", "Расходомер")
    await client.post(f"/api/v1/sig/devices/{device_id}/signals", json={"signal_id": signal.id, "count": 3})

    monkeypatch.setattr(sig_crud, "recompute_signal_totals", _failing)
    response = await client.delete(f"/api/v1/ref/devices/{device_id}")
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 500
    assert response.json()["kind"] == "persistence"

    assert await _count(db_session, ref_models.Device, ref_models.Device.id == device_id) == 1
    assert await _count(db_session, ref_models.Kip, ref_models.Kip.device_id == device_id) == 1
    assert await _count(db_session, sig_models.DeviceSignal, sig_models.DeviceSignal.device_id == device_id) == 1


@pytest.mark.asyncio
async def test_delete_missing_device(client: AsyncClient):
    response = await client.delete("/api/v1/ref/devices/12345")
    assert response.status_code == 404
    assert response.json()["kind"] == "device"


@pytest.mark.asyncio
async def test_clear_devices_reports_count(client: AsyncClient, db_session: AsyncSession, test_project, device_factory):
    other = prj_models.Project(name="Другой", code="OTHER")
    db_session.add(other)
    await db_session.commit()
    await db_session.refresh(other)

    await device_factory(test_project.id, "A-1")
    await device_factory(test_project.id, "A-2")
    await device_factory(other.id, "B-1")

    response = await client.delete("/api/v1/ref/devices/clear", params={"project_id": test_project.id})
    assert response.status_code == 200
    assert response.json() == {"deleted_count": 2}
    assert await _count(db_session, ref_models.Device) == 1


@pytest.mark.asyncio
async def test_filter_presets_crud(client: AsyncClient, test_project):
    print("\n--- Running test_filter_presets_crud ---")
    payload = {"owner": "operator", "name": "Расходомеры", "project_id": test_project.id,
               "filters": {"device_type": "Расходомер"}}
    response = await client.post("/api/v1/ref/filter-presets", json=payload)
    assert response.status_code == 201
    preset_id = response.json()["id"]

    response = await client.post("/api/v1/ref/filter-presets", json=payload)
    assert response.status_code == 400

    response = await client.get("/api/v1/ref/filter-presets", params={"owner": "operator"})
    assert [p["name"] for p in response.json()] == ["Расходомеры"]

    response = await client.put(f"/api/v1/ref/filter-presets/{preset_id}", json={"filters": {"search": "FT"}})
    assert response.json()["filters"] == {"search": "FT"}

    response = await client.delete(f"/api/v1/ref/filter-presets/{preset_id}")
    assert response.status_code == 204
    response = await client.get("/api/v1/ref/filter-presets", params={"owner": "operator"})
    assert response.json() == []
