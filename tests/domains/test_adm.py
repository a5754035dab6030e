# tests/domains/test_adm.py

"""
Маршруты домена 'adm': `GET /adm/tables`, `DELETE /adm/tables/{table_name}`.
"""

import pytest
from httpx import AsyncClient
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from kipzra.domains.ref import models as ref_models
from kipzra.domains.sig import models as sig_models


@pytest.mark.asyncio
async def test_list_tables(client: AsyncClient, test_project, device_factory, signal_factory):
    print("\n--- Running test_list_tables ---")
    await device_factory(test_project.id, "PT-1")
    await signal_factory("Давление", "AI")

    response = await client.get("/api/v1/adm/tables")
    print(f"Response JSON: {response.json()}")
    assert response.status_code == 200
    tables = {t["name"]: t["row_count"] for t in response.json()}
    assert tables["devices"] == 1
    assert tables["signals"] == 1
    assert tables["device_signals"] == 0
    assert tables["signal_types"] == 0
    assert "projects" not in tables


@pytest.mark.asyncio
async def test_clear_signals_removes_assignments(
    client: AsyncClient, db_session: AsyncSession, test_project, device_factory, signal_factory
):
    device = await device_factory(test_project.id, "PT-1")
    signal = await signal_factory("Давление", "AI")
    await client.post(f"/api/v1/sig/devices/{device.id}/signals", json={"signal_id": signal.id})

    response = await client.delete("/api/v1/adm/tables/signals")
    assert response.status_code == 200
    assert response.json() == {"table": "signals", "deleted_count": 1}

    assert (await db_session.execute(select(sig_models.DeviceSignal))).scalars().all() == []
    assert len((await db_session.execute(select(ref_models.Device))).scalars().all()) == 1


@pytest.mark.asyncio
async def test_clear_assignments_resets_totals(client: AsyncClient, test_project, device_factory, signal_factory):
    device = await device_factory(test_project.id, "PT-1")
    signal = await signal_factory("Давление", "AI")
    await client.post(f"/api/v1/sig/devices/{device.id}/signals", json={"signal_id": signal.id, "count": 4})

    response = await client.delete("/api/v1/adm/tables/device_signals")
    assert response.json()["deleted_count"] == 1
    assert (await client.get(f"/api/v1/sig/signals/{signal.id}")).json()["total_count"] == 0


@pytest.mark.asyncio
async def test_clear_devices_removes_details(
    client: AsyncClient, db_session: AsyncSession, test_project, device_factory
):
    device = await device_factory(test_project.id, "XV-1", device_type="Кран")
    db_session.add(ref_models.Zra(device_id=device.id, valve_type="Запорная"))
    await db_session.commit()

    response = await client.delete("/api/v1/adm/tables/devices")
    assert response.json() == {"table": "devices", "deleted_count": 1}
    assert (await db_session.execute(select(ref_models.Zra))).scalars().all() == []


@pytest.mark.asyncio
async def test_clear_unknown_table(client: AsyncClient):
    response = await client.delete("/api/v1/adm/tables/projects")
    assert response.status_code == 404
    assert response.json()["kind"] == "table"
