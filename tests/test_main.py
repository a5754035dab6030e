# tests/test_main.py

"""
Проверки корневого маршрута и проверки состояния (`/health-check`).
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_read_root(client: AsyncClient):
    print("\n--- Running test_read_root ---")
    response = await client.get("/")
    print(f"Response JSON: {response.json()}")

    assert response.status_code == 200
    assert response.json() == {
        "message": "Welcome to KIP/ZRA Registry API. Visit /docs for interactive API documentation."
    }


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    print("\n--- Running test_health_check ---")
    response = await client.get("/health-check")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database_connection": "successful"}


@pytest.mark.asyncio
async def test_domain_error_is_rendered_with_kind(client: AsyncClient):
    """Прикладные исключения возвращаются как {"detail", "kind"}."""
    print("\n--- Running test_domain_error_is_rendered_with_kind ---")
    response = await client.delete("/api/v1/adm/tables/unknown_table")

    assert response.status_code == 404
    assert response.json() == {"detail": "Table 'unknown_table' not found", "kind": "table"}
