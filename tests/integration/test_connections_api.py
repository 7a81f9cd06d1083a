"""Integration tests for bank connection endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import isracard_credentials, make_scrape_result
from finsync.core.vault import decrypt_credentials
from finsync.models.connection import BankConnection
from finsync.providers.base import ScrapeResult


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient):
    response = await client.get("/api/v1/connections")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_rejects_invalid_token(client: AsyncClient):
    response = await client.get("/api/v1/connections", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_list_providers(client: AsyncClient, auth_headers: dict):
    response = await client.get("/api/v1/connections/providers", headers=auth_headers)

    assert response.status_code == 200
    [provider] = response.json()["providers"]
    assert provider["provider"] == "isracard"
    assert provider["credential_fields"] == ["id", "card6_digits", "password"]


@pytest.mark.asyncio
async def test_create_connection_encrypts_credentials(
    client: AsyncClient, auth_headers: dict, db_session: AsyncSession, household
):
    response = await client.post(
        "/api/v1/connections",
        headers=auth_headers,
        json={"provider": "isracard", "display_name": "Family card", "credentials": isracard_credentials()},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["provider"] == "isracard"
    assert data["is_active"] is True
    assert "credentials" not in data
    assert "encrypted_credentials" not in data

    stored = (await db_session.execute(select(BankConnection))).scalar_one()
    assert stored.household_id == household.id
    assert "secret" not in stored.encrypted_credentials
    assert decrypt_credentials(stored.encrypted_credentials) == isracard_credentials()


@pytest.mark.asyncio
async def test_create_connection_with_missing_fields(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/v1/connections",
        headers=auth_headers,
        json={"provider": "isracard", "display_name": "Card", "credentials": {"id": "123456782"}},
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "CRED_002"


@pytest.mark.asyncio
async def test_create_connection_unknown_provider(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/v1/connections",
        headers=auth_headers,
        json={"provider": "hapoalim", "display_name": "Bank", "credentials": {}},
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "PROV_002"


@pytest.mark.asyncio
async def test_list_only_own_connections(
    client: AsyncClient, auth_headers: dict, household, other_household, make_connection
):
    await make_connection(household, "111111111")
    await make_connection(other_household, "222222222")

    response = await client.get("/api/v1/connections", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_get_connection_of_other_household_is_forbidden(
    client: AsyncClient, auth_headers: dict, other_household, make_connection
):
    connection = await make_connection(other_household, "222222222")

    response = await client.get(f"/api/v1/connections/{connection.id}", headers=auth_headers)

    assert response.status_code == 403
    assert response.json()["error_code"] == "API_005"


@pytest.mark.asyncio
async def test_get_missing_connection(client: AsyncClient, auth_headers: dict):
    response = await client.get(
        "/api/v1/connections/00000000-0000-0000-0000-000000000000", headers=auth_headers
    )

    assert response.status_code == 404
    assert response.json()["error_code"] == "API_001"


@pytest.mark.asyncio
async def test_sync_connection_and_history(
    client: AsyncClient, auth_headers: dict, household, make_connection, scripted_adapter
):
    connection = await make_connection(household, "123456782")
    scripted_adapter.outcomes["123456782"] = make_scrape_result("1111", ["a", "b"])

    response = await client.post(f"/api/v1/connections/{connection.id}/sync", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["transactions_new"] == 2
    assert data["auth_required"] is False

    history = await client.get(f"/api/v1/connections/{connection.id}/history", headers=auth_headers)
    [job] = history.json()["jobs"]
    assert job["status"] == "success"
    assert job["transactions_found"] == 2


@pytest.mark.asyncio
async def test_sync_reports_auth_required(
    client: AsyncClient, auth_headers: dict, household, make_connection, scripted_adapter
):
    connection = await make_connection(household, "123456782")
    scripted_adapter.outcomes["123456782"] = ScrapeResult.failure("CHANGE_PASSWORD", "Password change needed")

    response = await client.post(f"/api/v1/connections/{connection.id}/sync", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is False
    assert data["auth_required"] is True

    detail = await client.get(f"/api/v1/connections/{connection.id}", headers=auth_headers)
    assert detail.json()["is_active"] is False


@pytest.mark.asyncio
async def test_two_factor_on_provider_without_it(
    client: AsyncClient, auth_headers: dict, household, make_connection
):
    connection = await make_connection(household, "123456782")

    response = await client.post(f"/api/v1/connections/{connection.id}/two-factor/init", headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["error_code"] == "PROV_003"


@pytest.mark.asyncio
async def test_account_mappings(
    client: AsyncClient, auth_headers: dict, db_session: AsyncSession, household, other_household, make_connection
):
    from finsync.models.account import Account

    mine = Account(household_id=household.id, name="Checking", type="checking")
    theirs = Account(household_id=other_household.id, name="Theirs", type="checking")
    db_session.add_all([mine, theirs])
    await db_session.commit()
    connection = await make_connection(household, "123456782")

    ok = await client.put(
        f"/api/v1/connections/{connection.id}/account-mappings",
        headers=auth_headers,
        json={"mappings": {"1111": str(mine.id)}},
    )
    rejected = await client.put(
        f"/api/v1/connections/{connection.id}/account-mappings",
        headers=auth_headers,
        json={"mappings": {"2222": str(theirs.id)}},
    )

    assert ok.status_code == 200
    assert ok.json()["account_mappings"] == {"1111": str(mine.id)}
    assert rejected.status_code == 400
    assert rejected.json()["error_code"] == "VAL_003"


@pytest.mark.asyncio
async def test_delete_connection(
    client: AsyncClient, auth_headers: dict, db_session: AsyncSession, household, make_connection, scripted_adapter
):
    connection = await make_connection(household, "123456782")
    connection_id = connection.id
    await client.post(f"/api/v1/connections/{connection_id}/sync", headers=auth_headers)

    response = await client.delete(f"/api/v1/connections/{connection_id}", headers=auth_headers)

    assert response.status_code == 204
    missing = await client.get(f"/api/v1/connections/{connection_id}", headers=auth_headers)
    assert missing.status_code == 404
