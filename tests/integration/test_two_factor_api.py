"""Two-factor setup through the API with a OneZero adapter on a mock transport."""

import json

import httpx
import pytest
from httpx import AsyncClient

from finsync.api.deps import get_provider_registry
from finsync.main import app
from finsync.providers.onezero import OneZeroAdapter
from finsync.providers.registry import ProviderRegistry
from finsync.providers.sessions import InMemoryTwoFactorSessionStore

CREDENTIALS = {"email": "dana@example.com", "password": "secret", "phone_number": "0501234567"}


def _identity(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content) if request.content else {}
    if request.url.path.endswith("/devices/token"):
        return httpx.Response(200, json={"resultData": {"deviceToken": "device-1"}})
    if request.url.path.endswith("/otp/prepare"):
        return httpx.Response(200, json={"resultData": {"otpContext": "ctx-1"}})
    if request.url.path.endswith("/otp/verify"):
        if body.get("otpCode") != "123456":
            return httpx.Response(400, json={})
        return httpx.Response(200, json={"resultData": {"otpToken": "long-term-token-0123456789"}})
    return httpx.Response(404)


@pytest.fixture
async def onezero_client(client: AsyncClient):
    store = InMemoryTwoFactorSessionStore(ttl_seconds=600)
    adapter = OneZeroAdapter(
        store,
        identity_url="https://identity.test/v1",
        api_url="https://api.test",
        transport=httpx.MockTransport(_identity),
    )
    app.dependency_overrides[get_provider_registry] = lambda: ProviderRegistry([adapter])
    yield client


async def _create(client: AsyncClient, headers: dict) -> dict:
    response = await client.post(
        "/api/v1/connections",
        headers=headers,
        json={"provider": "onezero", "display_name": "OneZero", "credentials": CREDENTIALS},
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_two_factor_connection_starts_pending(onezero_client: AsyncClient, auth_headers: dict):
    connection = await _create(onezero_client, auth_headers)

    assert connection["is_active"] is False
    assert connection["last_sync_status"] == "pending"


@pytest.mark.asyncio
async def test_complete_two_factor_activates_connection(onezero_client: AsyncClient, auth_headers: dict):
    connection = await _create(onezero_client, auth_headers)
    base = f"/api/v1/connections/{connection['id']}/two-factor"

    init = await onezero_client.post(f"{base}/init", headers=auth_headers)
    assert init.status_code == 200
    session_id = init.json()["session_id"]

    complete = await onezero_client.post(
        f"{base}/complete", headers=auth_headers, json={"session_id": session_id, "code": "123456"}
    )

    assert complete.status_code == 200
    assert complete.json()["is_active"] is True


@pytest.mark.asyncio
async def test_session_cannot_be_completed_twice(onezero_client: AsyncClient, auth_headers: dict):
    connection = await _create(onezero_client, auth_headers)
    base = f"/api/v1/connections/{connection['id']}/two-factor"
    session_id = (await onezero_client.post(f"{base}/init", headers=auth_headers)).json()["session_id"]
    payload = {"session_id": session_id, "code": "123456"}

    first = await onezero_client.post(f"{base}/complete", headers=auth_headers, json=payload)
    second = await onezero_client.post(f"{base}/complete", headers=auth_headers, json=payload)

    assert first.status_code == 200
    assert second.status_code == 410
    assert second.json()["error_code"] == "AUTH_002"


@pytest.mark.asyncio
async def test_wrong_code(onezero_client: AsyncClient, auth_headers: dict):
    connection = await _create(onezero_client, auth_headers)
    base = f"/api/v1/connections/{connection['id']}/two-factor"
    session_id = (await onezero_client.post(f"{base}/init", headers=auth_headers)).json()["session_id"]

    response = await onezero_client.post(
        f"{base}/complete", headers=auth_headers, json={"session_id": session_id, "code": "000000"}
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "AUTH_003"
    detail = await onezero_client.get(f"/api/v1/connections/{connection['id']}", headers=auth_headers)
    assert detail.json()["is_active"] is False


@pytest.mark.asyncio
async def test_unknown_session(onezero_client: AsyncClient, auth_headers: dict):
    connection = await _create(onezero_client, auth_headers)

    response = await onezero_client.post(
        f"/api/v1/connections/{connection['id']}/two-factor/complete",
        headers=auth_headers,
        json={"session_id": "onezero_made-up", "code": "123456"},
    )

    assert response.status_code == 410


@pytest.mark.asyncio
async def test_session_from_another_connection_is_rejected(onezero_client: AsyncClient, auth_headers: dict):
    first = await _create(onezero_client, auth_headers)
    second = await _create(onezero_client, auth_headers)
    init = await onezero_client.post(f"/api/v1/connections/{first['id']}/two-factor/init", headers=auth_headers)
    payload = {"session_id": init.json()["session_id"], "code": "123456"}

    stolen = await onezero_client.post(
        f"/api/v1/connections/{second['id']}/two-factor/complete", headers=auth_headers, json=payload
    )

    assert stolen.status_code == 410
    assert stolen.json()["error_code"] == "AUTH_002"
    detail = await onezero_client.get(f"/api/v1/connections/{second['id']}", headers=auth_headers)
    assert detail.json()["is_active"] is False

    own = await onezero_client.post(
        f"/api/v1/connections/{first['id']}/two-factor/complete", headers=auth_headers, json=payload
    )
    assert own.status_code == 200
    assert own.json()["is_active"] is True
