import asyncio
import datetime
import uuid

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from keepalive.auth.credentials import hash_secret_token
from keepalive.core.config import settings
from keepalive.services.liveness import Outcome, as_utc
from keepalive.services.ping_store import PersistenceError, PingStore, get_ping_store


async def _create(session_factory: async_sessionmaker[AsyncSession]):
    async with session_factory() as session:
        return await PingStore(session).create_project(uuid.uuid4(), "demo")


async def _read_back(session_factory: async_sessionmaker[AsyncSession], token: str):
    async with session_factory() as session:
        return await PingStore(session).find_by_token_hash(hash_secret_token(token))


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.mark.asyncio
async def test_missing_header_is_401(client: httpx.AsyncClient) -> None:
    response = await client.post("/api/ping")

    assert response.status_code == 401
    assert response.json()["error"] == "Missing or malformed Authorization header"
    assert response.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.asyncio
@pytest.mark.parametrize("header", ["Basic abc", "bearer kal_live_x", "Bearer "])
async def test_malformed_header_is_401(client: httpx.AsyncClient, header: str) -> None:
    response = await client.post("/api/ping", headers={"Authorization": header})

    assert response.status_code == 401
    assert response.json() == {
        "success": False,
        "error": "Missing or malformed Authorization header",
    }


@pytest.mark.asyncio
async def test_wrong_token_is_403_without_leaking(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    project, _ = await _create(session_factory)

    response = await client.post("/api/ping", headers=_bearer("wrong_token"))

    assert response.status_code == 403
    assert response.json() == {"success": False, "error": "Invalid API Token"}
    assert project.public_id not in response.text


@pytest.mark.asyncio
async def test_bodyless_ping_activates_project(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    project, token = await _create(session_factory)
    assert project.status == "pending"

    before = datetime.datetime.now(datetime.timezone.utc)
    response = await client.post("/api/ping", headers=_bearer(token))
    after = datetime.datetime.now(datetime.timezone.utc)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Ping recorded"}

    stored = await _read_back(session_factory, token)
    assert stored.status == "active"
    assert before <= as_utc(stored.last_ping_at) <= after


@pytest.mark.asyncio
async def test_failed_status_is_recorded_as_dead(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    _, token = await _create(session_factory)
    await client.post("/api/ping", headers=_bearer(token))
    first = await _read_back(session_factory, token)

    response = await client.post("/api/ping", headers=_bearer(token), json={"status": "failed"})

    assert response.status_code == 200
    assert response.json()["success"] is True
    stored = await _read_back(session_factory, token)
    assert stored.status == "dead"
    assert as_utc(stored.last_ping_at) >= as_utc(first.last_ping_at)


@pytest.mark.asyncio
async def test_ok_status_with_project_id(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    project, token = await _create(session_factory)

    response = await client.post(
        "/api/ping",
        headers=_bearer(token),
        json={"project_id": project.public_id, "status": "ok"},
    )

    assert response.status_code == 200
    assert (await _read_back(session_factory, token)).status == "active"


@pytest.mark.asyncio
async def test_mismatched_project_id_is_403(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    _, token = await _create(session_factory)
    other, _ = await _create(session_factory)

    response = await client.post(
        "/api/ping",
        headers=_bearer(token),
        json={"project_id": other.public_id},
    )

    assert response.status_code == 403
    assert (await _read_back(session_factory, token)).status == "pending"


@pytest.mark.asyncio
async def test_unparseable_body_still_counts_as_success(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    _, token = await _create(session_factory)

    response = await client.post(
        "/api/ping",
        headers={**_bearer(token), "Content-Type": "application/json"},
        content=b'{"status": "failed"',
    )

    assert response.status_code == 200
    assert (await _read_back(session_factory, token)).status == "active"


@pytest.mark.asyncio
async def test_superseded_ping_is_acknowledged_without_regression(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    _, token = await _create(session_factory)
    future = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1)
    async with session_factory() as session:
        await PingStore(session).record_ping(hash_secret_token(token), Outcome.FAILURE, future)

    response = await client.post("/api/ping", headers=_bearer(token))

    assert response.status_code == 200
    stored = await _read_back(session_factory, token)
    assert stored.status == "dead"
    assert as_utc(stored.last_ping_at) == future


@pytest.mark.asyncio
async def test_created_credentials_authenticate_immediately(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    for _ in range(3):
        project, token = await _create(session_factory)
        response = await client.post(
            "/api/ping",
            headers=_bearer(token),
            json={"project_id": project.public_id},
        )
        assert response.status_code == 200


class _BrokenStore(PingStore):
    async def record_ping(self, *args, **kwargs):
        raise PersistenceError("connection refused by db-primary:5432")


class _SlowStore(PingStore):
    async def record_ping(self, *args, **kwargs):
        await asyncio.sleep(1)


@pytest.mark.asyncio
async def test_persistence_failure_is_opaque_500(app: FastAPI, client: httpx.AsyncClient) -> None:
    app.dependency_overrides[get_ping_store] = lambda: _BrokenStore(None)

    response = await client.post("/api/ping", headers=_bearer("kal_live_whatever"))

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal Server Error"}
    assert "db-primary" not in response.text


@pytest.mark.asyncio
async def test_ping_work_is_time_bounded(
    app: FastAPI,
    client: httpx.AsyncClient,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(settings, "PING_TIMEOUT_SECONDS", 0.05)
    app.dependency_overrides[get_ping_store] = lambda: _SlowStore(None)

    response = await client.post("/api/ping", headers=_bearer("kal_live_whatever"))

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


class _RefusingStore(PingStore):
    async def record_ping(self, *args, **kwargs):
        raise ConnectionRefusedError(111, "Connect call failed ('10.0.0.7', 5432)")


@pytest.mark.asyncio
async def test_unexpected_error_is_json_500(app: FastAPI) -> None:
    app.dependency_overrides[get_ping_store] = lambda: _RefusingStore(None)
    # Starlette re-raises after the handler responds; keep the response instead.
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        response = await http.post("/api/ping", headers=_bearer("kal_live_whatever"))

    assert response.status_code == 500
    assert response.headers["content-type"] == "application/json"
    assert response.json() == {"success": False, "error": "Internal Server Error"}
    assert "10.0.0.7" not in response.text


@pytest.mark.asyncio
async def test_first_ping_failure_kills_pending_project(
    client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    _, token = await _create(session_factory)

    response = await client.post("/api/ping", headers=_bearer(token), json={"status": "failed"})

    assert response.status_code == 200
    stored = await _read_back(session_factory, token)
    assert stored.status == "dead"
    assert stored.last_ping_at is not None
