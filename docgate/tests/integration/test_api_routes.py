from __future__ import annotations

from typing import AsyncIterator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docgate.apps.api.deps import get_db
from docgate.apps.api.main import create_app
from docgate.core.config import get_settings
from docgate.tests.utils.factories import (
    add_chunk,
    add_document,
    add_grant,
    add_owner,
    add_role,
    add_user,
    query_vector,
)


def _apply_env(monkeypatch, **overrides: str) -> None:
    # Apply environment overrides and reset cached settings.
    monkeypatch.setenv("AUTH_DEV_BYPASS", "true")
    for key, value in overrides.items():
        monkeypatch.setenv(key, str(value))
    get_settings.cache_clear()


def _as(principal_id: str) -> dict[str, str]:
    return {"X-Principal-Id": principal_id}


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession], monkeypatch
) -> AsyncIterator[AsyncClient]:
    _apply_env(monkeypatch)
    app = create_app()

    async def _test_db() -> AsyncIterator[AsyncSession]:
        async with session_factory() as db_session:
            yield db_session

    app.dependency_overrides[get_db] = _test_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as http_client:
        yield http_client


@pytest.mark.asyncio
async def test_health_envelope(client: AsyncClient) -> None:
    response = await client.get("/v1/health", headers={"X-Request-Id": "req-123"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["data"] == {"status": "ok", "app": "docgate", "database": "ok"}
    assert payload["meta"] == {"request_id": "req-123", "api_version": "v1"}
    assert response.headers["X-Request-Id"] == "req-123"


@pytest.mark.asyncio
async def test_access_check_never_leaks_existence(client: AsyncClient, session: AsyncSession) -> None:
    owner = await add_owner(session)
    await add_document(session, owner_id=owner.id, slug="open")
    await add_document(session, owner_id=owner.id, slug="board-only", access_level="owner_admin_only")
    await add_document(session, owner_id=owner.id, slug="locked", access_level="passcode", passcode="pw")

    response = await client.post("/v1/access/check", json={"document": "open"})
    assert response.status_code == 200
    assert response.json()["data"] == {"document": "open", "allowed": True}

    response = await client.post(
        "/v1/access/check-batch",
        json={
            "documents": ["open", "board-only", "locked", "missing"],
            "passcodes": {"locked": "pw"},
        },
    )
    assert response.status_code == 200
    assert response.json()["data"]["results"] == {
        "open": True,
        "board-only": False,
        "locked": True,
        "missing": False,
    }


@pytest.mark.asyncio
async def test_request_validation_envelope(client: AsyncClient) -> None:
    response = await client.post("/v1/access/check", json={"passcode": "x"})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "REQUEST_VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_mutations_require_a_principal(client: AsyncClient) -> None:
    response = await client.post("/v1/documents", json={"slug": "x", "title": "X"})
    assert response.status_code == 401
    assert response.json()["error"]["code"] == "AUTH_UNAUTHORIZED"


@pytest.mark.asyncio
async def test_header_principal_ignored_without_dev_bypass(
    client: AsyncClient, session: AsyncSession, monkeypatch
) -> None:
    principal = await add_user(session)
    _apply_env(monkeypatch, AUTH_DEV_BYPASS="false")
    response = await client.post("/v1/documents", json={"slug": "x", "title": "X"}, headers=_as(principal))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_quota_exceeded_envelope(client: AsyncClient, session: AsyncSession) -> None:
    owner = await add_owner(session, plan_tier="free")
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)
    await add_document(session, owner_id=owner.id)

    response = await client.post(
        "/v1/documents",
        json={"slug": "one-too-many", "title": "Extra", "owner_id": owner.id},
        headers=_as(admin),
    )
    assert response.status_code == 402
    error = response.json()["error"]
    assert error["code"] == "QUOTA_EXCEEDED"
    assert error["details"] == {"plan_tier": "free", "limit": 1, "current_count": 1}


@pytest.mark.asyncio
async def test_create_and_read_document(client: AsyncClient, session: AsyncSession) -> None:
    owner = await add_owner(session, default_chunk_limit=40, forced_model="grok")
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)

    response = await client.post(
        "/v1/documents",
        json={
            "slug": "guide",
            "title": "Guide",
            "owner_id": owner.id,
            "access_level": "passcode",
            "passcode": "secret",
        },
        headers=_as(admin),
    )
    assert response.status_code == 201
    created = response.json()["data"]
    assert created["has_passcode"] is True
    assert "passcode" not in created
    assert created["chunk_limit"] == 40
    assert created["forced_model"] == "grok"

    response = await client.get("/v1/documents/guide", headers={"X-Document-Passcode": "secret"})
    assert response.status_code == 200
    assert response.json()["data"]["id"] == created["id"]


@pytest.mark.asyncio
async def test_read_denials_are_404_for_readers_and_403_for_admins(
    client: AsyncClient, session: AsyncSession
) -> None:
    owner = await add_owner(session)
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)
    outsider = await add_user(session)
    await add_document(session, owner_id=owner.id, slug="board-only", access_level="owner_admin_only")
    await add_document(session, owner_id=owner.id, slug="locked", access_level="passcode", passcode="pw")

    response = await client.get("/v1/documents/board-only", headers=_as(outsider))
    assert response.status_code == 404
    response = await client.get("/v1/documents/does-not-exist", headers=_as(outsider))
    assert response.status_code == 404
    response = await client.get(
        "/v1/documents/locked", headers={**_as(admin), "X-Document-Passcode": "wrong"}
    )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "PERMISSION_DENIED"
    response = await client.get("/v1/documents/board-only", headers=_as(admin))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_grant_role_over_http(client: AsyncClient, session: AsyncSession) -> None:
    owner = await add_owner(session)
    super_admin = await add_user(session)
    await add_role(session, super_admin, "super_admin")
    target = await add_user(session)
    await add_grant(session, target, owner.id)

    body = {"principal_id": target, "role": "tenant_admin", "owner_id": owner.id}
    response = await client.post("/v1/roles", json=body, headers=_as(target))
    assert response.status_code == 403

    response = await client.post("/v1/roles", json=body, headers=_as(super_admin))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["created"] is True
    assert data["removed_grants"] == 1

    response = await client.get(f"/v1/principals/{target}/roles", headers=_as(target))
    assert response.status_code == 200
    roles = response.json()["data"]
    assert roles["roles"] == [{"role": "tenant_admin", "owner_id": owner.id}]
    assert roles["accessible_owners"] == {owner.id: "tenant_admin"}

    response = await client.post(
        "/v1/roles",
        json={"principal_id": target, "role": "super_admin", "owner_id": owner.id},
        headers=_as(super_admin),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_owner_quota_endpoint(client: AsyncClient, session: AsyncSession) -> None:
    owner = await add_owner(session, plan_tier="enterprise")
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)
    await add_document(session, owner_id=owner.id)

    response = await client.get(f"/v1/owners/{owner.id}/quota", headers=_as(admin))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["plan_tier"] == "enterprise"
    assert data["limit"] == 10
    assert data["current_count"] == 1
    assert data["can_add_document"] is True
    assert data["can_use_voice_training"] is True


@pytest.mark.asyncio
async def test_search_only_covers_readable_documents(client: AsyncClient, session: AsyncSession) -> None:
    owner = await add_owner(session)
    public = await add_document(session, owner_id=owner.id, slug="public-guide")
    restricted = await add_document(
        session, owner_id=owner.id, slug="board-notes", access_level="owner_admin_only"
    )
    await add_chunk(session, document_id=public.id, chunk_index=0, content="Setup steps", similarity=0.9)
    await add_chunk(session, document_id=restricted.id, chunk_index=0, content="Board minutes", similarity=0.95)

    response = await client.post(
        "/v1/search",
        json={
            "query_embedding": query_vector(),
            "query_text": "setup",
            "documents": ["public-guide", "board-notes", "missing"],
        },
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert [hit["document_id"] for hit in data["results"]] == [public.id]
    assert data["skipped"] == ["board-notes", "missing"]


@pytest.mark.asyncio
async def test_invitation_flow_over_http(client: AsyncClient, session: AsyncSession) -> None:
    owner = await add_owner(session)
    admin = await add_user(session)
    await add_role(session, admin, "tenant_admin", owner.id)
    invitee = await add_user(session)

    response = await client.post(f"/v1/owners/{owner.id}/invitations", json={}, headers=_as(invitee))
    assert response.status_code == 403

    response = await client.post(
        f"/v1/owners/{owner.id}/invitations", json={"ttl_hours": 24}, headers=_as(admin)
    )
    assert response.status_code == 201
    issued = response.json()["data"]
    assert issued["role"] == "registered"
    assert issued["token"].startswith(issued["token_prefix"])

    response = await client.get(f"/v1/owners/{owner.id}/invitations", headers=_as(admin))
    assert [item["id"] for item in response.json()["data"]] == [issued["id"]]
    assert "token" not in response.json()["data"][0]

    response = await client.post("/v1/invitations/validate", json={"token": issued["token"]})
    assert response.status_code == 200
    assert response.json()["data"]["owner_id"] == owner.id

    response = await client.post("/v1/invitations/redeem", json={"token": issued["token"]})
    assert response.status_code == 401

    response = await client.post(
        "/v1/invitations/redeem", json={"token": issued["token"]}, headers=_as(invitee)
    )
    assert response.status_code == 200
    assert response.json()["data"] == {
        "principal_id": invitee,
        "owner_id": owner.id,
        "role": "registered",
        "created": True,
    }

    response = await client.post(
        "/v1/invitations/redeem", json={"token": issued["token"]}, headers=_as(invitee)
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    response = await client.post("/v1/invitations/redeem", json={"token": "dgi_unknown"}, headers=_as(invitee))
    assert response.status_code == 404
