from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from catgov.apps.api.main import create_app
from catgov.domain.catalog import ADMIN_USERS_MANAGEMENT, Role
from catgov.services.audit import AuditEmitter
from catgov.tests.utils.audit import RecordingAuditSink
from catgov.tests.utils.principals import admin_headers, seed_admin_user


def _client() -> AsyncClient:
    emitter = AuditEmitter([RecordingAuditSink()], enabled=True)
    return AsyncClient(transport=ASGITransport(app=create_app(audit_emitter=emitter)), base_url="http://test")


@pytest.mark.asyncio
async def test_super_admin_creates_country_admin_who_can_then_act() -> None:
    super_id = await seed_admin_user(role=Role.SUPER_ADMIN)
    async with _client() as client:
        created = await client.post(
            "/v1/admin-principals",
            json={"email": "Ops@Example.com", "display_name": "Ops", "role": "country_admin", "country_code": "lk"},
            headers=admin_headers(super_id),
        )
        assert created.status_code == 201
        data = created.json()["data"]
        assert data["email"] == "ops@example.com"
        assert data["country_code"] == "LK"

        toggled = await client.put(
            "/v1/activation-overrides",
            json={"entity_type": "product", "entity_id": "p1", "country_code": "LK", "is_active": False},
            headers=admin_headers(data["id"]),
        )
    assert toggled.status_code == 200


@pytest.mark.asyncio
async def test_country_admin_cannot_mint_super_admin() -> None:
    manager = await seed_admin_user(
        country_code="LK",
        capabilities={ADMIN_USERS_MANAGEMENT, "businessManagement"},
    )
    async with _client() as client:
        response = await client.post(
            "/v1/admin-principals",
            json={"email": "root@example.com", "display_name": "Root", "role": "super_admin"},
            headers=admin_headers(manager),
        )
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTH_FORBIDDEN"


@pytest.mark.asyncio
async def test_duplicate_email_conflicts_and_bad_role_is_rejected() -> None:
    super_id = await seed_admin_user(role=Role.SUPER_ADMIN)
    payload = {"email": "dup@example.com", "display_name": "Dup", "country_code": "LK"}
    async with _client() as client:
        first = await client.post("/v1/admin-principals", json=payload, headers=admin_headers(super_id))
        second = await client.post("/v1/admin-principals", json=payload, headers=admin_headers(super_id))
        bad_role = await client.post(
            "/v1/admin-principals",
            json={**payload, "email": "other@example.com", "role": "owner"},
            headers=admin_headers(super_id),
        )
    assert first.status_code == 201
    assert second.status_code == 409
    assert bad_role.status_code == 400


@pytest.mark.asyncio
async def test_super_admin_grants_admin_management_then_manager_staffs_country() -> None:
    super_id = await seed_admin_user(role=Role.SUPER_ADMIN)
    lk_admin = await seed_admin_user(country_code="LK")
    async with _client() as client:
        before = await client.post(
            "/v1/admin-principals",
            json={"email": "early@example.com", "display_name": "Early"},
            headers=admin_headers(lk_admin),
        )
        granted = await client.patch(
            f"/v1/admin-principals/{lk_admin}",
            json={"capabilities": [ADMIN_USERS_MANAGEMENT, "contentManagement"]},
            headers=admin_headers(super_id),
        )
        after = await client.post(
            "/v1/admin-principals",
            json={"email": "helper@example.com", "display_name": "Helper", "country_code": "IN"},
            headers=admin_headers(lk_admin),
        )
    assert before.status_code == 403
    assert granted.status_code == 200
    body = granted.json()
    assert ADMIN_USERS_MANAGEMENT in body["data"]["capabilities"]
    assert body["meta"]["principal_id"] == super_id
    assert after.status_code == 201
    assert after.json()["data"]["country_code"] == "LK"


@pytest.mark.asyncio
async def test_country_manager_cannot_promote_or_reach_other_countries() -> None:
    manager = await seed_admin_user(country_code="LK", capabilities={ADMIN_USERS_MANAGEMENT})
    colleague = await seed_admin_user(country_code="LK")
    neighbour = await seed_admin_user(country_code="IN")
    async with _client() as client:
        promote = await client.patch(
            f"/v1/admin-principals/{colleague}",
            json={"role": "super_admin"},
            headers=admin_headers(manager),
        )
        cross = await client.patch(
            f"/v1/admin-principals/{neighbour}",
            json={"is_active": False},
            headers=admin_headers(manager),
        )
        missing = await client.patch(
            "/v1/admin-principals/does-not-exist",
            json={"is_active": False},
            headers=admin_headers(manager),
        )
        extra = await client.patch(
            f"/v1/admin-principals/{colleague}",
            json={"email": "new@example.com"},
            headers=admin_headers(manager),
        )
    assert promote.status_code == 403
    assert promote.json()["error"]["code"] == "AUTH_FORBIDDEN"
    assert cross.status_code == 403
    assert missing.status_code == 404
    assert extra.status_code == 422
