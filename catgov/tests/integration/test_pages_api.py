from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from catgov.apps.api.main import create_app
from catgov.domain.catalog import Role
from catgov.services.audit import AuditEmitter
from catgov.tests.utils.audit import RecordingAuditSink
from catgov.tests.utils.principals import admin_headers, seed_admin_user


def _client() -> AsyncClient:
    emitter = AuditEmitter([RecordingAuditSink()], enabled=True)
    return AsyncClient(transport=ASGITransport(app=create_app(audit_emitter=emitter)), base_url="http://test")


@pytest.mark.asyncio
async def test_centralized_page_workflow_over_http() -> None:
    lk_admin = await seed_admin_user(country_code="LK")
    super_id = await seed_admin_user(role=Role.SUPER_ADMIN)
    async with _client() as client:
        created = await client.post(
            "/v1/pages",
            json={"slug": "terms", "title": "Terms", "scope": "centralized", "content": "v1"},
            headers=admin_headers(lk_admin),
        )
        assert created.status_code == 201
        page = created.json()["data"]
        assert page["status"] == "draft"
        assert page["requires_approval"] is True
        assert page["allowed_events"] == ["submit", "edit"]

        submitted = await client.put(
            f"/v1/pages/{page['id']}/status",
            json={"event": "submit"},
            headers=admin_headers(lk_admin),
        )
        assert submitted.json()["data"]["status"] == "pending"

        denied = await client.put(
            f"/v1/pages/{page['id']}/status",
            json={"event": "approve"},
            headers=admin_headers(lk_admin),
        )
        assert denied.status_code == 403
        assert denied.json()["error"]["code"] == "AUTH_FORBIDDEN"

        approved = await client.put(
            f"/v1/pages/{page['id']}/status",
            json={"event": "approve"},
            headers=admin_headers(super_id),
        )
        assert approved.json()["data"]["status"] == "approved"

        published = await client.put(
            f"/v1/pages/{page['id']}/status",
            json={"event": "publish"},
            headers=admin_headers(super_id),
        )
        assert published.status_code == 200
        assert published.json()["data"]["status"] == "published"


@pytest.mark.asyncio
async def test_invalid_transition_returns_conflict_with_allowed_actions() -> None:
    super_id = await seed_admin_user(role=Role.SUPER_ADMIN)
    async with _client() as client:
        created = await client.post(
            "/v1/pages",
            json={"slug": "help", "title": "Help", "scope": "centralized"},
            headers=admin_headers(super_id),
        )
        response = await client.put(
            f"/v1/pages/{created.json()['data']['id']}/status",
            json={"event": "publish"},
            headers=admin_headers(super_id),
        )
    assert response.status_code == 409
    error = response.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"] == {"current": "draft", "event": "publish", "allowed": ["submit", "edit", "delete"]}


@pytest.mark.asyncio
async def test_country_pages_are_hidden_from_other_countries() -> None:
    lk_admin = await seed_admin_user(country_code="LK")
    in_admin = await seed_admin_user(country_code="IN")
    async with _client() as client:
        created = await client.post(
            "/v1/pages",
            json={"slug": "lk-delivery", "title": "Delivery", "scope": "country_specific"},
            headers=admin_headers(lk_admin),
        )
        page_id = created.json()["data"]["id"]
        hidden = await client.get(f"/v1/pages/{page_id}", headers=admin_headers(in_admin))
        listing = await client.get("/v1/pages", headers=admin_headers(in_admin))
        own = await client.get("/v1/pages", params={"status": "draft"}, headers=admin_headers(lk_admin))
    assert created.json()["data"]["owner_country"] == "LK"
    assert hidden.status_code == 404
    assert listing.json()["data"]["items"] == []
    assert [item["slug"] for item in own.json()["data"]["items"]] == ["lk-delivery"]


@pytest.mark.asyncio
async def test_owner_deletes_draft_and_duplicate_slug_conflicts() -> None:
    lk_admin = await seed_admin_user(country_code="LK")
    async with _client() as client:
        first = await client.post(
            "/v1/pages",
            json={"slug": "promo", "title": "Promo", "scope": "country_specific"},
            headers=admin_headers(lk_admin),
        )
        duplicate = await client.post(
            "/v1/pages",
            json={"slug": "PROMO", "title": "Promo again", "scope": "country_specific"},
            headers=admin_headers(lk_admin),
        )
        deleted = await client.delete(f"/v1/pages/{first.json()['data']['id']}", headers=admin_headers(lk_admin))
        gone = await client.get(f"/v1/pages/{first.json()['data']['id']}", headers=admin_headers(lk_admin))
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "CONFLICT"
    assert deleted.status_code == 204
    assert gone.status_code == 404


@pytest.mark.asyncio
async def test_country_page_with_global_owner_is_rejected() -> None:
    lk_admin = await seed_admin_user(country_code="LK")
    async with _client() as client:
        response = await client.post(
            "/v1/pages",
            json={
                "slug": "lk-everywhere",
                "title": "Everywhere",
                "scope": "country_specific",
                "owner_country": "global",
                "requires_approval": False,
            },
            headers=admin_headers(lk_admin),
        )
        listing = await client.get("/v1/pages", headers=admin_headers(lk_admin))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "COUNTRY_REQUIRED"
    assert response.json()["meta"]["principal_id"] == lk_admin
    assert listing.json()["data"]["items"] == []
