from __future__ import annotations

import pytest

from catgov.core.errors import DuplicateAdmin, Forbidden, NotFound
from catgov.domain.catalog import ADMIN_USERS_MANAGEMENT, Role, default_capabilities
from catgov.persistence.db import SessionLocal
from catgov.services.admin_users import create_admin_principal, resolve_capabilities, update_admin_principal
from catgov.services.principals import country_admin, principal_from_admin_user, super_admin
from catgov.services.scope_policy import can_create_principal
from catgov.tests.utils.audit import recording_emitter


SUPER = super_admin("sa-1")
LK_MANAGER = country_admin("ca-lk", "LK", capabilities={ADMIN_USERS_MANAGEMENT})


def test_requested_capabilities_never_exceed_role_defaults() -> None:
    assert resolve_capabilities(Role.COUNTRY_ADMIN, None) == sorted(default_capabilities(Role.COUNTRY_ADMIN))
    assert resolve_capabilities(Role.COUNTRY_ADMIN, [ADMIN_USERS_MANAGEMENT, "productManagement"]) == [
        "productManagement"
    ]
    assert ADMIN_USERS_MANAGEMENT in resolve_capabilities(Role.SUPER_ADMIN, [ADMIN_USERS_MANAGEMENT])


@pytest.mark.asyncio
async def test_super_admin_creates_country_admin() -> None:
    async with SessionLocal() as session:
        row = await create_admin_principal(
            session,
            actor=SUPER,
            email="  Ops.LK@Example.com ",
            display_name="LK Ops",
            country_code="lk",
        )
    assert row.email == "ops.lk@example.com"
    assert row.role == Role.COUNTRY_ADMIN.value
    assert row.country_code == "LK"
    assert row.created_by == "sa-1"
    assert ADMIN_USERS_MANAGEMENT not in row.capabilities_json


@pytest.mark.asyncio
async def test_super_admin_creates_super_admin_without_country() -> None:
    async with SessionLocal() as session:
        row = await create_admin_principal(
            session,
            actor=SUPER,
            email="root@example.com",
            display_name="Root",
            requested_role="SuperAdmin",
            country_code="LK",
        )
    assert row.role == Role.SUPER_ADMIN.value
    assert row.country_code is None
    assert ADMIN_USERS_MANAGEMENT in row.capabilities_json


@pytest.mark.asyncio
async def test_country_admin_cannot_create_super_admin() -> None:
    emitter, sink = recording_emitter()
    async with SessionLocal() as session:
        with pytest.raises(Forbidden):
            await create_admin_principal(
                session,
                actor=LK_MANAGER,
                email="sneaky@example.com",
                display_name="Sneaky",
                requested_role=Role.SUPER_ADMIN,
                emitter=emitter,
            )
    await emitter.drain()
    assert sink.operations("deny") == ["admin_user.create"]


@pytest.mark.asyncio
async def test_country_admin_staffs_only_own_country() -> None:
    async with SessionLocal() as session:
        row = await create_admin_principal(
            session,
            actor=LK_MANAGER,
            email="helper@example.com",
            display_name="Helper",
            country_code="IN",
        )
    assert row.country_code == "LK"


@pytest.mark.asyncio
async def test_country_admin_without_capability_is_forbidden() -> None:
    async with SessionLocal() as session:
        with pytest.raises(Forbidden):
            await create_admin_principal(
                session,
                actor=country_admin("ca-plain", "LK"),
                email="helper@example.com",
                display_name="Helper",
            )


@pytest.mark.asyncio
async def test_country_admin_target_requires_country() -> None:
    async with SessionLocal() as session:
        with pytest.raises(ValueError):
            await create_admin_principal(
                session,
                actor=SUPER,
                email="nocountry@example.com",
                display_name="No Country",
            )


@pytest.mark.asyncio
async def test_duplicate_email_is_rejected_case_insensitively() -> None:
    async with SessionLocal() as session:
        await create_admin_principal(
            session,
            actor=SUPER,
            email="dup@example.com",
            display_name="First",
            country_code="LK",
        )
        with pytest.raises(DuplicateAdmin):
            await create_admin_principal(
                session,
                actor=SUPER,
                email="DUP@example.com",
                display_name="Second",
                country_code="IN",
            )


@pytest.mark.asyncio
async def test_super_admin_grants_admin_management_on_create() -> None:
    async with SessionLocal() as session:
        row = await create_admin_principal(
            session,
            actor=SUPER,
            email="manager.lk@example.com",
            display_name="LK Manager",
            country_code="LK",
            capabilities=[ADMIN_USERS_MANAGEMENT, "productManagement"],
        )
    assert row.capabilities_json == sorted([ADMIN_USERS_MANAGEMENT, "productManagement"])
    manager = principal_from_admin_user(row)
    assert can_create_principal(manager, Role.COUNTRY_ADMIN)
    assert not can_create_principal(manager, Role.SUPER_ADMIN)


@pytest.mark.asyncio
async def test_country_manager_cannot_grant_admin_management() -> None:
    async with SessionLocal() as session:
        row = await create_admin_principal(
            session,
            actor=LK_MANAGER,
            email="helper@example.com",
            display_name="Helper",
            capabilities=[ADMIN_USERS_MANAGEMENT, "productManagement"],
        )
    assert row.capabilities_json == ["productManagement"]


async def _country_admin_row(session, email: str, country: str) -> str:
    row = await create_admin_principal(
        session,
        actor=SUPER,
        email=email,
        display_name=email.split("@")[0],
        country_code=country,
    )
    return row.id


@pytest.mark.asyncio
async def test_super_admin_update_grants_admin_management() -> None:
    emitter, sink = recording_emitter()
    async with SessionLocal() as session:
        admin_id = await _country_admin_row(session, "lk.ops@example.com", "LK")
        row = await update_admin_principal(
            session,
            actor=SUPER,
            admin_id=admin_id,
            capabilities=[ADMIN_USERS_MANAGEMENT, "productManagement"],
            emitter=emitter,
        )
    await emitter.drain()
    assert row.capabilities_json == sorted([ADMIN_USERS_MANAGEMENT, "productManagement"])
    assert row.country_code == "LK"
    assert sink.operations("allow")[-1] == "admin_user.update"
    assert can_create_principal(principal_from_admin_user(row), Role.COUNTRY_ADMIN)


@pytest.mark.asyncio
async def test_super_admin_update_moves_country_and_deactivates() -> None:
    async with SessionLocal() as session:
        admin_id = await _country_admin_row(session, "mover@example.com", "LK")
        row = await update_admin_principal(
            session,
            actor=SUPER,
            admin_id=admin_id,
            country_code="in",
            display_name=" Mover ",
            is_active=False,
        )
    assert row.country_code == "IN"
    assert row.display_name == "Mover"
    assert row.is_active is False


@pytest.mark.asyncio
async def test_country_manager_cannot_promote_to_super_admin() -> None:
    emitter, sink = recording_emitter()
    async with SessionLocal() as session:
        admin_id = await _country_admin_row(session, "climber@example.com", "LK")
        with pytest.raises(Forbidden):
            await update_admin_principal(
                session,
                actor=LK_MANAGER,
                admin_id=admin_id,
                requested_role=Role.SUPER_ADMIN,
                emitter=emitter,
            )
    await emitter.drain()
    assert sink.operations("deny") == ["admin_user.update"]


@pytest.mark.asyncio
async def test_country_manager_cannot_touch_other_country_or_super_admin() -> None:
    async with SessionLocal() as session:
        india_id = await _country_admin_row(session, "in.ops@example.com", "IN")
        root = await create_admin_principal(
            session,
            actor=SUPER,
            email="root@example.com",
            display_name="Root",
            requested_role=Role.SUPER_ADMIN,
        )
        with pytest.raises(Forbidden):
            await update_admin_principal(session, actor=LK_MANAGER, admin_id=india_id, is_active=False)
        with pytest.raises(Forbidden):
            await update_admin_principal(session, actor=LK_MANAGER, admin_id=root.id, is_active=False)


@pytest.mark.asyncio
async def test_country_manager_updates_own_country_without_moving_it() -> None:
    async with SessionLocal() as session:
        admin_id = await _country_admin_row(session, "local@example.com", "LK")
        row = await update_admin_principal(
            session,
            actor=LK_MANAGER,
            admin_id=admin_id,
            country_code="IN",
            capabilities=[ADMIN_USERS_MANAGEMENT],
        )
    assert row.country_code == "LK"
    assert row.capabilities_json == []


@pytest.mark.asyncio
async def test_update_of_unknown_admin_is_not_found() -> None:
    async with SessionLocal() as session:
        with pytest.raises(NotFound):
            await update_admin_principal(session, actor=SUPER, admin_id="missing", is_active=False)
