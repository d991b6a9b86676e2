# tests/test_place_memberships_api.py
from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select

from directory_api.core.errors import Conflict
from directory_api.core.roles import GlobalRole, PlaceRole, SiteRole
from directory_api.core.scope import PlaceScope
from directory_api.crud.memberships import MembershipStore
from directory_api.models.place_membership import PlaceMembership

from factories import (
    add_place_membership,
    add_site_membership,
    audit_rows,
    auth_headers,
    create_place,
    create_site,
    create_user,
)

FORBIDDEN = {"code": "rbac_forbidden", "message": "You do not have permission to perform this action."}


async def place_rows(sessionmaker, place_id):
    async with sessionmaker() as session:
        res = await session.execute(select(PlaceMembership).where(PlaceMembership.place_id == place_id))
        return list(res.scalars().all())


@pytest.mark.asyncio
async def test_manager_cannot_assign_owner(client, db, sessionmaker):
    site = await create_site(db)
    p1 = await create_place(db, site.id)
    manager = await create_user(db, "manager@example.com")
    target = await create_user(db, "target@example.com")
    await add_place_membership(db, p1.id, manager.id, PlaceRole.MANAGER)
    await db.commit()

    r = await client.post(
        "/api/v1/place-memberships",
        json={"place_id": str(p1.id), "user_id": str(target.id), "role": "owner"},
        headers=auth_headers(manager),
    )

    assert r.status_code == 403
    # reason is not leaked to the client
    assert r.json()["detail"] == FORBIDDEN
    assert len(await place_rows(sessionmaker, p1.id)) == 1

    rows = await audit_rows(sessionmaker, entity_type="place_membership")
    assert [(e.outcome, e.reason) for e in rows] == [("denied", "cannot-assign-owner")]
    assert rows[0].actor_user_id == manager.id
    assert rows[0].scope_kind == "place" and rows[0].scope_id == p1.id


@pytest.mark.asyncio
async def test_owner_deletes_editor(client, db, sessionmaker):
    site = await create_site(db)
    p1 = await create_place(db, site.id)
    owner = await create_user(db, "owner@example.com")
    editor = await create_user(db, "editor@example.com")
    await add_place_membership(db, p1.id, owner.id, PlaceRole.OWNER)
    row = await add_place_membership(db, p1.id, editor.id, PlaceRole.EDITOR)
    await db.commit()

    r = await client.delete(f"/api/v1/place-memberships/{row.id}", headers=auth_headers(owner))

    assert r.status_code == 204
    remaining = await place_rows(sessionmaker, p1.id)
    assert [m.user_id for m in remaining] == [owner.id]

    rows = await audit_rows(sessionmaker, action="delete")
    assert [(e.outcome, e.entity_id) for e in rows] == [("success", row.id)]


@pytest.mark.asyncio
async def test_stranger_cannot_assign_editor(client, db, sessionmaker):
    site = await create_site(db)
    p2 = await create_place(db, site.id)
    stranger = await create_user(db, "stranger@example.com", global_role=GlobalRole.EDITOR)
    target = await create_user(db, "target@example.com")
    await db.commit()

    r = await client.post(
        "/api/v1/place-memberships",
        json={"place_id": str(p2.id), "user_id": str(target.id), "role": "editor"},
        headers=auth_headers(stranger),
    )

    assert r.status_code == 403
    rows = await audit_rows(sessionmaker)
    assert [(e.outcome, e.reason) for e in rows] == [("denied", "insufficient-authority")]


@pytest.mark.asyncio
async def test_siteadmin_reads_place_without_place_membership(client, db):
    site = await create_site(db)
    p3 = await create_place(db, site.id)
    siteadmin = await create_user(db, "siteadmin@example.com")
    await add_site_membership(db, site.id, siteadmin.id, SiteRole.SITEADMIN)
    await db.commit()

    r = await client.get(f"/api/v1/places/{p3.id}", headers=auth_headers(siteadmin))

    assert r.status_code == 200
    assert r.json()["id"] == str(p3.id)


@pytest.mark.asyncio
async def test_second_create_is_conflict(client, db, sessionmaker):
    site = await create_site(db)
    p4 = await create_place(db, site.id)
    owner = await create_user(db, "owner@example.com")
    user_x = await create_user(db, "x@example.com")
    await add_place_membership(db, p4.id, owner.id, PlaceRole.OWNER)
    await db.commit()

    payload = {"place_id": str(p4.id), "user_id": str(user_x.id), "role": "editor"}
    r1 = await client.post("/api/v1/place-memberships", json=payload, headers=auth_headers(owner))
    r2 = await client.post(
        "/api/v1/place-memberships",
        json={**payload, "role": "manager"},
        headers=auth_headers(owner),
    )

    assert r1.status_code == 201
    assert r1.json()["role"] == "editor"
    assert r2.status_code == 409
    assert r2.json()["detail"]["code"] == "conflict"

    rows = [m for m in await place_rows(sessionmaker, p4.id) if m.user_id == user_x.id]
    assert len(rows) == 1
    assert rows[0].role is PlaceRole.EDITOR


@pytest.mark.asyncio
async def test_conflict_precedes_authorization(client, db):
    site = await create_site(db)
    place = await create_place(db, site.id)
    stranger = await create_user(db, "stranger@example.com")
    user_x = await create_user(db, "x@example.com")
    await add_place_membership(db, place.id, user_x.id, PlaceRole.EDITOR)
    await db.commit()

    r = await client.post(
        "/api/v1/place-memberships",
        json={"place_id": str(place.id), "user_id": str(user_x.id), "role": "editor"},
        headers=auth_headers(stranger),
    )

    assert r.status_code == 409


@pytest.mark.asyncio
async def test_racing_creates_yield_one_row_and_one_conflict(db, sessionmaker):
    """
    Both writers pass the duplicate pre-check before either commits; the
    unique constraint decides.
    """
    site = await create_site(db)
    p4 = await create_place(db, site.id)
    user_x = await create_user(db, "x@example.com")
    await db.commit()
    scope = PlaceScope(p4.id)

    async with sessionmaker() as s1, sessionmaker() as s2:
        first, second = MembershipStore(s1), MembershipStore(s2)
        assert await first.find_membership(scope, user_x.id) is None
        assert await second.find_membership(scope, user_x.id) is None

        created = await first.create_membership(scope, user_x.id, PlaceRole.EDITOR)
        await s1.commit()

        with pytest.raises(Conflict):
            await second.create_membership(scope, user_x.id, PlaceRole.EDITOR)

    rows = await place_rows(sessionmaker, p4.id)
    assert [m.id for m in rows] == [created.id]


@pytest.mark.asyncio
async def test_manager_cannot_delete_owner_but_owner_can(client, db, sessionmaker):
    site = await create_site(db)
    place = await create_place(db, site.id)
    manager = await create_user(db, "manager@example.com")
    owner = await create_user(db, "owner@example.com")
    other_owner = await create_user(db, "owner2@example.com")
    await add_place_membership(db, place.id, manager.id, PlaceRole.MANAGER)
    await add_place_membership(db, place.id, owner.id, PlaceRole.OWNER)
    target = await add_place_membership(db, place.id, other_owner.id, PlaceRole.OWNER)
    await db.commit()

    r = await client.delete(f"/api/v1/place-memberships/{target.id}", headers=auth_headers(manager))
    assert r.status_code == 403

    r = await client.delete(f"/api/v1/place-memberships/{target.id}", headers=auth_headers(owner))
    assert r.status_code == 204

    rows = await audit_rows(sessionmaker, action="delete")
    assert {(e.outcome, e.reason) for e in rows} == {("denied", "cannot-modify-owner"), ("success", None)}


@pytest.mark.asyncio
async def test_manager_cannot_touch_owner_row(client, db):
    site = await create_site(db)
    place = await create_place(db, site.id)
    manager = await create_user(db, "manager@example.com")
    owner = await create_user(db, "owner@example.com")
    await add_place_membership(db, place.id, manager.id, PlaceRole.MANAGER)
    row = await add_place_membership(db, place.id, owner.id, PlaceRole.OWNER)
    await db.commit()

    r = await client.patch(
        f"/api/v1/place-memberships/{row.id}",
        json={"role": "manager"},
        headers=auth_headers(manager),
    )

    assert r.status_code == 403


@pytest.mark.asyncio
async def test_manager_promotes_editor_to_manager(client, db):
    site = await create_site(db)
    place = await create_place(db, site.id)
    manager = await create_user(db, "manager@example.com")
    editor = await create_user(db, "editor@example.com")
    await add_place_membership(db, place.id, manager.id, PlaceRole.MANAGER)
    row = await add_place_membership(db, place.id, editor.id, PlaceRole.EDITOR)
    await db.commit()

    r = await client.patch(
        f"/api/v1/place-memberships/{row.id}",
        json={"role": "manager"},
        headers=auth_headers(manager),
    )

    assert r.status_code == 200
    assert r.json()["role"] == "manager"


@pytest.mark.asyncio
async def test_place_owner_id_grants_owner_authority(client, db):
    site = await create_site(db)
    owner = await create_user(db, "owner@example.com")
    place = await create_place(db, site.id, owner_id=owner.id)
    target = await create_user(db, "target@example.com")
    await db.commit()

    r = await client.post(
        "/api/v1/place-memberships",
        json={"place_id": str(place.id), "user_id": str(target.id), "role": "owner"},
        headers=auth_headers(owner),
    )

    assert r.status_code == 201


@pytest.mark.asyncio
async def test_not_found_cases(client, db):
    site = await create_site(db)
    place = await create_place(db, site.id)
    su = await create_user(db, "su@example.com", global_role=GlobalRole.SUPERADMIN)
    await db.commit()

    r = await client.post(
        "/api/v1/place-memberships",
        json={"place_id": str(uuid.uuid4()), "user_id": str(su.id), "role": "editor"},
        headers=auth_headers(su),
    )
    assert r.status_code == 404

    r = await client.post(
        "/api/v1/place-memberships",
        json={"place_id": str(place.id), "user_id": str(uuid.uuid4()), "role": "editor"},
        headers=auth_headers(su),
    )
    assert r.status_code == 404

    r = await client.delete(f"/api/v1/place-memberships/{uuid.uuid4()}", headers=auth_headers(su))
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_invalid_role_value_is_rejected(client, db):
    site = await create_site(db)
    place = await create_place(db, site.id)
    su = await create_user(db, "su@example.com", global_role=GlobalRole.SUPERADMIN)
    await db.commit()

    r = await client.post(
        "/api/v1/place-memberships",
        json={"place_id": str(place.id), "user_id": str(su.id), "role": "siteadmin"},
        headers=auth_headers(su),
    )

    assert r.status_code == 422


@pytest.mark.asyncio
async def test_listing_and_my_places(client, db):
    site = await create_site(db)
    other_site = await create_site(db)
    p1 = await create_place(db, site.id)
    p2 = await create_place(db, other_site.id)
    manager = await create_user(db, "manager@example.com")
    editor = await create_user(db, "editor@example.com")
    await add_place_membership(db, p1.id, manager.id, PlaceRole.MANAGER)
    await add_place_membership(db, p1.id, editor.id, PlaceRole.EDITOR)
    await add_place_membership(db, p2.id, manager.id, PlaceRole.EDITOR)
    await db.commit()

    r = await client.get("/api/v1/place-memberships", params={"place_id": str(p1.id)}, headers=auth_headers(manager))
    assert r.status_code == 200
    assert {m["user_id"] for m in r.json()} == {str(manager.id), str(editor.id)}

    r = await client.get("/api/v1/place-memberships", params={"place_id": str(p1.id)}, headers=auth_headers(editor))
    assert r.status_code == 403

    r = await client.get("/api/v1/place-memberships", headers=auth_headers(manager))
    assert r.status_code == 403

    r = await client.get("/api/v1/place-memberships/my-places", headers=auth_headers(manager))
    assert set(r.json()["place_ids"]) == {str(p1.id), str(p2.id)}

    r = await client.get(
        "/api/v1/place-memberships/my-places",
        params={"site_id": str(site.id)},
        headers=auth_headers(manager),
    )
    assert r.json()["place_ids"] == [str(p1.id)]


@pytest.mark.asyncio
async def test_requires_token(client):
    r = await client.get("/api/v1/place-memberships/my-places")
    assert r.status_code in (401, 403)

    r = await client.get("/api/v1/place-memberships/my-places", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401
