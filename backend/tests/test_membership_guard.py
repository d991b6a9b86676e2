# tests/test_membership_guard.py
from __future__ import annotations

import itertools
import uuid

import pytest

from directory_api.auth.membership_guard import (
    PLACE_ASSIGN_MATRIX,
    PLACE_MODIFY_MATRIX,
    SITE_ASSIGN_MATRIX,
    SITE_MODIFY_MATRIX,
    MembershipGuard,
    PlaceBand,
    SiteBand,
    decide,
)
from directory_api.auth.permissions import Actor
from directory_api.core.errors import DenyReason, NotFound, PermissionDenied
from directory_api.core.hierarchy import build_role_hierarchy
from directory_api.core.roles import GlobalRole, PlaceRole, SiteRole
from directory_api.core.scope import PlaceScope, SiteScope

from fakes import FakeMemberships, FakePlace, FakePlaces

INSUFFICIENT = DenyReason.INSUFFICIENT_AUTHORITY
ASSIGN_OWNER = DenyReason.CANNOT_ASSIGN_OWNER
MODIFY_OWNER = DenyReason.CANNOT_MODIFY_OWNER


# ---------------------------------------------------------
# Decision tables
# ---------------------------------------------------------
def test_matrices_are_complete():
    for matrix in (PLACE_ASSIGN_MATRIX, PLACE_MODIFY_MATRIX):
        assert set(matrix) == set(itertools.product(PlaceBand, PlaceRole))
    for matrix in (SITE_ASSIGN_MATRIX, SITE_MODIFY_MATRIX):
        assert set(matrix) == set(itertools.product(SiteBand, SiteRole))


@pytest.mark.parametrize("band", [PlaceBand.BYPASS, PlaceBand.OWNER])
@pytest.mark.parametrize("target", list(PlaceRole))
@pytest.mark.parametrize("current", [None, *PlaceRole])
def test_bypass_and_owner_may_assign_anything(band, target, current):
    assert decide(band, target, current) is None


@pytest.mark.parametrize("band", [PlaceBand.EDITOR, PlaceBand.NONE])
@pytest.mark.parametrize("target", list(PlaceRole))
def test_editor_and_none_always_insufficient(band, target):
    assert decide(band, target, None) is INSUFFICIENT
    assert decide(band, None, target, deleting=True) is INSUFFICIENT


def test_manager_cannot_assign_owner():
    assert decide(PlaceBand.MANAGER, PlaceRole.OWNER, None) is ASSIGN_OWNER
    assert decide(PlaceBand.MANAGER, PlaceRole.OWNER, PlaceRole.EDITOR) is ASSIGN_OWNER


def test_manager_cannot_touch_owner_row_even_unchanged():
    assert decide(PlaceBand.MANAGER, PlaceRole.MANAGER, PlaceRole.OWNER) is MODIFY_OWNER
    assert decide(PlaceBand.MANAGER, PlaceRole.EDITOR, PlaceRole.OWNER) is MODIFY_OWNER
    # target is checked before current
    assert decide(PlaceBand.MANAGER, PlaceRole.OWNER, PlaceRole.OWNER) is ASSIGN_OWNER


def test_manager_manages_managers_and_editors():
    for target, current in itertools.product([PlaceRole.MANAGER, PlaceRole.EDITOR], [None, PlaceRole.MANAGER, PlaceRole.EDITOR]):
        assert decide(PlaceBand.MANAGER, target, current) is None


def test_delete_uses_current_role():
    assert decide(PlaceBand.MANAGER, None, PlaceRole.OWNER, deleting=True) is MODIFY_OWNER
    assert decide(PlaceBand.MANAGER, None, PlaceRole.EDITOR, deleting=True) is None
    assert decide(PlaceBand.OWNER, None, PlaceRole.OWNER, deleting=True) is None


def test_site_matrix():
    assert decide(SiteBand.BYPASS, SiteRole.SITEADMIN) is None
    assert decide(SiteBand.SITEADMIN, SiteRole.SITEADMIN) is ASSIGN_OWNER
    assert decide(SiteBand.SITEADMIN, SiteRole.EDITOR) is None
    assert decide(SiteBand.SITEADMIN, SiteRole.EDITOR, SiteRole.SITEADMIN) is MODIFY_OWNER
    assert decide(SiteBand.SITEADMIN, None, SiteRole.EDITOR, deleting=True) is None
    assert decide(SiteBand.SITEADMIN, None, SiteRole.SITEADMIN, deleting=True) is MODIFY_OWNER
    assert decide(SiteBand.EDITOR, SiteRole.EDITOR) is INSUFFICIENT
    assert decide(SiteBand.NONE, SiteRole.EDITOR) is INSUFFICIENT


def test_decide_rejects_mismatched_roles():
    with pytest.raises(TypeError):
        decide(PlaceBand.OWNER, SiteRole.EDITOR)
    with pytest.raises(TypeError):
        decide(SiteBand.BYPASS, PlaceRole.EDITOR)
    with pytest.raises(ValueError):
        decide(PlaceBand.OWNER, None, None, deleting=True)


# ---------------------------------------------------------
# Guard with in-memory collaborators
# ---------------------------------------------------------
@pytest.fixture()
def site_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def memberships() -> FakeMemberships:
    return FakeMemberships()


@pytest.fixture()
def place(site_id) -> FakePlace:
    return FakePlace(site_id=site_id)


@pytest.fixture()
def guard(memberships, place) -> MembershipGuard:
    return MembershipGuard(build_role_hierarchy(), memberships, FakePlaces(place))


def actor(global_role: GlobalRole = GlobalRole.VIEWER) -> Actor:
    return Actor(user_id=uuid.uuid4(), global_role=global_role)


@pytest.mark.asyncio
async def test_manager_assigning_owner_is_denied(guard, memberships, place):
    manager = actor()
    memberships.grant_place(place.id, manager.user_id, PlaceRole.MANAGER)

    with pytest.raises(PermissionDenied) as exc:
        await guard.assign_role(manager, PlaceScope(place.id), PlaceRole.OWNER, None)
    assert exc.value.reason is ASSIGN_OWNER


@pytest.mark.asyncio
async def test_owner_deletes_editor(guard, memberships, place):
    owner = actor()
    memberships.grant_place(place.id, owner.user_id, PlaceRole.OWNER)

    await guard.delete_role(owner, PlaceScope(place.id), PlaceRole.EDITOR)


@pytest.mark.asyncio
async def test_manager_deleting_owner_denied_but_owner_may(guard, memberships, place):
    manager, owner = actor(), actor()
    memberships.grant_place(place.id, manager.user_id, PlaceRole.MANAGER)
    memberships.grant_place(place.id, owner.user_id, PlaceRole.OWNER)

    with pytest.raises(PermissionDenied) as exc:
        await guard.delete_place_role(manager, place.id, PlaceRole.OWNER)
    assert exc.value.reason is MODIFY_OWNER

    await guard.delete_place_role(owner, place.id, PlaceRole.OWNER)


@pytest.mark.asyncio
async def test_stranger_is_insufficient(guard, place):
    with pytest.raises(PermissionDenied) as exc:
        await guard.assign_place_role(actor(GlobalRole.EDITOR), place.id, PlaceRole.EDITOR, None)
    assert exc.value.reason is INSUFFICIENT


@pytest.mark.asyncio
async def test_siteadmin_and_superadmin_are_bypass(guard, memberships, place, site_id):
    admin = actor()
    memberships.grant_site(site_id, admin.user_id, SiteRole.SITEADMIN)

    assert await guard.resolve_place_band(admin, place.id) is PlaceBand.BYPASS
    assert await guard.resolve_place_band(actor(GlobalRole.SUPERADMIN), place.id) is PlaceBand.BYPASS
    await guard.assign_place_role(admin, place.id, PlaceRole.OWNER, PlaceRole.OWNER)


@pytest.mark.asyncio
async def test_owner_id_resolves_to_owner_band(memberships, site_id):
    u = actor()
    place = FakePlace(site_id=site_id, owner_id=u.user_id)
    guard = MembershipGuard(build_role_hierarchy(), memberships, FakePlaces(place))

    assert await guard.resolve_place_band(u, place.id) is PlaceBand.OWNER


@pytest.mark.asyncio
async def test_unknown_place_is_not_found(guard):
    with pytest.raises(NotFound):
        await guard.assign_place_role(actor(), uuid.uuid4(), PlaceRole.EDITOR, None)


@pytest.mark.asyncio
async def test_site_scope(guard, memberships, site_id):
    siteadmin = actor()
    memberships.grant_site(site_id, siteadmin.user_id, SiteRole.SITEADMIN)

    await guard.assign_role(siteadmin, SiteScope(site_id), SiteRole.EDITOR, None)
    await guard.delete_role(siteadmin, SiteScope(site_id), SiteRole.EDITOR)

    with pytest.raises(PermissionDenied) as exc:
        await guard.assign_role(siteadmin, SiteScope(site_id), SiteRole.SITEADMIN, None)
    assert exc.value.reason is ASSIGN_OWNER

    await guard.assign_role(actor(GlobalRole.SUPERADMIN), SiteScope(site_id), SiteRole.SITEADMIN, None)
