"""
Escalation rules for changing who holds a membership.

Being able to act on a place (PermissionResolver.check) is not enough to
manage its memberships. The rules are kept as decision tables: one cell per
(authority band, role) holding None (allow) or the DenyReason.

  assign: the target role is checked first, then the row's current role.
  delete: only the current role is checked.
"""
from __future__ import annotations

import enum
import uuid
from types import MappingProxyType
from typing import Mapping, Optional, Union

from loguru import logger

from directory_api.auth.permissions import (
    Actor,
    MembershipLookup,
    PlaceLookup,
    is_site_admin,
    resolve_place_role,
)
from directory_api.core.errors import DenyReason, NotFound, PermissionDenied
from directory_api.core.hierarchy import RoleHierarchy, ScopedRole
from directory_api.core.roles import PlaceRole, SiteRole
from directory_api.core.scope import PlaceScope, Scope, SiteScope, ensure_scope


class PlaceBand(str, enum.Enum):
    BYPASS = "bypass"  # global superadmin or siteadmin of the owning site
    OWNER = "owner"
    MANAGER = "manager"
    EDITOR = "editor"
    NONE = "none"


class SiteBand(str, enum.Enum):
    BYPASS = "bypass"  # global superadmin
    SITEADMIN = "siteadmin"
    EDITOR = "editor"
    NONE = "none"


Band = Union[PlaceBand, SiteBand]
Cell = Optional[DenyReason]

PLACE_ASSIGN_MATRIX: Mapping[tuple[PlaceBand, PlaceRole], Cell] = MappingProxyType({
    (PlaceBand.BYPASS, PlaceRole.OWNER): None,
    (PlaceBand.BYPASS, PlaceRole.MANAGER): None,
    (PlaceBand.BYPASS, PlaceRole.EDITOR): None,
    (PlaceBand.OWNER, PlaceRole.OWNER): None,
    (PlaceBand.OWNER, PlaceRole.MANAGER): None,
    (PlaceBand.OWNER, PlaceRole.EDITOR): None,
    (PlaceBand.MANAGER, PlaceRole.OWNER): DenyReason.CANNOT_ASSIGN_OWNER,
    (PlaceBand.MANAGER, PlaceRole.MANAGER): None,
    (PlaceBand.MANAGER, PlaceRole.EDITOR): None,
    (PlaceBand.EDITOR, PlaceRole.OWNER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.EDITOR, PlaceRole.MANAGER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.EDITOR, PlaceRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.NONE, PlaceRole.OWNER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.NONE, PlaceRole.MANAGER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.NONE, PlaceRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
})

PLACE_MODIFY_MATRIX: Mapping[tuple[PlaceBand, PlaceRole], Cell] = MappingProxyType({
    (PlaceBand.BYPASS, PlaceRole.OWNER): None,
    (PlaceBand.BYPASS, PlaceRole.MANAGER): None,
    (PlaceBand.BYPASS, PlaceRole.EDITOR): None,
    (PlaceBand.OWNER, PlaceRole.OWNER): None,
    (PlaceBand.OWNER, PlaceRole.MANAGER): None,
    (PlaceBand.OWNER, PlaceRole.EDITOR): None,
    (PlaceBand.MANAGER, PlaceRole.OWNER): DenyReason.CANNOT_MODIFY_OWNER,
    (PlaceBand.MANAGER, PlaceRole.MANAGER): None,
    (PlaceBand.MANAGER, PlaceRole.EDITOR): None,
    (PlaceBand.EDITOR, PlaceRole.OWNER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.EDITOR, PlaceRole.MANAGER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.EDITOR, PlaceRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.NONE, PlaceRole.OWNER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.NONE, PlaceRole.MANAGER): DenyReason.INSUFFICIENT_AUTHORITY,
    (PlaceBand.NONE, PlaceRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
})

# No manager tier at site scope: siteadmin rows belong to superadmins only.
SITE_ASSIGN_MATRIX: Mapping[tuple[SiteBand, SiteRole], Cell] = MappingProxyType({
    (SiteBand.BYPASS, SiteRole.SITEADMIN): None,
    (SiteBand.BYPASS, SiteRole.EDITOR): None,
    (SiteBand.SITEADMIN, SiteRole.SITEADMIN): DenyReason.CANNOT_ASSIGN_OWNER,
    (SiteBand.SITEADMIN, SiteRole.EDITOR): None,
    (SiteBand.EDITOR, SiteRole.SITEADMIN): DenyReason.INSUFFICIENT_AUTHORITY,
    (SiteBand.EDITOR, SiteRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
    (SiteBand.NONE, SiteRole.SITEADMIN): DenyReason.INSUFFICIENT_AUTHORITY,
    (SiteBand.NONE, SiteRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
})

SITE_MODIFY_MATRIX: Mapping[tuple[SiteBand, SiteRole], Cell] = MappingProxyType({
    (SiteBand.BYPASS, SiteRole.SITEADMIN): None,
    (SiteBand.BYPASS, SiteRole.EDITOR): None,
    (SiteBand.SITEADMIN, SiteRole.SITEADMIN): DenyReason.CANNOT_MODIFY_OWNER,
    (SiteBand.SITEADMIN, SiteRole.EDITOR): None,
    (SiteBand.EDITOR, SiteRole.SITEADMIN): DenyReason.INSUFFICIENT_AUTHORITY,
    (SiteBand.EDITOR, SiteRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
    (SiteBand.NONE, SiteRole.SITEADMIN): DenyReason.INSUFFICIENT_AUTHORITY,
    (SiteBand.NONE, SiteRole.EDITOR): DenyReason.INSUFFICIENT_AUTHORITY,
})

_PLACE_BAND_BY_ROLE = {
    PlaceRole.OWNER: PlaceBand.OWNER,
    PlaceRole.MANAGER: PlaceBand.MANAGER,
    PlaceRole.EDITOR: PlaceBand.EDITOR,
}


def decide(
    band: Band,
    target_role: Optional[ScopedRole],
    current_role: Optional[ScopedRole] = None,
    *,
    deleting: bool = False,
) -> Cell:
    """
    Pure table lookup. Returns None when allowed, else the DenyReason.

    For deletes pass the row's role as current_role (target_role is ignored).
    """
    if isinstance(band, PlaceBand):
        assign, modify, kind = PLACE_ASSIGN_MATRIX, PLACE_MODIFY_MATRIX, PlaceRole
    elif isinstance(band, SiteBand):
        assign, modify, kind = SITE_ASSIGN_MATRIX, SITE_MODIFY_MATRIX, SiteRole
    else:
        raise TypeError(f"Unknown authority band: {band!r}")

    for role in (target_role, current_role):
        if role is not None and not isinstance(role, kind):
            raise TypeError(f"{type(band).__name__} decisions need a {kind.__name__}, got {role!r}")

    if deleting:
        if current_role is None:
            raise ValueError("Deleting requires the membership's current role")
        return modify[(band, current_role)]

    if target_role is None:
        raise ValueError("Assigning requires a target role")
    reason = assign[(band, target_role)]
    if reason is not None:
        return reason
    if current_role is not None:
        return modify[(band, current_role)]
    return None


class MembershipGuard:
    def __init__(self, hierarchy: RoleHierarchy, memberships: MembershipLookup, places: PlaceLookup):
        self.hierarchy = hierarchy
        self.memberships = memberships
        self.places = places

    # ---------------------------------------------------------
    # Authority bands
    # ---------------------------------------------------------
    async def resolve_place_band(self, actor: Actor, place_id: uuid.UUID) -> PlaceBand:
        if actor.is_superadmin:
            return PlaceBand.BYPASS

        place = await self.places.get_place(place_id)
        if place is None:
            raise NotFound(f"Place {place_id} not found")

        if await is_site_admin(self.memberships, actor.user_id, place.site_id):
            return PlaceBand.BYPASS

        held = await resolve_place_role(self.memberships, self.hierarchy, actor.user_id, place)
        return PlaceBand.NONE if held is None else _PLACE_BAND_BY_ROLE[held]

    async def resolve_site_band(self, actor: Actor, site_id: uuid.UUID) -> SiteBand:
        if actor.is_superadmin:
            return SiteBand.BYPASS

        membership = await self.memberships.find_site_membership(site_id, actor.user_id)
        if membership is None:
            return SiteBand.NONE
        return SiteBand.SITEADMIN if SiteRole(membership.role) is SiteRole.SITEADMIN else SiteBand.EDITOR

    # ---------------------------------------------------------
    # Place memberships
    # ---------------------------------------------------------
    async def assign_place_role(
        self,
        actor: Actor,
        place_id: uuid.UUID,
        target_role: PlaceRole,
        current_role: Optional[PlaceRole] = None,
    ) -> None:
        band = await self.resolve_place_band(actor, place_id)
        self._enforce(actor, PlaceScope(place_id), band, decide(band, target_role, current_role))

    async def delete_place_role(self, actor: Actor, place_id: uuid.UUID, current_role: PlaceRole) -> None:
        band = await self.resolve_place_band(actor, place_id)
        self._enforce(actor, PlaceScope(place_id), band, decide(band, None, current_role, deleting=True))

    # ---------------------------------------------------------
    # Site memberships
    # ---------------------------------------------------------
    async def assign_site_role(
        self,
        actor: Actor,
        site_id: uuid.UUID,
        target_role: SiteRole,
        current_role: Optional[SiteRole] = None,
    ) -> None:
        band = await self.resolve_site_band(actor, site_id)
        self._enforce(actor, SiteScope(site_id), band, decide(band, target_role, current_role))

    async def delete_site_role(self, actor: Actor, site_id: uuid.UUID, current_role: SiteRole) -> None:
        band = await self.resolve_site_band(actor, site_id)
        self._enforce(actor, SiteScope(site_id), band, decide(band, None, current_role, deleting=True))

    # ---------------------------------------------------------
    # Scope dispatch
    # ---------------------------------------------------------
    async def assign_role(
        self,
        actor: Actor,
        scope: Scope,
        target_role: ScopedRole,
        current_role: Optional[ScopedRole] = None,
    ) -> None:
        scope = ensure_scope(scope)
        if isinstance(scope, PlaceScope):
            await self.assign_place_role(actor, scope.place_id, target_role, current_role)
        else:
            await self.assign_site_role(actor, scope.site_id, target_role, current_role)

    async def delete_role(self, actor: Actor, scope: Scope, current_role: ScopedRole) -> None:
        scope = ensure_scope(scope)
        if isinstance(scope, PlaceScope):
            await self.delete_place_role(actor, scope.place_id, current_role)
        else:
            await self.delete_site_role(actor, scope.site_id, current_role)

    @staticmethod
    def _enforce(actor: Actor, scope: Scope, band: Band, reason: Cell) -> None:
        if reason is None:
            logger.debug("membership change allowed: user {} ({}) at {} {}", actor.user_id, band.value, scope.kind, scope.id)
            return
        logger.info(
            "membership change denied: user {} ({}) at {} {}: {}",
            actor.user_id,
            band.value,
            scope.kind,
            scope.id,
            reason.value,
        )
        raise PermissionDenied(reason)
