"""
Scope permission checks for the admin API.

Resolution order for `PermissionResolver.check` (first match wins):

  1. global superadmin            -> allow
  2. place scope: siteadmin of the place's site -> allow
  3. membership at the scope (a place's owner_id counts as an owner
     membership); none -> deny
  4. membership rank >= required rank

Platform-level operations (sites, users) don't go through here; see
directory_api.auth.platform_gate.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from loguru import logger

from directory_api.core.errors import DenyReason, PermissionDenied
from directory_api.core.hierarchy import RoleHierarchy, ScopedRole
from directory_api.core.roles import GlobalRole, PlaceRole, SiteRole
from directory_api.core.scope import PlaceScope, Scope, SiteScope, ensure_scope


class MembershipLookup(Protocol):
    async def find_site_membership(self, site_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Any]: ...

    async def find_place_membership(self, place_id: uuid.UUID, user_id: uuid.UUID) -> Optional[Any]: ...

    async def list_user_place_ids(
        self, user_id: uuid.UUID, site_id: Optional[uuid.UUID] = None
    ) -> Sequence[uuid.UUID]: ...


class PlaceLookup(Protocol):
    async def get_place(self, place_id: uuid.UUID) -> Optional[Any]: ...


@dataclass(frozen=True)
class Actor:
    """The caller as seen by the authorization core."""

    user_id: uuid.UUID
    global_role: GlobalRole

    @classmethod
    def from_user(cls, user: Any) -> "Actor":
        return cls(user_id=user.id, global_role=GlobalRole(user.global_role))

    @property
    def is_superadmin(self) -> bool:
        return self.global_role is GlobalRole.SUPERADMIN


def _required_kind(scope: Scope) -> type:
    return SiteRole if isinstance(scope, SiteScope) else PlaceRole


async def is_site_admin(memberships: MembershipLookup, user_id: uuid.UUID, site_id: uuid.UUID) -> bool:
    membership = await memberships.find_site_membership(site_id, user_id)
    return membership is not None and SiteRole(membership.role) is SiteRole.SITEADMIN


async def resolve_place_role(
    memberships: MembershipLookup,
    hierarchy: RoleHierarchy,
    user_id: uuid.UUID,
    place: Any,
) -> Optional[PlaceRole]:
    """
    Effective place role from the explicit membership row and the place's
    owner_id, whichever ranks higher. None when the user has neither.
    """
    membership = await memberships.find_place_membership(place.id, user_id)
    held = PlaceRole(membership.role) if membership is not None else None

    if place.owner_id is not None and place.owner_id == user_id:
        held = PlaceRole.OWNER if held is None else hierarchy.highest([held, PlaceRole.OWNER])
    return held


class PermissionResolver:
    def __init__(self, hierarchy: RoleHierarchy, memberships: MembershipLookup, places: PlaceLookup):
        self.hierarchy = hierarchy
        self.memberships = memberships
        self.places = places

    async def check(self, actor: Actor, scope: Scope, required_role: ScopedRole) -> bool:
        scope = ensure_scope(scope)
        kind = _required_kind(scope)
        if not isinstance(required_role, kind):
            raise TypeError(f"{scope.kind} scope needs a {kind.__name__}, got {required_role!r}")

        if actor.is_superadmin:
            return True

        held: Optional[ScopedRole]
        if isinstance(scope, PlaceScope):
            place = await self.places.get_place(scope.place_id)
            if place is None:
                logger.debug("check: place {} not found", scope.place_id)
                return False
            if await is_site_admin(self.memberships, actor.user_id, place.site_id):
                return True
            held = await resolve_place_role(self.memberships, self.hierarchy, actor.user_id, place)
        else:
            membership = await self.memberships.find_site_membership(scope.site_id, actor.user_id)
            held = SiteRole(membership.role) if membership is not None else None

        if held is None:
            logger.debug("check: user {} has no membership at {} {}", actor.user_id, scope.kind, scope.id)
            return False

        allowed = self.hierarchy.at_least(held, required_role)
        logger.debug(
            "check: user {} holds {} at {} {}, needs {} -> {}",
            actor.user_id,
            held.value,
            scope.kind,
            scope.id,
            required_role.value,
            allowed,
        )
        return allowed

    async def require(self, actor: Actor, scope: Scope, required_role: ScopedRole) -> None:
        if not await self.check(actor, scope, required_role):
            raise PermissionDenied(
                DenyReason.INSUFFICIENT_AUTHORITY,
                f"User does not have {required_role.value} permission for {scope.kind} {scope.id}",
            )

    async def can_create_event(
        self,
        actor: Actor,
        site_id: uuid.UUID,
        place_id: Optional[uuid.UUID],
    ) -> bool:
        """
        Site admins may create events anywhere in their site, place owners and
        managers only for their own place. Site-wide events (no place) are
        site-admin only.
        """
        if actor.is_superadmin:
            return True
        if await is_site_admin(self.memberships, actor.user_id, site_id):
            return True
        if place_id is None:
            return False

        place = await self.places.get_place(place_id)
        if place is None or place.site_id != site_id:
            return False
        held = await resolve_place_role(self.memberships, self.hierarchy, actor.user_id, place)
        return held is not None and self.hierarchy.at_least(held, PlaceRole.MANAGER)

    async def list_user_places(self, user_id: uuid.UUID, site_id: Optional[uuid.UUID] = None) -> list[uuid.UUID]:
        return list(await self.memberships.list_user_place_ids(user_id, site_id))
