from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.api.deps.auth import get_current_user
from directory_api.auth.membership_guard import MembershipGuard
from directory_api.auth.permissions import Actor, PermissionResolver
from directory_api.auth.platform_gate import PLATFORM_OPERATIONS, is_platform_allowed
from directory_api.core.errors import DenyReason, PermissionDenied
from directory_api.core.hierarchy import RoleHierarchy
from directory_api.core.roles import PlaceRole, SiteRole
from directory_api.core.scope import PlaceScope, SiteScope
from directory_api.crud.memberships import MembershipStore
from directory_api.crud.places import PlaceStore
from directory_api.db.session import get_db
from directory_api.models.user import User


def get_role_hierarchy(request: Request) -> RoleHierarchy:
    return request.app.state.role_hierarchy


def get_resolver(
    db: AsyncSession = Depends(get_db),
    hierarchy: RoleHierarchy = Depends(get_role_hierarchy),
) -> PermissionResolver:
    return PermissionResolver(hierarchy, MembershipStore(db), PlaceStore(db))


def get_guard(
    db: AsyncSession = Depends(get_db),
    hierarchy: RoleHierarchy = Depends(get_role_hierarchy),
) -> MembershipGuard:
    return MembershipGuard(hierarchy, MembershipStore(db), PlaceStore(db))


async def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor.from_user(user)


def require_platform_operation(operation: str) -> Callable:
    """
    Enforce a platform-level operation (sites.*, users.*) against the caller's
    global role. Unknown operation names fail at import time.
    """
    if operation not in PLATFORM_OPERATIONS:
        raise ValueError(f"Unknown platform operation: {operation!r}. Known: {sorted(PLATFORM_OPERATIONS)}")

    async def _checker(actor: Actor = Depends(get_actor)) -> Actor:
        if not is_platform_allowed(actor.global_role, operation):
            raise PermissionDenied(DenyReason.INSUFFICIENT_AUTHORITY, f"{operation} not allowed for {actor.global_role.value}")
        return actor

    return _checker


def require_site_role(required: SiteRole) -> Callable:
    """
    Enforce at least `required` on the site named by the `site_id` path param.
    """
    required = SiteRole(required)

    async def _checker(
        site_id: uuid.UUID,
        actor: Actor = Depends(get_actor),
        resolver: PermissionResolver = Depends(get_resolver),
    ) -> Actor:
        await resolver.require(actor, SiteScope(site_id), required)
        return actor

    return _checker


def require_place_role(required: PlaceRole) -> Callable:
    """
    Enforce at least `required` on the place named by the `place_id` path param.
    Siteadmins of the place's site always pass.
    """
    required = PlaceRole(required)

    async def _checker(
        place_id: uuid.UUID,
        actor: Actor = Depends(get_actor),
        resolver: PermissionResolver = Depends(get_resolver),
    ) -> Actor:
        await resolver.require(actor, PlaceScope(place_id), required)
        return actor

    return _checker
