# directory_api/services/memberships.py
"""
Admin operations on site/place memberships.

Order for every mutation:
  1. referenced rows must exist            -> NotFound
  2. (create only) no existing membership  -> Conflict
  3. MembershipGuard                       -> PermissionDenied
  4. single write through MembershipStore

Each attempt that gets past step 1 leaves an AdminEventLog row, successful or
not. Nothing is committed here; see db.session.commit_keeping_audit.
"""
from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.auth.membership_guard import MembershipGuard
from directory_api.auth.permissions import Actor
from directory_api.core.errors import AuthzError, Conflict, NotFound, PermissionDenied
from directory_api.core.roles import PlaceRole, SiteRole
from directory_api.core.scope import PlaceScope, Scope, SiteScope
from directory_api.crud.event_log import EventLogStore
from directory_api.crud.memberships import MembershipStore
from directory_api.crud.places import PlaceStore
from directory_api.crud.users import UserStore
from directory_api.models.place_membership import PlaceMembership
from directory_api.models.site_membership import SiteMembership


@dataclass
class _AuditTarget:
    entity_id: Optional[uuid.UUID] = None


class MembershipService:
    def __init__(self, db: AsyncSession, guard: MembershipGuard):
        self.db = db
        self.guard = guard
        self.memberships = MembershipStore(db)
        self.places = PlaceStore(db)
        self.users = UserStore(db)
        self.events = EventLogStore(db)

    @asynccontextmanager
    async def _audited(
        self,
        actor: Actor,
        action: str,
        entity_type: str,
        scope: Scope,
        site_id: uuid.UUID,
        entity_id: Optional[uuid.UUID] = None,
    ) -> AsyncIterator[_AuditTarget]:
        target = _AuditTarget(entity_id=entity_id)
        try:
            yield target
        except AuthzError as exc:
            await self.events.record(
                actor_user_id=actor.user_id,
                action=action,
                entity_type=entity_type,
                entity_id=target.entity_id,
                site_id=site_id,
                scope_kind=scope.kind,
                scope_id=scope.id,
                outcome="denied" if isinstance(exc, PermissionDenied) else "failed",
                reason=exc.reason.value if isinstance(exc, PermissionDenied) else exc.code,
            )
            raise
        await self.events.record(
            actor_user_id=actor.user_id,
            action=action,
            entity_type=entity_type,
            entity_id=target.entity_id,
            site_id=site_id,
            scope_kind=scope.kind,
            scope_id=scope.id,
            outcome="success",
        )

    async def _require_user(self, user_id: uuid.UUID) -> None:
        if await self.users.get(user_id) is None:
            raise NotFound(f"User {user_id} not found")

    # =========================================================
    # PLACE MEMBERSHIPS
    # =========================================================
    async def list_place_memberships(
        self,
        place_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Sequence[PlaceMembership]:
        return await self.memberships.list_place_memberships(place_id=place_id, user_id=user_id)

    async def create_place_membership(
        self,
        actor: Actor,
        place_id: uuid.UUID,
        user_id: uuid.UUID,
        role: PlaceRole,
    ) -> PlaceMembership:
        place = await self.places.get_place(place_id)
        if place is None:
            raise NotFound(f"Place {place_id} not found")
        site_id = place.site_id
        scope = PlaceScope(place_id)

        async with self._audited(actor, "create", "place_membership", scope, site_id) as target:
            await self._require_user(user_id)
            # Duplicates are reported before the guard runs.
            if await self.memberships.find_place_membership(place_id, user_id) is not None:
                raise Conflict(f"Place membership already exists for place {place_id} and user {user_id}")

            await self.guard.assign_place_role(actor, place_id, role, None)
            membership = await self.memberships.create_membership(scope, user_id, role)
            target.entity_id = membership.id
        return membership

    async def update_place_membership(
        self,
        actor: Actor,
        membership_id: uuid.UUID,
        role: PlaceRole,
    ) -> PlaceMembership:
        membership = await self.memberships.get_place_membership(membership_id)
        place = await self.places.get_place(membership.place_id)
        if place is None:
            raise NotFound(f"Place {membership.place_id} not found")
        scope = PlaceScope(place.id)

        async with self._audited(actor, "update", "place_membership", scope, place.site_id, membership.id):
            await self.guard.assign_place_role(actor, place.id, role, PlaceRole(membership.role))
            await self.memberships.update_membership_role(membership, role)
        return membership

    async def delete_place_membership(self, actor: Actor, membership_id: uuid.UUID) -> None:
        membership = await self.memberships.get_place_membership(membership_id)
        place = await self.places.get_place(membership.place_id)
        if place is None:
            raise NotFound(f"Place {membership.place_id} not found")
        scope = PlaceScope(place.id)

        async with self._audited(actor, "delete", "place_membership", scope, place.site_id, membership.id):
            await self.guard.delete_place_role(actor, place.id, PlaceRole(membership.role))
            await self.memberships.delete_membership(membership)

    # =========================================================
    # SITE MEMBERSHIPS
    # =========================================================
    async def list_site_memberships(
        self,
        site_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Sequence[SiteMembership]:
        return await self.memberships.list_site_memberships(site_id=site_id, user_id=user_id)

    async def create_site_membership(
        self,
        actor: Actor,
        site_id: uuid.UUID,
        user_id: uuid.UUID,
        role: SiteRole,
    ) -> SiteMembership:
        if await self.places.get_site(site_id) is None:
            raise NotFound(f"Site {site_id} not found")
        scope = SiteScope(site_id)

        async with self._audited(actor, "create", "site_membership", scope, site_id) as target:
            await self._require_user(user_id)
            if await self.memberships.find_site_membership(site_id, user_id) is not None:
                raise Conflict(f"Site membership already exists for site {site_id} and user {user_id}")

            await self.guard.assign_site_role(actor, site_id, role, None)
            membership = await self.memberships.create_membership(scope, user_id, role)
            target.entity_id = membership.id
        return membership

    async def update_site_membership(
        self,
        actor: Actor,
        membership_id: uuid.UUID,
        role: SiteRole,
    ) -> SiteMembership:
        membership = await self.memberships.get_site_membership(membership_id)
        site_id = membership.site_id

        async with self._audited(actor, "update", "site_membership", SiteScope(site_id), site_id, membership.id):
            await self.guard.assign_site_role(actor, site_id, role, SiteRole(membership.role))
            await self.memberships.update_membership_role(membership, role)
        return membership

    async def delete_site_membership(self, actor: Actor, membership_id: uuid.UUID) -> None:
        membership = await self.memberships.get_site_membership(membership_id)
        site_id = membership.site_id

        async with self._audited(actor, "delete", "site_membership", SiteScope(site_id), site_id, membership.id):
            await self.guard.delete_site_role(actor, site_id, SiteRole(membership.role))
            await self.memberships.delete_membership(membership)
