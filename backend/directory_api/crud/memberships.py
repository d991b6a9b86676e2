# directory_api/crud/memberships.py
from __future__ import annotations

import uuid
from typing import Optional, Sequence, Union

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.core.errors import Conflict, NotFound
from directory_api.core.roles import PlaceRole, SiteRole
from directory_api.core.scope import Scope, SiteScope, ensure_scope
from directory_api.models.place import Place
from directory_api.models.place_membership import PlaceMembership
from directory_api.models.site_membership import SiteMembership

Membership = Union[SiteMembership, PlaceMembership]


class MembershipStore:
    """
    Site and place membership rows.

    Flushes, never commits: the request handler owns the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ---------------------------------------------------------
    # Lookups
    # ---------------------------------------------------------
    async def find_site_membership(self, site_id: uuid.UUID, user_id: uuid.UUID) -> Optional[SiteMembership]:
        stmt = select(SiteMembership).where(
            SiteMembership.site_id == site_id,
            SiteMembership.user_id == user_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def find_place_membership(self, place_id: uuid.UUID, user_id: uuid.UUID) -> Optional[PlaceMembership]:
        stmt = select(PlaceMembership).where(
            PlaceMembership.place_id == place_id,
            PlaceMembership.user_id == user_id,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def find_membership(self, scope: Scope, user_id: uuid.UUID) -> Optional[Membership]:
        scope = ensure_scope(scope)
        if isinstance(scope, SiteScope):
            return await self.find_site_membership(scope.site_id, user_id)
        return await self.find_place_membership(scope.place_id, user_id)

    async def get_site_membership(self, membership_id: uuid.UUID) -> SiteMembership:
        membership = await self.db.get(SiteMembership, membership_id)
        if membership is None:
            raise NotFound(f"Site membership {membership_id} not found")
        return membership

    async def get_place_membership(self, membership_id: uuid.UUID) -> PlaceMembership:
        membership = await self.db.get(PlaceMembership, membership_id)
        if membership is None:
            raise NotFound(f"Place membership {membership_id} not found")
        return membership

    async def list_site_memberships(
        self,
        site_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Sequence[SiteMembership]:
        stmt = select(SiteMembership).order_by(SiteMembership.created_at.desc())
        if site_id is not None:
            stmt = stmt.where(SiteMembership.site_id == site_id)
        if user_id is not None:
            stmt = stmt.where(SiteMembership.user_id == user_id)
        return (await self.db.execute(stmt)).scalars().all()

    async def list_place_memberships(
        self,
        place_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
    ) -> Sequence[PlaceMembership]:
        stmt = select(PlaceMembership).order_by(PlaceMembership.created_at.desc())
        if place_id is not None:
            stmt = stmt.where(PlaceMembership.place_id == place_id)
        if user_id is not None:
            stmt = stmt.where(PlaceMembership.user_id == user_id)
        return (await self.db.execute(stmt)).scalars().all()

    async def list_user_place_ids(
        self,
        user_id: uuid.UUID,
        site_id: Optional[uuid.UUID] = None,
    ) -> list[uuid.UUID]:
        stmt = (
            select(PlaceMembership.place_id)
            .where(PlaceMembership.user_id == user_id)
            .order_by(PlaceMembership.created_at.desc())
        )
        if site_id is not None:
            stmt = stmt.join(Place, Place.id == PlaceMembership.place_id).where(Place.site_id == site_id)
        return list((await self.db.execute(stmt)).scalars().all())

    # ---------------------------------------------------------
    # Mutations
    # ---------------------------------------------------------
    async def create_membership(
        self,
        scope: Scope,
        user_id: uuid.UUID,
        role: SiteRole | PlaceRole,
    ) -> Membership:
        """
        Insert a membership row. Uniqueness of (scope, user) is the database's
        job; a losing concurrent insert surfaces as Conflict. The insert runs in
        a savepoint so a failure leaves the caller's earlier writes in place.
        """
        scope = ensure_scope(scope)
        membership: Membership
        if isinstance(scope, SiteScope):
            if not isinstance(role, SiteRole):
                raise TypeError(f"Site membership needs a SiteRole, got {role!r}")
            membership = SiteMembership(site_id=scope.site_id, user_id=user_id, role=role)
        else:
            if not isinstance(role, PlaceRole):
                raise TypeError(f"Place membership needs a PlaceRole, got {role!r}")
            membership = PlaceMembership(place_id=scope.place_id, user_id=user_id, role=role)

        try:
            async with self.db.begin_nested():
                self.db.add(membership)
                await self.db.flush()
        except IntegrityError:
            if await self.find_membership(scope, user_id) is None:
                # Not a uniqueness race (e.g. dangling FK): not ours to translate.
                raise
            logger.info("Lost create race for {} membership {} / user {}", scope.kind, scope.id, user_id)
            raise Conflict(f"{scope.kind.capitalize()} membership already exists for user {user_id}")
        return membership

    async def update_membership_role(self, membership: Membership, role: SiteRole | PlaceRole) -> Membership:
        expected = SiteRole if isinstance(membership, SiteMembership) else PlaceRole
        if not isinstance(role, expected):
            raise TypeError(f"{type(membership).__name__} needs a {expected.__name__}, got {role!r}")
        membership.role = role
        await self.db.flush()
        return membership

    async def delete_membership(self, membership: Membership) -> None:
        await self.db.delete(membership)
        await self.db.flush()
