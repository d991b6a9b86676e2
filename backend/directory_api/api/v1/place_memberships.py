# directory_api/api/v1/place_memberships.py
from __future__ import annotations

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.api.deps.permissions import get_actor, get_guard, get_resolver
from directory_api.auth.membership_guard import MembershipGuard
from directory_api.auth.permissions import Actor, PermissionResolver
from directory_api.auth.platform_gate import is_platform_allowed
from directory_api.core.errors import DenyReason, PermissionDenied
from directory_api.core.roles import PlaceRole
from directory_api.core.scope import PlaceScope
from directory_api.db.session import commit_keeping_audit, get_db
from directory_api.schemas.membership import (
    MyPlacesOut,
    PlaceMembershipCreate,
    PlaceMembershipOut,
    PlaceMembershipUpdate,
)
from directory_api.services.memberships import MembershipService

router = APIRouter(prefix="/place-memberships", tags=["place-memberships"])


# ---------------------------------------------------------
# Reads
# ---------------------------------------------------------
@router.get("/my-places", response_model=MyPlacesOut)
async def my_places(
    site_id: Optional[uuid.UUID] = None,
    actor: Actor = Depends(get_actor),
    resolver: PermissionResolver = Depends(get_resolver),
):
    """
    Places where the caller holds an explicit membership, optionally within one site.
    """
    return MyPlacesOut(place_ids=await resolver.list_user_places(actor.user_id, site_id))


@router.get("", response_model=List[PlaceMembershipOut])
async def list_place_memberships(
    place_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    resolver: PermissionResolver = Depends(get_resolver),
    guard: MembershipGuard = Depends(get_guard),
):
    """
    Platform admins see everything; place managers (and above) see their place.
    """
    if not is_platform_allowed(actor.global_role, "memberships.list"):
        if place_id is None:
            raise PermissionDenied(DenyReason.INSUFFICIENT_AUTHORITY, "place_id is required")
        await resolver.require(actor, PlaceScope(place_id), PlaceRole.MANAGER)

    return await MembershipService(db, guard).list_place_memberships(place_id=place_id, user_id=user_id)


# ---------------------------------------------------------
# Guarded mutations
# ---------------------------------------------------------
@router.post("", response_model=PlaceMembershipOut, status_code=status.HTTP_201_CREATED)
async def create_place_membership(
    payload: PlaceMembershipCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    guard: MembershipGuard = Depends(get_guard),
):
    async with commit_keeping_audit(db):
        membership = await MembershipService(db, guard).create_place_membership(
            actor, payload.place_id, payload.user_id, payload.role
        )

    await db.refresh(membership)
    return membership


@router.patch("/{membership_id}", response_model=PlaceMembershipOut)
async def update_place_membership(
    membership_id: uuid.UUID,
    payload: PlaceMembershipUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    guard: MembershipGuard = Depends(get_guard),
):
    async with commit_keeping_audit(db):
        membership = await MembershipService(db, guard).update_place_membership(actor, membership_id, payload.role)

    await db.refresh(membership)
    return membership


@router.delete("/{membership_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_place_membership(
    membership_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    guard: MembershipGuard = Depends(get_guard),
):
    async with commit_keeping_audit(db):
        await MembershipService(db, guard).delete_place_membership(actor, membership_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
