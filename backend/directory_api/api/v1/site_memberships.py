# directory_api/api/v1/site_memberships.py
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
from directory_api.core.roles import SiteRole
from directory_api.core.scope import SiteScope
from directory_api.db.session import commit_keeping_audit, get_db
from directory_api.schemas.membership import (
    SiteMembershipCreate,
    SiteMembershipOut,
    SiteMembershipUpdate,
)
from directory_api.services.memberships import MembershipService

router = APIRouter(prefix="/site-memberships", tags=["site-memberships"])


@router.get("", response_model=List[SiteMembershipOut])
async def list_site_memberships(
    site_id: Optional[uuid.UUID] = None,
    user_id: Optional[uuid.UUID] = None,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    resolver: PermissionResolver = Depends(get_resolver),
    guard: MembershipGuard = Depends(get_guard),
):
    """
    Platform admins see everything; a siteadmin sees the rows of their own site.
    """
    if not is_platform_allowed(actor.global_role, "memberships.list"):
        if site_id is None:
            raise PermissionDenied(DenyReason.INSUFFICIENT_AUTHORITY, "site_id is required")
        await resolver.require(actor, SiteScope(site_id), SiteRole.SITEADMIN)

    return await MembershipService(db, guard).list_site_memberships(site_id=site_id, user_id=user_id)


@router.post("", response_model=SiteMembershipOut, status_code=status.HTTP_201_CREATED)
async def create_site_membership(
    payload: SiteMembershipCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    guard: MembershipGuard = Depends(get_guard),
):
    async with commit_keeping_audit(db):
        membership = await MembershipService(db, guard).create_site_membership(
            actor, payload.site_id, payload.user_id, payload.role
        )

    await db.refresh(membership)
    return membership


@router.patch("/{membership_id}", response_model=SiteMembershipOut)
async def update_site_membership(
    membership_id: uuid.UUID,
    payload: SiteMembershipUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    guard: MembershipGuard = Depends(get_guard),
):
    async with commit_keeping_audit(db):
        membership = await MembershipService(db, guard).update_site_membership(actor, membership_id, payload.role)

    await db.refresh(membership)
    return membership


@router.delete("/{membership_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_site_membership(
    membership_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    guard: MembershipGuard = Depends(get_guard),
):
    async with commit_keeping_audit(db):
        await MembershipService(db, guard).delete_site_membership(actor, membership_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
