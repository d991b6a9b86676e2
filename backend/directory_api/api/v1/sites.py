# directory_api/api/v1/sites.py
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.api.deps.permissions import (
    get_actor,
    get_resolver,
    require_platform_operation,
    require_site_role,
)
from directory_api.auth.permissions import Actor, PermissionResolver
from directory_api.auth.platform_gate import is_platform_allowed
from directory_api.core.errors import Conflict, NotFound
from directory_api.core.roles import SiteRole
from directory_api.core.scope import SiteScope
from directory_api.crud.event_log import EventLogStore
from directory_api.crud.places import PlaceStore
from directory_api.crud.users import UserStore
from directory_api.db.session import get_db
from directory_api.schemas.site import PlaceCreate, PlaceOut, SiteCreate, SiteOut

router = APIRouter(prefix="/sites", tags=["sites"])


# ---------------------------------------------------------
# Sites (platform-level)
# ---------------------------------------------------------
@router.get("", response_model=List[SiteOut])
async def list_sites(
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_platform_operation("sites.list")),
):
    return await PlaceStore(db).list_sites()


@router.post("", response_model=SiteOut, status_code=status.HTTP_201_CREATED)
async def create_site(
    payload: SiteCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_platform_operation("sites.create")),
):
    places = PlaceStore(db)
    if await places.get_site_by_slug(payload.slug) is not None:
        raise Conflict(f"Slug {payload.slug!r} already in use")

    site = await places.create_site(name=payload.name, slug=payload.slug)
    await EventLogStore(db).record(
        actor_user_id=actor.user_id,
        action="create",
        entity_type="site",
        entity_id=site.id,
        site_id=site.id,
        scope_kind="platform",
        outcome="success",
    )
    await db.commit()
    await db.refresh(site)
    return site


@router.get("/{site_id}", response_model=SiteOut)
async def get_site(
    site_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    resolver: PermissionResolver = Depends(get_resolver),
):
    """
    Readable with the sites.read platform operation or any membership of the site.
    """
    if not is_platform_allowed(actor.global_role, "sites.read"):
        await resolver.require(actor, SiteScope(site_id), SiteRole.EDITOR)

    site = await PlaceStore(db).get_site(site_id)
    if site is None:
        raise NotFound(f"Site {site_id} not found")
    return site


@router.delete("/{site_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_site(
    site_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_platform_operation("sites.delete")),
):
    places = PlaceStore(db)
    if await places.get_site(site_id) is None:
        raise NotFound(f"Site {site_id} not found")

    await places.delete_site(site_id)
    await EventLogStore(db).record(
        actor_user_id=actor.user_id,
        action="delete",
        entity_type="site",
        entity_id=site_id,
        site_id=site_id,
        scope_kind="platform",
        outcome="success",
    )
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------
# Places inside a site
# ---------------------------------------------------------
@router.post("/{site_id}/places", response_model=PlaceOut, status_code=status.HTTP_201_CREATED)
async def create_place(
    site_id: uuid.UUID,
    payload: PlaceCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_site_role(SiteRole.SITEADMIN)),
):
    places = PlaceStore(db)
    if await places.get_site(site_id) is None:
        raise NotFound(f"Site {site_id} not found")
    if payload.owner_id is not None and await UserStore(db).get(payload.owner_id) is None:
        raise NotFound(f"User {payload.owner_id} not found")

    place = await places.create_place(site_id=site_id, name=payload.name, owner_id=payload.owner_id)
    await EventLogStore(db).record(
        actor_user_id=actor.user_id,
        action="create",
        entity_type="place",
        entity_id=place.id,
        site_id=site_id,
        scope_kind="site",
        scope_id=site_id,
        outcome="success",
    )
    await db.commit()
    await db.refresh(place)
    return place
