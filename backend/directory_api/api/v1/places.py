# directory_api/api/v1/places.py
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.api.deps.permissions import get_actor, get_resolver, require_place_role
from directory_api.auth.permissions import Actor, PermissionResolver
from directory_api.core.errors import NotFound
from directory_api.core.roles import PlaceRole
from directory_api.crud.places import PlaceStore
from directory_api.db.session import get_db
from directory_api.schemas.site import CanCreateEventOut, PlaceOut

router = APIRouter(prefix="/places", tags=["places"])


@router.get("/{place_id}", response_model=PlaceOut)
async def get_place(
    place_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_place_role(PlaceRole.EDITOR)),
):
    place = await PlaceStore(db).get_place(place_id)
    if place is None:
        raise NotFound(f"Place {place_id} not found")
    return place


@router.get("/{place_id}/can-create-event", response_model=CanCreateEventOut)
async def can_create_event(
    place_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
    resolver: PermissionResolver = Depends(get_resolver),
):
    """
    Whether the caller may create an event at this place (site admins and the
    place's owner/managers).
    """
    place = await PlaceStore(db).get_place(place_id)
    if place is None:
        raise NotFound(f"Place {place_id} not found")

    allowed = await resolver.can_create_event(actor, place.site_id, place.id)
    return CanCreateEventOut(site_id=place.site_id, place_id=place.id, allowed=allowed)
