from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from directory_api.core.roles import PlaceRole, SiteRole


class SiteMembershipCreate(BaseModel):
    site_id: UUID
    user_id: UUID
    role: SiteRole = SiteRole.EDITOR


class SiteMembershipUpdate(BaseModel):
    role: SiteRole


class SiteMembershipOut(BaseModel):
    id: UUID
    site_id: UUID
    user_id: UUID
    role: SiteRole
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PlaceMembershipCreate(BaseModel):
    place_id: UUID
    user_id: UUID
    role: PlaceRole = PlaceRole.EDITOR


class PlaceMembershipUpdate(BaseModel):
    role: PlaceRole


class PlaceMembershipOut(BaseModel):
    id: UUID
    place_id: UUID
    user_id: UUID
    role: PlaceRole
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class MyPlacesOut(BaseModel):
    place_ids: list[UUID]
