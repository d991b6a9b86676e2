# directory_api/crud/places.py
from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.models.place import Place
from directory_api.models.site import Site


class PlaceStore:
    """Sites and places, only as far as the authorization core needs them."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_site(self, site_id: uuid.UUID) -> Optional[Site]:
        return await self.db.get(Site, site_id)

    async def get_place(self, place_id: uuid.UUID) -> Optional[Place]:
        return await self.db.get(Place, place_id)

    async def get_site_by_slug(self, slug: str) -> Optional[Site]:
        return (await self.db.execute(select(Site).where(Site.slug == slug))).scalar_one_or_none()

    async def list_sites(self) -> Sequence[Site]:
        res = await self.db.execute(select(Site).order_by(Site.created_at.desc()))
        return res.scalars().all()

    async def create_site(self, *, name: str, slug: str) -> Site:
        site = Site(name=name, slug=slug)
        self.db.add(site)
        await self.db.flush()
        return site

    async def delete_site(self, site_id: uuid.UUID) -> None:
        # Places and memberships go with it (ON DELETE CASCADE).
        await self.db.execute(delete(Site).where(Site.id == site_id))

    async def create_place(self, *, site_id: uuid.UUID, name: str, owner_id: Optional[uuid.UUID] = None) -> Place:
        place = Place(site_id=site_id, name=name, owner_id=owner_id)
        self.db.add(place)
        await self.db.flush()
        return place
