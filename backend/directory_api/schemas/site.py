import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

SLUG_REGEX = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class SiteCreate(BaseModel):
    name: str = Field(min_length=2, max_length=200)
    slug: str = Field(min_length=2, max_length=200)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        v = v.strip().lower()
        if not SLUG_REGEX.match(v):
            raise ValueError("Slug may only contain lowercase letters, digits and single hyphens")
        return v


class SiteOut(BaseModel):
    id: UUID
    name: str
    slug: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class PlaceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    owner_id: Optional[UUID] = Field(
        default=None,
        description="Optional: user who owns the place. Counts as an owner membership.",
    )


class PlaceOut(BaseModel):
    id: UUID
    site_id: UUID
    name: str
    owner_id: Optional[UUID] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CanCreateEventOut(BaseModel):
    site_id: UUID
    place_id: UUID
    allowed: bool
