from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class SiteScope:
    site_id: uuid.UUID

    kind: ClassVar[str] = "site"

    @property
    def id(self) -> uuid.UUID:
        return self.site_id


@dataclass(frozen=True)
class PlaceScope:
    place_id: uuid.UUID

    kind: ClassVar[str] = "place"

    @property
    def id(self) -> uuid.UUID:
        return self.place_id


Scope = Union[SiteScope, PlaceScope]


def ensure_scope(scope: object) -> Scope:
    if isinstance(scope, (SiteScope, PlaceScope)):
        return scope
    raise TypeError(f"Unknown scope: {scope!r}")
