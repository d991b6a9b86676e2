from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping, Union

from directory_api.core.roles import PlaceRole, SiteRole

ScopedRole = Union[SiteRole, PlaceRole]


@dataclass(frozen=True, eq=False)
class RoleHierarchy:
    """
    Rank tables for the two scoped role kinds.

    Built once when the application starts (see build_role_hierarchy) and shared
    by every resolver/guard instance. Ranks are only ever compared within one
    kind: a SiteRole is never ranked against a PlaceRole.
    """

    site_ranks: Mapping[SiteRole, int]
    place_ranks: Mapping[PlaceRole, int]

    def __post_init__(self) -> None:
        for kind, ranks in ((SiteRole, self.site_ranks), (PlaceRole, self.place_ranks)):
            missing = set(kind) - set(ranks)
            if missing:
                raise ValueError(f"Missing rank for {kind.__name__}: {sorted(r.value for r in missing)}")
            if len(set(ranks.values())) != len(ranks):
                raise ValueError(f"{kind.__name__} ranks must be strictly ordered")

        # Freeze copies so callers can't mutate the tables through their own dicts.
        object.__setattr__(self, "site_ranks", MappingProxyType(dict(self.site_ranks)))
        object.__setattr__(self, "place_ranks", MappingProxyType(dict(self.place_ranks)))

    def _table(self, role: ScopedRole) -> Mapping:
        if isinstance(role, PlaceRole):
            return self.place_ranks
        if isinstance(role, SiteRole):
            return self.site_ranks
        raise TypeError(f"Not a site or place role: {role!r}")

    def rank(self, role: ScopedRole) -> int:
        return self._table(role)[role]

    def at_least(self, held: ScopedRole, required: ScopedRole) -> bool:
        if type(held) is not type(required):
            raise TypeError(
                f"Cannot compare {type(held).__name__} with {type(required).__name__}"
            )
        return self.rank(held) >= self.rank(required)

    def highest(self, roles: Iterable[ScopedRole]) -> ScopedRole:
        roles = list(roles)
        if not roles:
            raise ValueError("At least one role is required")
        if len({type(r) for r in roles}) > 1:
            raise TypeError("Cannot rank roles of different scope kinds together")
        return max(roles, key=self.rank)


def build_role_hierarchy() -> RoleHierarchy:
    return RoleHierarchy(
        site_ranks={
            SiteRole.EDITOR: 1,
            SiteRole.SITEADMIN: 2,
        },
        place_ranks={
            PlaceRole.EDITOR: 1,
            PlaceRole.MANAGER: 2,
            PlaceRole.OWNER: 3,
        },
    )
