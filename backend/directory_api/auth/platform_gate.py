from __future__ import annotations

from types import MappingProxyType
from typing import FrozenSet, Mapping

from directory_api.core.roles import GlobalRole

# Operations not tied to a site or place. Superadmin is never listed: it is
# checked before the allow-list and always passes.
PLATFORM_OPERATIONS: Mapping[str, FrozenSet[GlobalRole]] = MappingProxyType({
    # sites.*
    "sites.list": frozenset({GlobalRole.ADMIN}),
    "sites.read": frozenset({GlobalRole.ADMIN, GlobalRole.EDITOR, GlobalRole.VIEWER}),
    "sites.create": frozenset(),
    "sites.update": frozenset(),
    "sites.delete": frozenset(),
    # users.*
    "users.list": frozenset({GlobalRole.ADMIN}),
    "users.read": frozenset({GlobalRole.ADMIN}),
    "users.create": frozenset(),
    "users.update_role": frozenset(),
    "users.delete": frozenset(),
    # memberships.*
    "memberships.list": frozenset({GlobalRole.ADMIN}),
})


def is_platform_allowed(global_role: GlobalRole | str, operation: str) -> bool:
    """
    Superadmin first, then the operation's allow-list.
    Raises KeyError for an operation that isn't declared.
    """
    allowed = PLATFORM_OPERATIONS[operation]
    role = GlobalRole(global_role)
    if role is GlobalRole.SUPERADMIN:
        return True
    return role in allowed
