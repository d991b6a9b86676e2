# directory_api/services/users.py
from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.auth.permissions import Actor
from directory_api.auth.platform_gate import is_platform_allowed
from directory_api.core.errors import AuthzError, DenyReason, InvalidRoleChange, NotFound, PermissionDenied
from directory_api.core.roles import GlobalRole
from directory_api.crud.event_log import EventLogStore
from directory_api.crud.users import UserStore
from directory_api.models.user import User


async def update_global_role(db: AsyncSession, actor: Actor, user_id: uuid.UUID, role: GlobalRole) -> User:
    """
    Change a user's platform role.

    Only a superadmin may do this, and a superadmin is never demoted, not even
    by another superadmin. Every attempt is written to the admin event log.
    """
    users = UserStore(db)
    events = EventLogStore(db)

    try:
        if not is_platform_allowed(actor.global_role, "users.update_role"):
            raise PermissionDenied(DenyReason.INSUFFICIENT_AUTHORITY)

        user = await users.get(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")

        current = GlobalRole(user.global_role)
        if current is GlobalRole.SUPERADMIN and role is not GlobalRole.SUPERADMIN:
            raise InvalidRoleChange("A superadmin's global role cannot be lowered")

        await users.update_global_role(user, role)
    except AuthzError as exc:
        await events.record(
            actor_user_id=actor.user_id,
            action="update_role",
            entity_type="user",
            entity_id=user_id,
            scope_kind="platform",
            outcome="denied" if isinstance(exc, PermissionDenied) else "failed",
            reason=exc.reason.value if isinstance(exc, PermissionDenied) else exc.code,
        )
        raise

    await events.record(
        actor_user_id=actor.user_id,
        action="update_role",
        entity_type="user",
        entity_id=user_id,
        scope_kind="platform",
        outcome="success",
        reason=f"{current.value}->{role.value}",
    )
    return user
