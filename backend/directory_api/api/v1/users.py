# directory_api/api/v1/users.py
from __future__ import annotations

import uuid
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.api.deps.auth import get_current_user
from directory_api.api.deps.permissions import get_actor, require_platform_operation
from directory_api.auth.permissions import Actor
from directory_api.crud.users import UserStore
from directory_api.db.session import commit_keeping_audit, get_db
from directory_api.models.user import User
from directory_api.schemas.user import UserOut, UserRoleUpdate
from directory_api.services.users import update_global_role

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def me(user: User = Depends(get_current_user)):
    return user


@router.get("", response_model=List[UserOut])
async def list_users(
    db: AsyncSession = Depends(get_db),
    _: Actor = Depends(require_platform_operation("users.list")),
):
    return await UserStore(db).list_users()


@router.put("/{user_id}/role", response_model=UserOut)
async def set_global_role(
    user_id: uuid.UUID,
    payload: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    """
    Superadmin only. A superadmin's role can't be lowered (400).
    """
    async with commit_keeping_audit(db):
        user = await update_global_role(db, actor, user_id, payload.role)

    await db.refresh(user)
    return user
