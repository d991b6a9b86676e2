# directory_api/crud/users.py
from __future__ import annotations

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.core.errors import NotFound
from directory_api.core.roles import GlobalRole
from directory_api.models.user import User


class UserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: uuid.UUID) -> Optional[User]:
        return await self.db.get(User, user_id)

    async def get_global_role(self, user_id: uuid.UUID) -> GlobalRole:
        role = (await self.db.execute(select(User.global_role).where(User.id == user_id))).scalar_one_or_none()
        if role is None:
            raise NotFound(f"User {user_id} not found")
        return GlobalRole(role)

    async def list_users(self) -> Sequence[User]:
        res = await self.db.execute(select(User).order_by(User.created_at.desc()))
        return res.scalars().all()

    async def update_global_role(self, user: User, role: GlobalRole) -> User:
        user.global_role = role
        await self.db.flush()
        return user
