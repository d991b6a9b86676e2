from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from directory_api.core.roles import GlobalRole


class UserOut(BaseModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    global_role: GlobalRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class UserRoleUpdate(BaseModel):
    role: GlobalRole
