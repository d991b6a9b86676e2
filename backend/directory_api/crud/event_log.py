# directory_api/crud/event_log.py
from __future__ import annotations

import uuid
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from directory_api.models.admin_event_log import AdminEventLog


class EventLogStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def record(
        self,
        *,
        actor_user_id: uuid.UUID,
        action: str,
        entity_type: str,
        outcome: str,
        site_id: Optional[uuid.UUID] = None,
        entity_id: Optional[uuid.UUID] = None,
        scope_kind: Optional[str] = None,
        scope_id: Optional[uuid.UUID] = None,
        reason: Optional[str] = None,
    ) -> AdminEventLog:
        entry = AdminEventLog(
            site_id=site_id,
            actor_user_id=actor_user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            scope_kind=scope_kind,
            scope_id=scope_id,
            outcome=outcome,
            reason=reason,
        )
        self.db.add(entry)
        await self.db.flush()
        logger.debug(
            "Audit {} {} by {}: {}{}",
            action,
            entity_type,
            actor_user_id,
            outcome,
            f" ({reason})" if reason else "",
        )
        return entry
