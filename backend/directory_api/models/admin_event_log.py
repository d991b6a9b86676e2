from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from directory_api.db.base import Base


class AdminEventLog(Base):
    """
    Append-only trail of guarded admin mutations, written for every attempt
    whether it succeeded or was refused.
    """

    __tablename__ = "admin_event_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # No FKs: the trail must outlive the rows it talks about.
    site_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    actor_user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    action: Mapped[str] = mapped_column(String(32), nullable=False)  # create | update | delete
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    scope_kind: Mapped[str | None] = mapped_column(String(16), nullable=True)  # site | place | platform
    scope_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    outcome: Mapped[str] = mapped_column(String(16), nullable=False)  # success | denied | failed
    reason: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
