# directory_api/models/place_membership.py

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from directory_api.core.roles import PlaceRole
from directory_api.db.base import Base, role_enum


class PlaceMembership(Base):
    __tablename__ = "place_memberships"
    __table_args__ = (
        UniqueConstraint("place_id", "user_id", name="uq_place_memberships_place_user"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    place_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("places.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # editor | manager | owner
    role: Mapped[PlaceRole] = mapped_column(role_enum(PlaceRole, "place_role"), nullable=False, default=PlaceRole.EDITOR)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
