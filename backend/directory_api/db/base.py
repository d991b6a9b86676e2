from __future__ import annotations

import enum
from typing import Type

from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def role_enum(enum_cls: Type[enum.Enum], name: str) -> SAEnum:
    """
    Closed role column: stored as VARCHAR + CHECK constraint with the lowercase
    enum values, loaded back as enum members.
    """
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
        length=30,
        values_callable=lambda members: [m.value for m in members],
    )
