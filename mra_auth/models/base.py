"""
Declarative base, shared column mixins and the JSON column type.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Request bodies and conditions; JSONB where the server has it
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class TimestampMixin:
    """``created_at`` doubles as the start of the activation window."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=True,
    )


class AuditMixin:
    """
    Ids of the users that created and last changed a row.

    The column names match the ``creator_column``/``updator_column`` declared
    in ``mra_tables``, so the values arrive stamped in resolved conditions.
    """

    creator: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("mra_users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    updator: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("mra_users.user_id", ondelete="SET NULL"),
        nullable=True,
    )
