"""User ORM model.

The reporting line is stored as a plain ``manager_id`` column and resolved
through ``UserDirectory``; there are no relationship back-pointers.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from leave_engine.common.constants import Role
from leave_engine.database import Base, utcnow


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        sa.CheckConstraint("manager_id IS NULL OR manager_id <> id", name="ck_user_not_own_manager"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        sa.Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False)
    role: Mapped[Role] = mapped_column(
        sa.Enum(Role, name="user_role"),
        nullable=False,
    )
    manager_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        sa.Uuid, sa.ForeignKey("users.id"), index=True
    )
    is_active: Mapped[bool] = mapped_column(sa.Boolean, server_default=sa.true())
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )
