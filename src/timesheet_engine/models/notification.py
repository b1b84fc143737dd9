"""Notification model."""

from __future__ import annotations

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from timesheet_engine.models.base import Base, TimestampMixin, uuid_pk


class NotificationType(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class Notification(Base, TimestampMixin):
    """Informational message addressed to one user."""

    __tablename__ = "notification"

    id: Mapped[UUID] = uuid_pk()
    organisation_id: Mapped[UUID] = mapped_column(
        ForeignKey("organisation.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("app_user.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
