"""Notification sink and inbox operations."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.errors import NotFoundError
from timesheet_engine.models import Notification

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Receives workflow notifications. Delivery is best-effort."""

    async def create(
        self, org_id: UUID, recipient_user_id: UUID, type: str, message: str
    ) -> None:
        ...


class DatabaseNotificationSink:
    """Stores notifications in the caller's transaction.

    The insert runs inside a SAVEPOINT so that a failure is rolled back on its
    own and never undoes the workflow operation that triggered it.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, org_id: UUID, recipient_user_id: UUID, type: str, message: str
    ) -> None:
        try:
            async with self.session.begin_nested():
                self.session.add(
                    Notification(
                        organisation_id=org_id,
                        user_id=recipient_user_id,
                        type=type,
                        message=message,
                    )
                )
        except Exception:
            logger.warning(
                "Failed to store %s notification for user %s",
                type,
                recipient_user_id,
                exc_info=True,
            )


class NotificationService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_user(self, user_id: UUID, org_id: UUID) -> list[Notification]:
        """Unread first, newest first."""
        result = await self.session.execute(
            select(Notification)
            .where(Notification.user_id == user_id, Notification.organisation_id == org_id)
            .order_by(Notification.read.asc(), Notification.created_at.desc())
        )
        return list(result.scalars().all())

    async def mark_as_read(
        self, notification_id: UUID, user_id: UUID, org_id: UUID
    ) -> Notification:
        result = await self.session.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user_id,
                Notification.organisation_id == org_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError("Notification")
        notification.read = True
        await self.session.flush()
        return notification

    async def mark_all_as_read(self, user_id: UUID, org_id: UUID) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.organisation_id == org_id,
                Notification.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
