"""Tests for the notification inbox and the best-effort sink."""

import logging
from uuid import uuid4

import pytest

from timesheet_engine.errors import NotFoundError
from timesheet_engine.models import NotificationType
from timesheet_engine.services.notification_service import (
    DatabaseNotificationSink,
    NotificationService,
    NotificationSink,
)

pytestmark = pytest.mark.asyncio


class TestSink:
    async def test_database_sink_satisfies_protocol(self, session):
        assert isinstance(DatabaseNotificationSink(session), NotificationSink)

    async def test_stores_notification(self, session, world):
        await DatabaseNotificationSink(session).create(
            world.org.id, world.alice.id, NotificationType.APPROVED.value, "Week approved"
        )

        [notification] = await NotificationService(session).list_for_user(
            world.alice.id, world.org.id
        )
        assert notification.message == "Week approved"
        assert notification.read is False

    async def test_failure_is_logged_not_raised(self, session, world, caplog):
        with caplog.at_level(logging.WARNING, logger="timesheet_engine"):
            await DatabaseNotificationSink(session).create(
                world.org.id, uuid4(), NotificationType.APPROVED.value, None
            )

        assert "Failed to store approved notification" in caplog.text
        # The session is still usable
        assert await NotificationService(session).list_for_user(
            world.alice.id, world.org.id
        ) == []


class TestInbox:
    async def _seed(self, session, world):
        approved = NotificationType.APPROVED.value
        sink = DatabaseNotificationSink(session)
        for message in ("first", "second", "third"):
            await sink.create(world.org.id, world.alice.id, approved, message)
        await sink.create(world.org.id, world.bob.id, approved, "for bob")

    async def test_mark_as_read_orders_unread_first(self, session, world):
        await self._seed(session, world)
        service = NotificationService(session)
        inbox = await service.list_for_user(world.alice.id, world.org.id)

        read = await service.mark_as_read(inbox[0].id, world.alice.id, world.org.id)

        assert read.read is True
        reordered = await service.list_for_user(world.alice.id, world.org.id)
        assert reordered[-1].id == read.id
        assert [n.read for n in reordered] == [False, False, True]

    async def test_cannot_read_someone_elses_notification(self, session, world):
        await self._seed(session, world)
        service = NotificationService(session)
        [bobs] = await service.list_for_user(world.bob.id, world.org.id)

        with pytest.raises(NotFoundError):
            await service.mark_as_read(bobs.id, world.alice.id, world.org.id)

    async def test_mark_all_as_read(self, session, world):
        await self._seed(session, world)
        service = NotificationService(session)

        assert await service.mark_all_as_read(world.alice.id, world.org.id) == 3
        assert await service.mark_all_as_read(world.alice.id, world.org.id) == 0

        session.expunge_all()
        [bobs] = await service.list_for_user(world.bob.id, world.org.id)
        assert bobs.read is False
