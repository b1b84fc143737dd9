"""Tests for the approval workflow."""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import update

from timesheet_engine.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotDirectReportError,
    NotFoundError,
    SelfApprovalForbiddenError,
    ValidationError,
)
from timesheet_engine.models import Timesheet, UserRole
from timesheet_engine.services.approval_service import ApprovalService
from timesheet_engine.services.notification_service import (
    DatabaseNotificationSink,
    NotificationService,
)
from timesheet_engine.services.timesheet_service import TimesheetService
from timesheet_engine.utils.dates import utcnow

pytestmark = pytest.mark.asyncio

WEEK = date(2026, 2, 9)


@pytest.fixture
def submitted(world, make_timesheet):
    """Factory for a SUBMITTED timesheet with 24 billable hours on ``web``."""

    async def _make(owner=None, week=WEEK):
        return await make_timesheet(
            owner or world.alice,
            week,
            status="SUBMITTED",
            entries=[
                (
                    world.web,
                    {
                        "mon_hours": Decimal("8"),
                        "tue_hours": Decimal("8"),
                        "wed_hours": Decimal("8"),
                    },
                )
            ],
        )

    return _make


class RecordingSink:
    def __init__(self):
        self.sent = []

    async def create(self, org_id, recipient_user_id, type, message):
        self.sent.append((recipient_user_id, type, message))


class TestApprove:
    async def test_manager_approves_direct_report(self, session, world, submitted):
        timesheet = await submitted()

        approved = await ApprovalService(session).approve(
            timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
        )

        assert approved.status == "APPROVED"
        assert approved.approved_by_id == world.manager.id
        assert approved.approved_at is not None

    async def test_approval_accrues_project_hours(self, session, world, submitted):
        timesheet = await submitted()

        await ApprovalService(session).approve(
            timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
        )

        await session.refresh(world.web)
        assert world.web.used_hours == Decimal("24")

    async def test_approval_notifies_owner(self, session, world, submitted):
        timesheet = await submitted()

        await ApprovalService(session).approve(
            timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
        )

        notifications = await NotificationService(session).list_for_user(
            world.alice.id, world.org.id
        )
        assert len(notifications) == 1
        assert notifications[0].type == "approved"
        assert notifications[0].message == (
            "Your timesheet for week starting 2026-02-09 has been approved."
        )

    async def test_admin_approves_anyone(self, session, world, submitted):
        timesheet = await submitted(world.carol)

        approved = await ApprovalService(session).approve(
            timesheet.id, world.admin.id, world.org.id, UserRole.ADMIN
        )

        assert approved.status == "APPROVED"

    @pytest.mark.parametrize("role", [UserRole.MANAGER, UserRole.ADMIN])
    async def test_self_approval_forbidden(self, session, world, submitted, role):
        approver = world.manager if role == UserRole.MANAGER else world.admin
        timesheet = await submitted(approver)

        with pytest.raises(SelfApprovalForbiddenError):
            await ApprovalService(session).approve(
                timesheet.id, approver.id, world.org.id, role
            )
        with pytest.raises(SelfApprovalForbiddenError):
            await ApprovalService(session).reject(
                timesheet.id, approver.id, world.org.id, "No", role
            )

    async def test_manager_cannot_approve_non_report(self, session, world, submitted):
        timesheet = await submitted(world.carol)

        with pytest.raises(NotDirectReportError):
            await ApprovalService(session).approve(
                timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
            )

    async def test_employee_cannot_approve(self, session, world, submitted):
        timesheet = await submitted()

        with pytest.raises(ForbiddenError):
            await ApprovalService(session).approve(
                timesheet.id, world.bob.id, world.org.id, UserRole.EMPLOYEE
            )

    async def test_other_org_timesheet_not_found(self, session, world, submitted):
        timesheet = await submitted()

        with pytest.raises(NotFoundError):
            await ApprovalService(session).approve(
                timesheet.id, world.outsider.id, world.other_org.id, UserRole.MANAGER
            )

    @pytest.mark.parametrize("status", ["DRAFT", "APPROVED", "REJECTED"])
    async def test_only_submitted_can_be_approved(
        self, session, world, make_timesheet, status
    ):
        timesheet = await make_timesheet(world.alice, WEEK, status=status)

        with pytest.raises(InvalidTransitionError):
            await ApprovalService(session).approve(
                timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
            )

    async def test_second_approve_fails_without_double_accrual(
        self, session, world, submitted
    ):
        timesheet = await submitted()
        sink = RecordingSink()
        service = ApprovalService(session, sink)

        await service.approve(timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER)
        with pytest.raises(InvalidTransitionError):
            await service.approve(timesheet.id, world.admin.id, world.org.id, UserRole.ADMIN)

        await session.refresh(world.web)
        assert world.web.used_hours == Decimal("24")
        assert len(sink.sent) == 1

    async def test_stale_read_loses_the_status_race(self, session, world, submitted):
        """A decision based on a stale SUBMITTED read must not apply side effects."""
        timesheet = await submitted()
        assert timesheet.status == "SUBMITTED"

        # Another writer rejects the row behind this session's back
        await session.execute(
            update(Timesheet)
            .where(Timesheet.id == timesheet.id)
            .values(status="REJECTED", rejected_reason="Concurrent")
            .execution_options(synchronize_session=False)
        )
        sink = RecordingSink()

        with pytest.raises(InvalidTransitionError):
            await ApprovalService(session, sink).approve(
                timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
            )

        await session.refresh(world.web)
        assert world.web.used_hours == Decimal("0")
        assert sink.sent == []

    async def test_notification_failure_does_not_undo_approval(
        self, session, world, submitted
    ):
        class BrokenSink(DatabaseNotificationSink):
            async def create(self, org_id, recipient_user_id, type, message):
                # message is NOT NULL; the insert fails inside its savepoint
                await super().create(org_id, recipient_user_id, type, None)

        timesheet = await submitted()

        await ApprovalService(session, BrokenSink(session)).approve(
            timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
        )

        await session.refresh(timesheet)
        await session.refresh(world.web)
        assert timesheet.status == "APPROVED"
        assert world.web.used_hours == Decimal("24")
        assert await NotificationService(session).list_for_user(
            world.alice.id, world.org.id
        ) == []


class TestReject:
    async def test_reject_records_reason_and_notifies(self, session, world, submitted):
        timesheet = await submitted()
        sink = RecordingSink()

        rejected = await ApprovalService(session, sink).reject(
            timesheet.id, world.manager.id, world.org.id, "Missing Friday", UserRole.MANAGER
        )

        assert rejected.status == "REJECTED"
        assert rejected.rejected_reason == "Missing Friday"
        assert sink.sent == [
            (
                world.alice.id,
                "rejected",
                "Your timesheet for week starting 2026-02-09 was rejected. "
                "Reason: Missing Friday",
            )
        ]

    async def test_reject_does_not_accrue_hours(self, session, world, submitted):
        timesheet = await submitted()

        await ApprovalService(session).reject(
            timesheet.id, world.manager.id, world.org.id, "Wrong project", UserRole.MANAGER
        )

        await session.refresh(world.web)
        assert world.web.used_hours == Decimal("0")

    async def test_reason_required(self, session, world, submitted):
        timesheet = await submitted()

        with pytest.raises(ValidationError):
            await ApprovalService(session).reject(
                timesheet.id, world.manager.id, world.org.id, "  ", UserRole.MANAGER
            )

    async def test_rejected_timesheet_can_be_resubmitted_and_approved(
        self, session, world, submitted
    ):
        timesheet = await submitted()
        approvals = ApprovalService(session)

        await approvals.reject(
            timesheet.id, world.manager.id, world.org.id, "Fix Monday", UserRole.MANAGER
        )
        await TimesheetService(session).submit(timesheet.id, world.alice.id, world.org.id)
        approved = await approvals.approve(
            timesheet.id, world.manager.id, world.org.id, UserRole.MANAGER
        )

        assert approved.status == "APPROVED"
        assert approved.rejected_reason is None

    async def test_manager_cannot_reject_non_report(self, session, world, submitted):
        timesheet = await submitted(world.carol)

        with pytest.raises(NotDirectReportError):
            await ApprovalService(session).reject(
                timesheet.id, world.manager.id, world.org.id, "No", UserRole.MANAGER
            )


class TestPendingAndStats:
    async def test_manager_sees_only_direct_reports(self, session, world, submitted):
        await submitted(world.alice)
        await submitted(world.bob)
        await submitted(world.carol)

        page = await ApprovalService(session).list_pending(
            world.org.id, world.manager.id, UserRole.MANAGER
        )

        assert page.total == 2
        assert {t.user_id for t in page.items} == {world.alice.id, world.bob.id}

    async def test_admin_sees_whole_org(self, session, world, submitted, make_timesheet):
        await submitted(world.alice)
        await submitted(world.carol)
        await make_timesheet(world.bob, WEEK)  # draft, not pending
        await make_timesheet(world.outsider, WEEK, status="SUBMITTED")

        page = await ApprovalService(session).list_pending(
            world.org.id, world.admin.id, UserRole.ADMIN
        )

        assert page.total == 2
        assert page.meta == {"total": 2, "page": 1, "limit": 20}

    async def test_pending_is_oldest_first_and_paged(self, session, world, submitted):
        first = await submitted(world.alice, WEEK)
        second = await submitted(world.bob, WEEK)
        third = await submitted(world.alice, WEEK + timedelta(days=7))
        base = utcnow()
        for offset, timesheet in enumerate([third, first, second]):
            timesheet.submitted_at = base + timedelta(minutes=offset)
        await session.flush()

        service = ApprovalService(session)
        page_one = await service.list_pending(
            world.org.id, world.admin.id, UserRole.ADMIN, page=1, limit=2
        )
        page_two = await service.list_pending(
            world.org.id, world.admin.id, UserRole.ADMIN, page=2, limit=2
        )

        assert [t.id for t in page_one.items] == [third.id, first.id]
        assert [t.id for t in page_two.items] == [second.id]
        assert page_one.total == page_two.total == 3

    async def test_employee_has_no_approval_queue(self, session, world):
        with pytest.raises(ForbiddenError):
            await ApprovalService(session).list_pending(
                world.org.id, world.alice.id, UserRole.EMPLOYEE
            )

    async def test_manager_stats(self, session, world, submitted, make_timesheet):
        await submitted(world.alice)
        approved = await make_timesheet(
            world.bob,
            WEEK,
            status="APPROVED",
            entries=[(world.web, {"mon_hours": Decimal("6")})],
        )
        approved.approved_at = utcnow()
        await make_timesheet(
            world.bob,
            WEEK - timedelta(days=7),
            status="APPROVED",
            entries=[(world.web, {"mon_hours": Decimal("4")})],
        )
        await submitted(world.carol)
        await session.flush()

        stats = await ApprovalService(session).stats(
            world.org.id, world.manager.id, UserRole.MANAGER, today=utcnow().date()
        )

        assert stats.pending == 1
        # The older approval carries no approved_at stamp from this week
        assert stats.approved_this_week == 1
        assert stats.team_hours == Decimal("34")
        assert stats.team_members == 2

    async def test_admin_stats_counts_active_users(self, session, world, submitted):
        await submitted(world.carol)
        world.bob.status = "inactive"
        await session.flush()

        stats = await ApprovalService(session).stats(
            world.org.id, world.admin.id, UserRole.ADMIN
        )

        assert stats.pending == 1
        # admin, manager, alice, carol
        assert stats.team_members == 4
