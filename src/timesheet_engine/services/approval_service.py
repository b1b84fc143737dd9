"""Approval workflow for submitted timesheets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    SelfApprovalForbiddenError,
    ValidationError,
)
from timesheet_engine.models import (
    ManagerEmployee,
    NotificationType,
    Project,
    TimeEntry,
    Timesheet,
    User,
    UserStatus,
)
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.notification_service import (
    DatabaseNotificationSink,
    NotificationSink,
)
from timesheet_engine.services.pagination import Page, paginate
from timesheet_engine.services.scope import Actor, Visibility, policy_for
from timesheet_engine.services.state_machine import TimesheetStateMachine, TimesheetStatus
from timesheet_engine.utils.dates import utcnow, week_start

logger = logging.getLogger(__name__)


@dataclass
class ApprovalStats:
    pending: int
    approved_this_week: int
    team_hours: Decimal
    team_members: int


class ApprovalService:
    """Moves SUBMITTED timesheets to APPROVED or REJECTED.

    Guards, in order: timesheet exists in the org, actor is not the owner,
    a MANAGER actor manages the owner directly, status is SUBMITTED. The
    status change itself is a conditional update, so of two concurrent
    decisions on the same row only one can apply its side effects.
    """

    def __init__(self, session: AsyncSession, notifier: NotificationSink | None = None):
        self.session = session
        self.graph = AssignmentGraph(session)
        self.notifier = notifier or DatabaseNotificationSink(session)

    async def list_pending(
        self,
        org_id: UUID,
        actor_id: UUID,
        actor_role: str,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Timesheet]:
        """SUBMITTED timesheets the actor may decide on, oldest first."""
        conditions = await self._scope_conditions(org_id, actor_id, actor_role)
        query = (
            select(Timesheet)
            .where(Timesheet.status == TimesheetStatus.SUBMITTED.value, *conditions)
            .options(
                selectinload(Timesheet.user),
                selectinload(Timesheet.entries).selectinload(TimeEntry.project),
            )
            .order_by(Timesheet.submitted_at.asc(), Timesheet.updated_at.asc())
        )
        return await paginate(self.session, query, page, limit)

    async def stats(
        self,
        org_id: UUID,
        actor_id: UUID,
        actor_role: str,
        today: date | None = None,
    ) -> ApprovalStats:
        """Dashboard counters for the actor's approval scope.

        "This week" is Monday-anchored regardless of the org setting.
        """
        conditions = await self._scope_conditions(org_id, actor_id, actor_role)
        since = datetime.combine(week_start(today or utcnow().date(), "monday"), time.min)

        pending = await self.session.scalar(
            select(func.count(Timesheet.id)).where(
                Timesheet.status == TimesheetStatus.SUBMITTED.value, *conditions
            )
        )
        approved_this_week = await self.session.scalar(
            select(func.count(Timesheet.id)).where(
                Timesheet.status == TimesheetStatus.APPROVED.value,
                Timesheet.approved_at >= since,
                *conditions,
            )
        )
        team_hours = await self.session.scalar(
            select(func.sum(Timesheet.total_hours)).where(
                Timesheet.status.in_(
                    [TimesheetStatus.SUBMITTED.value, TimesheetStatus.APPROVED.value]
                ),
                *conditions,
            )
        )

        if policy_for(actor_role).approvals == Visibility.ORG:
            team_members = await self.session.scalar(
                select(func.count(User.id)).where(
                    User.organisation_id == org_id,
                    User.status == UserStatus.ACTIVE.value,
                )
            )
        else:
            team_members = await self.session.scalar(
                select(func.count(func.distinct(ManagerEmployee.employee_id))).where(
                    ManagerEmployee.manager_id == actor_id,
                    ManagerEmployee.organisation_id == org_id,
                )
            )

        return ApprovalStats(
            pending=pending or 0,
            approved_this_week=approved_this_week or 0,
            team_hours=Decimal(team_hours or 0),
            team_members=team_members or 0,
        )

    async def approve(
        self, timesheet_id: UUID, actor_id: UUID, org_id: UUID, actor_role: str
    ) -> Timesheet:
        timesheet = await self._load_for_decision(
            timesheet_id, actor_id, org_id, actor_role, TimesheetStatus.APPROVED
        )

        await self._claim(
            timesheet,
            TimesheetStatus.APPROVED,
            approved_by_id=actor_id,
            approved_at=utcnow(),
        )

        # Accrue logged hours against each project's budget
        result = await self.session.execute(
            select(TimeEntry.project_id, TimeEntry.total_hours).where(
                TimeEntry.timesheet_id == timesheet.id
            )
        )
        for project_id, hours in result.all():
            await self.session.execute(
                update(Project)
                .where(Project.id == project_id, Project.organisation_id == org_id)
                .values(used_hours=Project.used_hours + hours)
                .execution_options(synchronize_session=False)
            )

        logger.info("Timesheet %s approved by %s", timesheet.id, actor_id)
        await self.notifier.create(
            org_id,
            timesheet.user_id,
            NotificationType.APPROVED.value,
            f"Your timesheet for week starting {timesheet.week_start_date.isoformat()} "
            "has been approved.",
        )
        return timesheet

    async def reject(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        org_id: UUID,
        reason: str,
        actor_role: str,
    ) -> Timesheet:
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")

        timesheet = await self._load_for_decision(
            timesheet_id, actor_id, org_id, actor_role, TimesheetStatus.REJECTED
        )
        await self._claim(timesheet, TimesheetStatus.REJECTED, rejected_reason=reason)

        logger.info("Timesheet %s rejected by %s", timesheet.id, actor_id)
        await self.notifier.create(
            org_id,
            timesheet.user_id,
            NotificationType.REJECTED.value,
            f"Your timesheet for week starting {timesheet.week_start_date.isoformat()} "
            f"was rejected. Reason: {reason}",
        )
        return timesheet

    async def _load_for_decision(
        self,
        timesheet_id: UUID,
        actor_id: UUID,
        org_id: UUID,
        actor_role: str,
        to_status: TimesheetStatus,
    ) -> Timesheet:
        # Scoped by org only: the actor is not the owner
        result = await self.session.execute(
            select(Timesheet)
            .where(Timesheet.id == timesheet_id, Timesheet.organisation_id == org_id)
            .with_for_update()
        )
        timesheet = result.scalar_one_or_none()
        if timesheet is None:
            raise NotFoundError("Timesheet")

        if timesheet.user_id == actor_id:
            action = "approve" if to_status == TimesheetStatus.APPROVED else "reject"
            raise SelfApprovalForbiddenError(action)

        visibility = policy_for(actor_role).approvals
        if visibility == Visibility.REPORTS:
            await self.graph.assert_is_direct_report(actor_id, timesheet.user_id, org_id)
        elif visibility != Visibility.ORG:
            raise ForbiddenError("Insufficient permissions")

        TimesheetStateMachine.validate_transition(timesheet.status, to_status)
        return timesheet

    async def _claim(
        self, timesheet: Timesheet, to_status: TimesheetStatus, **values: Any
    ) -> None:
        result = await self.session.execute(
            update(Timesheet)
            .where(
                Timesheet.id == timesheet.id,
                Timesheet.status == TimesheetStatus.SUBMITTED.value,
            )
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(timesheet)
        if result.rowcount == 0:
            raise InvalidTransitionError(
                timesheet.status, to_status.value, "Status changed concurrently"
            )

    async def _scope_conditions(
        self, org_id: UUID, actor_id: UUID, actor_role: str
    ) -> list[Any]:
        visibility = policy_for(actor_role).approvals
        if visibility == Visibility.NONE:
            raise ForbiddenError("Insufficient permissions")

        conditions: list[Any] = [Timesheet.organisation_id == org_id]
        actor = Actor(user_id=actor_id, org_id=org_id, role=actor_role)
        user_ids = await self.graph.visible_user_ids(actor, visibility)
        if user_ids is not None:
            conditions.append(Timesheet.user_id.in_(user_ids))
        return conditions
