"""Role-scoped list queries."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.models import Project, TimeEntry, Timesheet, User
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.pagination import Page, paginate
from timesheet_engine.services.scope import Actor, Visibility, policy_for


class ScopedQueryService:
    """Read-side filters driven by ``ROLE_POLICIES``.

    Every list returns a page and the total under the same filter, read in
    the session's current transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.graph = AssignmentGraph(session)

    async def list_timesheets(
        self,
        actor: Actor,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
        user_id: UUID | None = None,
    ) -> Page[Timesheet]:
        """Timesheets visible to the actor, newest week first.

        A ``user_id`` outside the actor's scope yields an empty page.
        """
        conditions = await self._user_conditions(
            actor, policy_for(actor.role).timesheets, Timesheet.user_id
        )
        conditions.append(Timesheet.organisation_id == actor.org_id)
        if status:
            conditions.append(Timesheet.status == status)
        if user_id is not None:
            conditions.append(Timesheet.user_id == user_id)

        query = (
            select(Timesheet)
            .where(*conditions)
            .options(
                selectinload(Timesheet.user),
                selectinload(Timesheet.entries).selectinload(TimeEntry.project),
            )
            .order_by(Timesheet.week_start_date.desc(), Timesheet.created_at.desc())
        )
        return await paginate(self.session, query, page, limit)

    async def list_users(
        self,
        actor: Actor,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
    ) -> Page[User]:
        conditions = await self._user_conditions(actor, policy_for(actor.role).users, User.id)
        conditions.append(User.organisation_id == actor.org_id)
        if status:
            conditions.append(User.status == status)

        query = select(User).where(*conditions).order_by(User.name.asc(), User.email.asc())
        return await paginate(self.session, query, page, limit)

    async def list_projects(
        self,
        actor: Actor,
        page: int | None = None,
        limit: int | None = None,
        status: str | None = None,
    ) -> Page[Project]:
        conditions: list[Any] = [Project.organisation_id == actor.org_id]
        visibility = policy_for(actor.role).projects
        if visibility == Visibility.ASSIGNED:
            project_ids = await self.graph.assigned_project_ids_of(actor.user_id, actor.org_id)
            conditions.append(Project.id.in_(project_ids))
        elif visibility == Visibility.MANAGED:
            project_ids = await self.graph.managed_project_ids_of(actor.user_id, actor.org_id)
            conditions.append(Project.id.in_(project_ids))
        elif visibility != Visibility.ORG:
            conditions.append(Project.id.in_([]))
        if status:
            conditions.append(Project.status == status)

        query = (
            select(Project)
            .where(*conditions)
            .options(selectinload(Project.managers), selectinload(Project.employees))
            .order_by(Project.code.asc())
        )
        return await paginate(self.session, query, page, limit)

    async def _user_conditions(
        self, actor: Actor, visibility: Visibility, column: Any
    ) -> list[Any]:
        user_ids = await self.graph.visible_user_ids(actor, visibility)
        if user_ids is None:
            return []
        return [column.in_(user_ids)]
