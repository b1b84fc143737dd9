"""Project administration."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.errors import ConflictError, ForbiddenError, NotFoundError
from timesheet_engine.models import Project, ProjectEmployee, ProjectManager, TimeEntry
from timesheet_engine.schemas import ProjectCreate, ProjectUpdate
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.scope import Actor

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.graph = AssignmentGraph(session)

    async def get_project(self, project_id: UUID, org_id: UUID) -> Project:
        result = await self.session.execute(
            select(Project)
            .where(Project.id == project_id, Project.organisation_id == org_id)
            .options(selectinload(Project.managers), selectinload(Project.employees))
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project")
        return project

    async def create_project(self, actor: Actor, data: ProjectCreate) -> Project:
        """Create a project; a creating MANAGER is always one of its managers."""
        if actor.is_employee:
            raise ForbiddenError("Insufficient permissions")
        await self._require_free_code(actor.org_id, data.code)

        project = Project(
            organisation_id=actor.org_id,
            code=data.code,
            name=data.name,
            client=data.client,
            budget_hours=data.budget_hours,
            status=data.status,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(project)
        except IntegrityError as exc:
            raise ConflictError(self._code_taken(data.code)) from exc

        manager_ids = list(data.manager_ids or [])
        if actor.is_manager and actor.user_id not in manager_ids:
            manager_ids.insert(0, actor.user_id)
        if manager_ids:
            await self.graph.replace_project_managers(project.id, manager_ids, actor.org_id)
        if data.employee_ids:
            await self.graph.replace_project_employees(
                project.id, data.employee_ids, actor.org_id
            )

        logger.info("Project %s (%s) created by %s", project.id, project.code, actor.user_id)
        return await self.get_project(project.id, actor.org_id)

    async def update_project(
        self, actor: Actor, project_id: UUID, patch: ProjectUpdate
    ) -> Project:
        """Apply a partial update; manager/employee sets are replaced when given."""
        project = await self._require_manageable(actor, project_id)

        if patch.code is not None and patch.code != project.code:
            await self._require_free_code(actor.org_id, patch.code, exclude_id=project.id)

        for field in ("code", "name", "client", "budget_hours", "status"):
            value = getattr(patch, field)
            if value is not None:
                setattr(project, field, value)
        try:
            async with self.session.begin_nested():
                await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(self._code_taken(patch.code or project.code)) from exc

        if patch.manager_ids is not None:
            await self.graph.replace_project_managers(project.id, patch.manager_ids, actor.org_id)
        if patch.employee_ids is not None:
            await self.graph.replace_project_employees(
                project.id, patch.employee_ids, actor.org_id
            )

        self.session.expire(project, ["managers", "employees"])
        return await self.get_project(project.id, actor.org_id)

    async def delete_project(self, actor: Actor, project_id: UUID) -> None:
        """Remove a project that has no time logged against it."""
        if not actor.is_admin:
            raise ForbiddenError("Only administrators can delete projects")
        project = await self.get_project(project_id, actor.org_id)

        logged = await self.session.scalar(
            select(func.count(TimeEntry.id)).where(TimeEntry.project_id == project.id)
        )
        if logged:
            raise ConflictError("Project has logged time and cannot be deleted")

        await self.session.execute(
            delete(ProjectManager)
            .where(ProjectManager.project_id == project.id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            delete(ProjectEmployee)
            .where(ProjectEmployee.project_id == project.id)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(
            delete(Project)
            .where(Project.id == project.id)
            .execution_options(synchronize_session=False)
        )
        self.session.expunge(project)
        logger.info("Project %s deleted by %s", project_id, actor.user_id)

    async def _require_manageable(self, actor: Actor, project_id: UUID) -> Project:
        if actor.is_employee:
            raise ForbiddenError("Insufficient permissions")
        project = await self.get_project(project_id, actor.org_id)
        if actor.is_manager:
            managed = await self.graph.managed_project_ids_of(actor.user_id, actor.org_id)
            if project.id not in managed:
                raise ForbiddenError("You can only manage projects assigned to you")
        return project

    async def _require_free_code(
        self, org_id: UUID, code: str, exclude_id: UUID | None = None
    ) -> None:
        query = select(Project.id).where(Project.organisation_id == org_id, Project.code == code)
        if exclude_id is not None:
            query = query.where(Project.id != exclude_id)
        if await self.session.scalar(query) is not None:
            raise ConflictError(self._code_taken(code))

    @staticmethod
    def _code_taken(code: str) -> str:
        return f'Project code "{code}" already exists in this organisation'
