"""Assignment graph: manager/employee and project/employee relations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.errors import (
    NotDirectReportError,
    NotFoundError,
    SelfManagerAssignmentError,
    ValidationError,
)
from timesheet_engine.models import (
    ManagerEmployee,
    Project,
    ProjectEmployee,
    ProjectManager,
    ProjectStatus,
    User,
    UserRole,
    UserStatus,
)
from timesheet_engine.services.scope import Actor, Visibility

logger = logging.getLogger(__name__)

MANAGING_ROLES = (UserRole.MANAGER.value, UserRole.ADMIN.value)


def _unique(ids: Iterable[UUID]) -> list[UUID]:
    """De-duplicate while keeping the caller's order."""
    return list(dict.fromkeys(ids))


class AssignmentGraph:
    """Answers "who may act on whom" and replaces assignment sets.

    Every replace_* operation is a full replace: prior edges for the subject
    are deleted and the new set inserted in the caller's transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Manager / employee
    # ------------------------------------------------------------------

    async def direct_report_ids_of(self, manager_id: UUID, org_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(ManagerEmployee.employee_id).where(
                ManagerEmployee.manager_id == manager_id,
                ManagerEmployee.organisation_id == org_id,
            )
        )
        return list(result.scalars().all())

    async def manager_ids_of(self, employee_id: UUID, org_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(ManagerEmployee.manager_id).where(
                ManagerEmployee.employee_id == employee_id,
                ManagerEmployee.organisation_id == org_id,
            )
        )
        return list(result.scalars().all())

    async def is_direct_report(
        self, manager_id: UUID, employee_id: UUID, org_id: UUID
    ) -> bool:
        """Missing edge means not a direct report."""
        result = await self.session.execute(
            select(ManagerEmployee.id)
            .where(
                ManagerEmployee.manager_id == manager_id,
                ManagerEmployee.employee_id == employee_id,
                ManagerEmployee.organisation_id == org_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def assert_is_direct_report(
        self, manager_id: UUID, employee_id: UUID, org_id: UUID
    ) -> None:
        if not await self.is_direct_report(manager_id, employee_id, org_id):
            raise NotDirectReportError()

    async def replace_managers(
        self, employee_id: UUID, manager_ids: Iterable[UUID], org_id: UUID
    ) -> list[UUID]:
        """Replace every manager of an employee.

        Raises SelfManagerAssignmentError if the employee is in the set and
        ValidationError if any id is not an active MANAGER/ADMIN in the org.
        """
        manager_ids = _unique(manager_ids)
        if employee_id in manager_ids:
            raise SelfManagerAssignmentError()

        await self._require_user(employee_id, org_id)

        if manager_ids:
            result = await self.session.execute(
                select(User.id).where(
                    User.id.in_(manager_ids),
                    User.organisation_id == org_id,
                    User.role.in_(MANAGING_ROLES),
                    User.status == UserStatus.ACTIVE.value,
                )
            )
            valid_ids = set(result.scalars().all())
            invalid = [m for m in manager_ids if m not in valid_ids]
            if invalid:
                raise ValidationError(
                    f"Invalid manager IDs: {', '.join(str(i) for i in invalid)}. "
                    "Must be active users with MANAGER or ADMIN role in the same organisation."
                )

        await self.session.execute(
            delete(ManagerEmployee).where(
                ManagerEmployee.employee_id == employee_id,
                ManagerEmployee.organisation_id == org_id,
            )
        )
        self.session.add_all(
            ManagerEmployee(organisation_id=org_id, manager_id=m, employee_id=employee_id)
            for m in manager_ids
        )
        await self.session.flush()

        logger.info(
            "Replaced managers of user %s: %d manager(s)", employee_id, len(manager_ids)
        )
        return manager_ids

    async def remove_all_managed_employees(self, manager_id: UUID, org_id: UUID) -> int:
        """Drop every edge where the user is the manager (e.g. after demotion)."""
        result = await self.session.execute(
            delete(ManagerEmployee).where(
                ManagerEmployee.manager_id == manager_id,
                ManagerEmployee.organisation_id == org_id,
            )
        )
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def assigned_project_ids_of(self, employee_id: UUID, org_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(ProjectEmployee.project_id).where(
                ProjectEmployee.employee_id == employee_id,
                ProjectEmployee.organisation_id == org_id,
            )
        )
        return list(result.scalars().all())

    async def is_assigned_to_project(
        self, employee_id: UUID, project_id: UUID, org_id: UUID
    ) -> bool:
        result = await self.session.execute(
            select(ProjectEmployee.id)
            .where(
                ProjectEmployee.employee_id == employee_id,
                ProjectEmployee.project_id == project_id,
                ProjectEmployee.organisation_id == org_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def managed_project_ids_of(self, manager_id: UUID, org_id: UUID) -> list[UUID]:
        result = await self.session.execute(
            select(ProjectManager.project_id).where(
                ProjectManager.manager_id == manager_id,
                ProjectManager.organisation_id == org_id,
            )
        )
        return list(result.scalars().all())

    async def replace_project_employees(
        self, project_id: UUID, employee_ids: Iterable[UUID], org_id: UUID
    ) -> list[UUID]:
        """Replace the employees assigned to a project."""
        employee_ids = _unique(employee_ids)
        await self._require_active_project(project_id, org_id)
        await self._require_active_users(employee_ids, org_id)

        await self.session.execute(
            delete(ProjectEmployee).where(
                ProjectEmployee.project_id == project_id,
                ProjectEmployee.organisation_id == org_id,
            )
        )
        self.session.add_all(
            ProjectEmployee(organisation_id=org_id, project_id=project_id, employee_id=e)
            for e in employee_ids
        )
        await self.session.flush()

        logger.info(
            "Replaced employees of project %s: %d employee(s)", project_id, len(employee_ids)
        )
        return employee_ids

    async def replace_employee_projects(
        self, employee_id: UUID, project_ids: Iterable[UUID], org_id: UUID
    ) -> list[UUID]:
        """Replace the projects an employee is assigned to."""
        project_ids = _unique(project_ids)
        await self._require_active_users([employee_id], org_id)
        if project_ids:
            result = await self.session.execute(
                select(Project.id).where(
                    Project.id.in_(project_ids),
                    Project.organisation_id == org_id,
                    Project.status == ProjectStatus.ACTIVE.value,
                )
            )
            valid_ids = set(result.scalars().all())
            invalid = [p for p in project_ids if p not in valid_ids]
            if invalid:
                raise ValidationError(
                    f"Invalid project IDs: {', '.join(str(i) for i in invalid)}. "
                    "Must be active projects in the same organisation."
                )

        await self.session.execute(
            delete(ProjectEmployee).where(
                ProjectEmployee.employee_id == employee_id,
                ProjectEmployee.organisation_id == org_id,
            )
        )
        self.session.add_all(
            ProjectEmployee(organisation_id=org_id, project_id=p, employee_id=employee_id)
            for p in project_ids
        )
        await self.session.flush()
        return project_ids

    async def replace_project_managers(
        self, project_id: UUID, manager_ids: Iterable[UUID], org_id: UUID
    ) -> list[UUID]:
        """Replace the managers of a project."""
        manager_ids = _unique(manager_ids)
        await self._require_active_project(project_id, org_id)
        await self._require_active_users(manager_ids, org_id, roles=MANAGING_ROLES)

        await self.session.execute(
            delete(ProjectManager).where(
                ProjectManager.project_id == project_id,
                ProjectManager.organisation_id == org_id,
            )
        )
        self.session.add_all(
            ProjectManager(organisation_id=org_id, project_id=project_id, manager_id=m)
            for m in manager_ids
        )
        await self.session.flush()
        return manager_ids

    # ------------------------------------------------------------------
    # Scope resolution
    # ------------------------------------------------------------------

    async def visible_user_ids(self, actor: Actor, visibility: Visibility) -> list[UUID] | None:
        """User ids an actor may see under a visibility rule.

        Returns None for organisation-wide visibility (no user filter).
        """
        if visibility == Visibility.ORG:
            return None
        if visibility == Visibility.SELF:
            return [actor.user_id]
        if visibility == Visibility.REPORTS:
            return await self.direct_report_ids_of(actor.user_id, actor.org_id)
        if visibility == Visibility.TEAM:
            reports = await self.direct_report_ids_of(actor.user_id, actor.org_id)
            return _unique([actor.user_id, *reports])
        return []

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    async def _require_user(self, user_id: UUID, org_id: UUID) -> User:
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.organisation_id == org_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User")
        return user

    async def _require_active_project(self, project_id: UUID, org_id: UUID) -> Project:
        result = await self.session.execute(
            select(Project).where(Project.id == project_id, Project.organisation_id == org_id)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project")
        if not project.is_active:
            raise ValidationError("Assignments can only be changed on active projects")
        return project

    async def _require_active_users(
        self,
        user_ids: list[UUID],
        org_id: UUID,
        roles: tuple[str, ...] | None = None,
    ) -> None:
        if not user_ids:
            return
        query = select(User.id).where(
            User.id.in_(user_ids),
            User.organisation_id == org_id,
            User.status == UserStatus.ACTIVE.value,
        )
        if roles is not None:
            query = query.where(User.role.in_(roles))
        result = await self.session.execute(query)
        valid_ids = set(result.scalars().all())
        invalid = [u for u in user_ids if u not in valid_ids]
        if invalid:
            raise ValidationError(
                f"Invalid user IDs: {', '.join(str(i) for i in invalid)}. "
                "Must be active users in the same organisation."
            )
