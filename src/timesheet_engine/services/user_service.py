"""Team and user administration."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.errors import ConflictError, ForbiddenError, NotFoundError
from timesheet_engine.models import User, UserRole, UserStatus
from timesheet_engine.schemas import UserCreate, UserUpdate
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.scope import Actor

logger = logging.getLogger(__name__)


class UserService:
    """User lifecycle for MANAGER and ADMIN actors.

    A MANAGER may only create or promote to EMPLOYEE and may only act on
    their direct reports. Users are never removed, only deactivated.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.graph = AssignmentGraph(session)

    async def get_user(self, user_id: UUID, org_id: UUID) -> User:
        result = await self.session.execute(
            select(User).where(User.id == user_id, User.organisation_id == org_id)
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User")
        return user

    async def create_user(self, actor: Actor, data: UserCreate) -> User:
        self._require_privileged(actor)
        if actor.is_manager and data.role != UserRole.EMPLOYEE:
            raise ForbiddenError("Managers can only create employees")

        existing = await self.session.scalar(select(User.id).where(User.email == data.email))
        if existing is not None:
            raise ConflictError("Email address is already in use")

        user = User(
            organisation_id=actor.org_id,
            name=data.name,
            email=data.email,
            role=data.role.value,
            status=UserStatus.ACTIVE.value,
            department=data.department,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(user)
        except IntegrityError as exc:
            raise ConflictError("Email address is already in use") from exc

        # A creating manager becomes the new user's manager unless others are named
        manager_ids = data.manager_ids
        if actor.is_manager and not manager_ids:
            manager_ids = [actor.user_id]
        if manager_ids:
            await self.graph.replace_managers(user.id, manager_ids, actor.org_id)
        if data.project_ids:
            await self.graph.replace_employee_projects(user.id, data.project_ids, actor.org_id)

        logger.info("User %s created by %s with role %s", user.id, actor.user_id, user.role)
        return user

    async def update_user(self, actor: Actor, user_id: UUID, patch: UserUpdate) -> User:
        self._require_privileged(actor)
        user = await self.get_user(user_id, actor.org_id)
        await self._require_can_manage(actor, user_id)

        if actor.is_manager and patch.role is not None and patch.role != UserRole.EMPLOYEE:
            raise ForbiddenError("Managers can only assign the Employee role")

        previous_role = user.role
        for field in ("name", "department", "status"):
            if field in patch.model_fields_set and getattr(patch, field) is not None:
                setattr(user, field, getattr(patch, field))
        if patch.role is not None:
            user.role = patch.role.value
        await self.session.flush()

        if user.role == UserRole.EMPLOYEE.value and previous_role != UserRole.EMPLOYEE.value:
            removed = await self.graph.remove_all_managed_employees(user.id, actor.org_id)
            logger.info("User %s demoted, %d managed edge(s) removed", user.id, removed)

        if patch.manager_ids is not None:
            await self.graph.replace_managers(user.id, patch.manager_ids, actor.org_id)
        if patch.project_ids is not None:
            await self.graph.replace_employee_projects(user.id, patch.project_ids, actor.org_id)

        return user

    async def deactivate_user(self, actor: Actor, user_id: UUID) -> User:
        """Soft delete: the row stays, with status 'inactive'."""
        self._require_privileged(actor)
        user = await self.get_user(user_id, actor.org_id)
        await self._require_can_manage(actor, user_id)

        user.status = UserStatus.INACTIVE.value
        await self.session.flush()
        logger.info("User %s deactivated by %s", user.id, actor.user_id)
        return user

    def _require_privileged(self, actor: Actor) -> None:
        if actor.is_employee:
            raise ForbiddenError("Insufficient permissions")

    async def _require_can_manage(self, actor: Actor, user_id: UUID) -> None:
        if actor.is_admin:
            return
        await self.graph.assert_is_direct_report(actor.user_id, user_id, actor.org_id)
