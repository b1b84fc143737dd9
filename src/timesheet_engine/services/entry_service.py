"""Time entry operations with total recomputation."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.errors import (
    DescriptionRequiredError,
    MaxHoursExceededError,
    NotAssignedToProjectError,
    NotFoundError,
)
from timesheet_engine.models import DAYS, Project, TimeEntry, Timesheet, UserRole
from timesheet_engine.schemas import EntryCreate, EntryUpdate
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.settings_service import EffectiveSettings, SettingsService
from timesheet_engine.services.state_machine import TimesheetStateMachine
from timesheet_engine.services.timesheet_service import get_owned_timesheet
from timesheet_engine.services.totals import entry_total, recalculate_totals

logger = logging.getLogger(__name__)


def check_descriptions(values: Mapping[str, Any], settings: EffectiveSettings) -> None:
    """Every day with hours needs a description when the org requires one."""
    if not settings.mandatory_desc:
        return
    for day in DAYS:
        hours = values.get(f"{day}_hours") or 0
        desc = values.get(f"{day}_desc")
        if hours > 0 and not (desc and desc.strip()):
            raise DescriptionRequiredError()


def check_day_cap(values: Mapping[str, Any], settings: EffectiveSettings) -> None:
    max_per_day = settings.max_hours_per_day
    for day in DAYS:
        hours = values.get(f"{day}_hours")
        if hours is not None and Decimal(hours) > max_per_day:
            raise MaxHoursExceededError(
                f"Cannot log more than {_fmt(max_per_day)} hours per day"
            )


def _fmt(value: Decimal) -> str:
    return f"{value.normalize():f}"


def _entry_day_values(entry: TimeEntry) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for day in DAYS:
        values[f"{day}_hours"] = getattr(entry, f"{day}_hours")
        values[f"{day}_desc"] = getattr(entry, f"{day}_desc")
    return values


class TimeEntryService:
    """Entries under an owner's timesheet.

    Mutations are only accepted while the parent is DRAFT or REJECTED, and
    every mutation recomputes the parent's total and billable hours.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings_service = SettingsService(session)
        self.graph = AssignmentGraph(session)

    async def list(self, timesheet_id: UUID, owner_id: UUID, org_id: UUID) -> list[TimeEntry]:
        await get_owned_timesheet(self.session, timesheet_id, owner_id, org_id)
        result = await self.session.execute(
            select(TimeEntry)
            .where(TimeEntry.timesheet_id == timesheet_id)
            .options(selectinload(TimeEntry.project))
            .order_by(TimeEntry.created_at.asc())
        )
        return list(result.scalars().all())

    async def create(
        self,
        timesheet_id: UUID,
        owner_id: UUID,
        org_id: UUID,
        data: EntryCreate,
        actor_role: str,
    ) -> TimeEntry:
        timesheet = await self._mutable_timesheet(timesheet_id, owner_id, org_id)
        settings = await self.settings_service.get_effective(org_id)

        values = data.day_values()
        check_descriptions(values, settings)
        await self._require_project(data.project_id, org_id)
        if actor_role == UserRole.EMPLOYEE:
            await self._require_assignment(owner_id, data.project_id, org_id)
        check_day_cap(values, settings)

        entry = TimeEntry(
            timesheet_id=timesheet.id,
            project_id=data.project_id,
            billable=data.billable,
            total_hours=entry_total(values),
            **values,
        )
        self.session.add(entry)

        await self._recalculate(timesheet, settings)
        return entry

    async def update(
        self,
        timesheet_id: UUID,
        entry_id: UUID,
        owner_id: UUID,
        org_id: UUID,
        patch: EntryUpdate,
        actor_role: str,
    ) -> TimeEntry:
        """Merge supplied fields over the stored entry and recompute totals."""
        timesheet = await self._mutable_timesheet(timesheet_id, owner_id, org_id)
        entry = await self._get_entry(timesheet.id, entry_id)
        settings = await self.settings_service.get_effective(org_id)

        merged = _entry_day_values(entry)
        merged.update(patch.day_values())
        check_descriptions(merged, settings)

        changing_project = (
            patch.project_id is not None and patch.project_id != entry.project_id
        )
        if changing_project:
            await self._require_project(patch.project_id, org_id)
            if actor_role == UserRole.EMPLOYEE:
                await self._require_assignment(owner_id, patch.project_id, org_id)
        check_day_cap(merged, settings)

        for field, value in merged.items():
            setattr(entry, field, value)
        if changing_project:
            entry.project_id = patch.project_id
        if patch.billable is not None:
            entry.billable = patch.billable
        entry.total_hours = entry_total(merged)

        await self._recalculate(timesheet, settings)
        return entry

    async def delete(
        self, timesheet_id: UUID, entry_id: UUID, owner_id: UUID, org_id: UUID
    ) -> None:
        timesheet = await self._mutable_timesheet(timesheet_id, owner_id, org_id)
        entry = await self._get_entry(timesheet.id, entry_id)

        await self.session.execute(delete(TimeEntry).where(TimeEntry.id == entry.id))
        self.session.expunge(entry)
        await recalculate_totals(self.session, timesheet)

    async def _mutable_timesheet(
        self, timesheet_id: UUID, owner_id: UUID, org_id: UUID
    ) -> Timesheet:
        timesheet = await get_owned_timesheet(
            self.session, timesheet_id, owner_id, org_id, for_update=True
        )
        TimesheetStateMachine.ensure_entries_mutable(timesheet.status)
        return timesheet

    async def _get_entry(self, timesheet_id: UUID, entry_id: UUID) -> TimeEntry:
        result = await self.session.execute(
            select(TimeEntry).where(
                TimeEntry.id == entry_id, TimeEntry.timesheet_id == timesheet_id
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise NotFoundError("TimeEntry")
        return entry

    async def _require_project(self, project_id: UUID, org_id: UUID) -> Project:
        result = await self.session.execute(
            select(Project).where(Project.id == project_id, Project.organisation_id == org_id)
        )
        project = result.scalar_one_or_none()
        if project is None:
            raise NotFoundError("Project")
        return project

    async def _require_assignment(self, employee_id: UUID, project_id: UUID, org_id: UUID) -> None:
        if not await self.graph.is_assigned_to_project(employee_id, project_id, org_id):
            raise NotAssignedToProjectError()

    async def _recalculate(self, timesheet: Timesheet, settings: EffectiveSettings) -> None:
        await recalculate_totals(self.session, timesheet)
        cap = settings.max_hours_per_week
        if cap is not None and timesheet.total_hours > cap:
            raise MaxHoursExceededError(f"Cannot log more than {_fmt(cap)} hours per week")
