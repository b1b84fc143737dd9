"""Copy the previous week's entries into a new draft."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.config import CopyWeekPolicy, get_settings
from timesheet_engine.errors import (
    ConflictError,
    FeatureDisabledError,
    ImmutableTimesheetError,
    NotFoundError,
)
from timesheet_engine.models import DAYS, TimeEntry, Timesheet, UserRole
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.settings_service import SettingsService
from timesheet_engine.services.state_machine import TimesheetStatus
from timesheet_engine.services.timesheet_service import (
    find_week_timesheet,
    insert_timesheet,
    resolve_week,
)
from timesheet_engine.services.totals import ZERO, recalculate_totals

logger = logging.getLogger(__name__)

COPY_SOURCE_STATUSES = (TimesheetStatus.APPROVED.value, TimesheetStatus.SUBMITTED.value)


@dataclass
class CopyResult:
    timesheet: Timesheet
    skipped_count: int = 0


class WeekCopyService:
    """Clones the latest SUBMITTED/APPROVED week into a target week.

    Whether hours travel with the copy, and whether an existing DRAFT may be
    replaced, is decided by the ``CopyWeekPolicy`` of the deployment.
    """

    def __init__(self, session: AsyncSession, policy: CopyWeekPolicy | None = None):
        self.session = session
        self.policy = policy or get_settings().copy_week_policy
        self.settings_service = SettingsService(session)
        self.graph = AssignmentGraph(session)

    async def copy_previous_week(
        self,
        owner_id: UUID,
        org_id: UUID,
        target_week_start_input: str | date | datetime,
        actor_role: str,
        force: bool = False,
    ) -> CopyResult:
        settings = await self.settings_service.get_effective(org_id)
        if not settings.allow_copy_week:
            raise FeatureDisabledError("Copy Previous Week feature is disabled")

        source = await self._latest_source(owner_id, org_id)
        start, end = resolve_week(target_week_start_input, settings)

        existing = await find_week_timesheet(self.session, owner_id, org_id, start)
        if existing is not None:
            if not (force and self.policy.allow_overwrite):
                raise ConflictError("A timesheet already exists for the target week")
            # Hold the row so a concurrent submit cannot land between check and replace
            existing = await find_week_timesheet(
                self.session, owner_id, org_id, start, for_update=True
            )
            if existing is not None and existing.status != TimesheetStatus.DRAFT.value:
                raise ImmutableTimesheetError(
                    f"Cannot overwrite a {existing.status.lower()} timesheet"
                )

        entries = list(source.entries)
        skipped_count = 0
        if actor_role == UserRole.EMPLOYEE:
            assigned = set(await self.graph.assigned_project_ids_of(owner_id, org_id))
            kept = [e for e in entries if e.project_id in assigned]
            skipped_count = len(entries) - len(kept)
            entries = kept

        if existing is not None:
            target = existing
            await self.session.execute(
                delete(TimeEntry).where(TimeEntry.timesheet_id == target.id)
            )
        else:
            target = await insert_timesheet(
                self.session,
                Timesheet(
                    organisation_id=org_id,
                    user_id=owner_id,
                    week_start_date=start,
                    week_end_date=end,
                    status=TimesheetStatus.DRAFT.value,
                ),
            )

        self.session.add_all(self._clone(entry, target.id) for entry in entries)
        await recalculate_totals(self.session, target)

        logger.info(
            "Copied week %s into %s for user %s: %d entr(ies), %d skipped",
            source.week_start_date,
            start,
            owner_id,
            len(entries),
            skipped_count,
        )
        return CopyResult(timesheet=target, skipped_count=skipped_count)

    async def _latest_source(self, owner_id: UUID, org_id: UUID) -> Timesheet:
        result = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.user_id == owner_id,
                Timesheet.organisation_id == org_id,
                Timesheet.status.in_(COPY_SOURCE_STATUSES),
            )
            .options(selectinload(Timesheet.entries))
            .order_by(Timesheet.week_start_date.desc())
            .limit(1)
        )
        source = result.scalar_one_or_none()
        if source is None:
            raise NotFoundError("Previous submitted or approved timesheet")
        return source

    def _clone(self, entry: TimeEntry, timesheet_id: UUID) -> TimeEntry:
        values = {}
        for day in DAYS:
            values[f"{day}_desc"] = entry.description_for(day)
            if self.policy.copy_hours:
                values[f"{day}_hours"] = getattr(entry, f"{day}_hours")
            else:
                values[f"{day}_hours"] = None

        return TimeEntry(
            timesheet_id=timesheet_id,
            project_id=entry.project_id,
            billable=entry.billable,
            total_hours=entry.total_hours if self.policy.copy_hours else ZERO,
            **values,
        )
