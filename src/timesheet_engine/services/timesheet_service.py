"""Timesheet lifecycle: create, edit, delete and submit."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.errors import (
    BackdatingNotAllowedError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from timesheet_engine.models import TimeEntry, Timesheet
from timesheet_engine.schemas import TimesheetUpdate
from timesheet_engine.services.pagination import Page, paginate
from timesheet_engine.services.settings_service import EffectiveSettings, SettingsService
from timesheet_engine.services.state_machine import TimesheetStateMachine, TimesheetStatus
from timesheet_engine.services.totals import recalculate_totals
from timesheet_engine.utils.dates import is_in_past, parse_date, utcnow, week_end, week_start

logger = logging.getLogger(__name__)

SUBMITTABLE = (TimesheetStatus.DRAFT.value, TimesheetStatus.REJECTED.value)


def resolve_week(
    value: str | date | datetime, settings: EffectiveSettings
) -> tuple[date, datetime]:
    """Normalise any date in a week to that week's (start, end) for the org."""
    start = week_start(parse_date(value), settings.work_week_start)
    return start, week_end(start)


async def get_owned_timesheet(
    session: AsyncSession,
    timesheet_id: UUID,
    owner_id: UUID,
    org_id: UUID,
    *,
    for_update: bool = False,
    load_entries: bool = False,
) -> Timesheet:
    """Load a timesheet by (id, owner, org).

    A foreign or cross-tenant id is reported exactly like a missing one.
    """
    query = select(Timesheet).where(
        Timesheet.id == timesheet_id,
        Timesheet.user_id == owner_id,
        Timesheet.organisation_id == org_id,
    )
    if load_entries:
        query = query.options(selectinload(Timesheet.entries).selectinload(TimeEntry.project))
    if for_update:
        query = query.with_for_update()

    result = await session.execute(query)
    timesheet = result.scalar_one_or_none()
    if timesheet is None:
        raise NotFoundError("Timesheet")
    return timesheet


async def find_week_timesheet(
    session: AsyncSession,
    owner_id: UUID,
    org_id: UUID,
    start: date,
    *,
    for_update: bool = False,
) -> Timesheet | None:
    query = select(Timesheet).where(
        Timesheet.user_id == owner_id,
        Timesheet.organisation_id == org_id,
        Timesheet.week_start_date == start,
    )
    if for_update:
        # Locked reads must see the committed status, not the identity map's copy
        query = query.with_for_update().execution_options(populate_existing=True)

    result = await session.execute(query)
    return result.scalar_one_or_none()


async def insert_timesheet(session: AsyncSession, timesheet: Timesheet) -> Timesheet:
    """Insert under a savepoint; the unique (user, org, week) key is the backstop."""
    try:
        async with session.begin_nested():
            session.add(timesheet)
    except IntegrityError as exc:
        raise ConflictError("A timesheet already exists for this week") from exc
    return timesheet


class TimesheetService:
    """Owner-side timesheet operations.

    Every lookup is scoped by (id, owner, org); services flush but leave the
    commit to the caller's unit of work.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings_service = SettingsService(session)

    async def list_own(
        self,
        owner_id: UUID,
        org_id: UUID,
        page: int | None = None,
        limit: int | None = None,
    ) -> Page[Timesheet]:
        query = (
            select(Timesheet)
            .where(Timesheet.user_id == owner_id, Timesheet.organisation_id == org_id)
            .order_by(Timesheet.week_start_date.desc())
        )
        return await paginate(self.session, query, page, limit)

    async def get(self, timesheet_id: UUID, owner_id: UUID, org_id: UUID) -> Timesheet:
        """Timesheet with its entries and their projects."""
        return await get_owned_timesheet(
            self.session, timesheet_id, owner_id, org_id, load_entries=True
        )

    async def create(
        self,
        owner_id: UUID,
        org_id: UUID,
        week_start_input: str | date | datetime,
        today: date | None = None,
    ) -> Timesheet:
        """Create a DRAFT timesheet for the week containing the given date.

        Raises:
            BackdatingNotAllowedError: the week lies in the past and the
                organisation disallows backdating.
            ConflictError: the owner already has a timesheet for that week.
        """
        settings = await self.settings_service.get_effective(org_id)
        start, end = resolve_week(week_start_input, settings)

        if not settings.allow_backdated and is_in_past(start, today):
            raise BackdatingNotAllowedError()

        if await find_week_timesheet(self.session, owner_id, org_id, start) is not None:
            raise ConflictError("A timesheet already exists for this week")

        timesheet = await insert_timesheet(
            self.session,
            Timesheet(
                organisation_id=org_id,
                user_id=owner_id,
                week_start_date=start,
                week_end_date=end,
                status=TimesheetStatus.DRAFT.value,
            ),
        )
        logger.info("Created timesheet %s for user %s week %s", timesheet.id, owner_id, start)
        return timesheet

    async def update(
        self,
        timesheet_id: UUID,
        owner_id: UUID,
        org_id: UUID,
        patch: TimesheetUpdate,
        today: date | None = None,
    ) -> Timesheet:
        """Move a DRAFT timesheet to another week."""
        timesheet = await get_owned_timesheet(
            self.session, timesheet_id, owner_id, org_id, for_update=True
        )
        TimesheetStateMachine.ensure_fields_mutable(timesheet.status)

        if patch.week_start_date is None:
            return timesheet

        settings = await self.settings_service.get_effective(org_id)
        start, end = resolve_week(patch.week_start_date, settings)
        if start == timesheet.week_start_date:
            return timesheet

        if not settings.allow_backdated and is_in_past(start, today):
            raise BackdatingNotAllowedError()
        if await find_week_timesheet(self.session, owner_id, org_id, start) is not None:
            raise ConflictError("A timesheet already exists for this week")

        timesheet.week_start_date = start
        timesheet.week_end_date = end
        try:
            async with self.session.begin_nested():
                await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError("A timesheet already exists for this week") from exc
        return timesheet

    async def delete(self, timesheet_id: UUID, owner_id: UUID, org_id: UUID) -> None:
        timesheet = await get_owned_timesheet(
            self.session, timesheet_id, owner_id, org_id, for_update=True
        )
        TimesheetStateMachine.ensure_fields_mutable(timesheet.status)

        await self.session.execute(delete(TimeEntry).where(TimeEntry.timesheet_id == timesheet.id))
        await self.session.execute(delete(Timesheet).where(Timesheet.id == timesheet.id))
        self.session.expunge(timesheet)
        logger.info("Deleted timesheet %s", timesheet_id)

    async def submit(self, timesheet_id: UUID, owner_id: UUID, org_id: UUID) -> Timesheet:
        """DRAFT/REJECTED → SUBMITTED, recomputing totals first."""
        timesheet = await get_owned_timesheet(
            self.session, timesheet_id, owner_id, org_id, for_update=True
        )
        TimesheetStateMachine.validate_transition(timesheet.status, TimesheetStatus.SUBMITTED)

        await recalculate_totals(self.session, timesheet)
        await self._claim(
            timesheet,
            TimesheetStatus.SUBMITTED,
            SUBMITTABLE,
            submitted_at=utcnow(),
            rejected_reason=None,
        )
        logger.info("Timesheet %s submitted by user %s", timesheet_id, owner_id)
        return timesheet

    async def _claim(
        self,
        timesheet: Timesheet,
        to_status: TimesheetStatus,
        from_statuses: tuple[str, ...],
        **values: Any,
    ) -> None:
        """Conditional status update; fails if another writer moved the row first."""
        from_status = timesheet.status
        result = await self.session.execute(
            update(Timesheet)
            .where(Timesheet.id == timesheet.id, Timesheet.status.in_(from_statuses))
            .values(status=to_status.value, **values)
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(timesheet)
        if result.rowcount == 0:
            raise InvalidTransitionError(
                timesheet.status or from_status,
                to_status.value,
                "Status changed concurrently",
            )
