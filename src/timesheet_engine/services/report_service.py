"""Report data producers.

These build plain data for export collaborators (CSV, spreadsheet, PDF);
rendering is not done here.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from timesheet_engine.errors import ForbiddenError, NotFoundError, ValidationError
from timesheet_engine.models import DAYS, Holiday, TimeEntry, Timesheet, User
from timesheet_engine.schemas import ReportFilters
from timesheet_engine.services.assignment_service import AssignmentGraph
from timesheet_engine.services.scope import Actor, policy_for
from timesheet_engine.services.settings_service import SettingsService
from timesheet_engine.services.totals import ZERO

LEAVE_MARKER = "leave"


@dataclass
class ReportAggregates:
    total_hours: Decimal = ZERO
    billable_hours: Decimal = ZERO
    non_billable_hours: Decimal = ZERO
    utilization: int = 0
    timesheet_count: int = 0


@dataclass
class ReportTimesheet:
    timesheet: Timesheet
    entries: list[TimeEntry]


@dataclass
class ReportResult:
    timesheets: list[ReportTimesheet]
    aggregates: ReportAggregates


@dataclass
class MonthlyDayRow:
    date: date
    label: str
    day: str
    project: str
    task: str
    time: Decimal
    overtime: Decimal
    total_time: Decimal
    is_holiday: bool = False
    holiday_name: str | None = None
    is_leave: bool = False
    is_weekend: bool = False


@dataclass
class MonthlyTimesheetData:
    employee_name: str
    employee_id: UUID
    department: str
    month: str
    month_full: str
    days: list[MonthlyDayRow] = field(default_factory=list)
    total_hours: Decimal = ZERO
    total_overtime: Decimal = ZERO
    holiday_count: int = 0
    leave_count: int = 0


def _is_leave(entry: TimeEntry) -> bool:
    """Leave is logged against projects whose name or code mentions it."""
    project = entry.project
    if project is None:
        return False
    return LEAVE_MARKER in (project.name or "").lower() or LEAVE_MARKER in (
        project.code or ""
    ).lower()


def _holiday_names(holidays: list[Holiday], year: int, month: int) -> dict[date, str]:
    names: dict[date, str] = {}
    for holiday in holidays:
        day = holiday.holiday_date
        if holiday.recurring:
            if day.month != month:
                continue
            try:
                names[date(year, month, day.day)] = holiday.name
            except ValueError:
                # 29 February outside a leap year
                continue
        elif day.year == year and day.month == month:
            names[day] = holiday.name
    return names


class ReportService:
    """Role-scoped report data, following the same visibility as timesheet lists."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.graph = AssignmentGraph(session)
        self.settings_service = SettingsService(session)

    async def generate_report(self, actor: Actor, filters: ReportFilters) -> ReportResult:
        """Timesheets whose week starts inside the date range, with aggregates.

        With a project filter only that project's entries are included and
        the aggregates cover those entries alone.
        """
        if filters.date_from > filters.date_to:
            raise ValidationError("date_from must not be after date_to")

        allowed = await self._allowed_user_ids(actor)
        if filters.user_id is not None and allowed is not None and filters.user_id not in allowed:
            raise ForbiddenError("You can only view reports for yourself or your direct reports")

        conditions = [
            Timesheet.organisation_id == actor.org_id,
            Timesheet.week_start_date >= filters.date_from,
            Timesheet.week_start_date <= filters.date_to,
        ]
        if filters.user_id is not None:
            conditions.append(Timesheet.user_id == filters.user_id)
        elif allowed is not None:
            conditions.append(Timesheet.user_id.in_(allowed))
        if filters.status:
            conditions.append(Timesheet.status == filters.status)

        result = await self.session.execute(
            select(Timesheet)
            .where(*conditions)
            .options(
                selectinload(Timesheet.user),
                selectinload(Timesheet.entries).selectinload(TimeEntry.project),
            )
            .order_by(Timesheet.week_start_date.desc())
        )

        rows: list[ReportTimesheet] = []
        aggregates = ReportAggregates()
        for timesheet in result.scalars().unique().all():
            entries = [
                e
                for e in timesheet.entries
                if filters.project_id is None or e.project_id == filters.project_id
            ]
            rows.append(ReportTimesheet(timesheet=timesheet, entries=entries))
            for entry in entries:
                aggregates.total_hours += entry.total_hours
                if entry.billable:
                    aggregates.billable_hours += entry.total_hours

        aggregates.non_billable_hours = aggregates.total_hours - aggregates.billable_hours
        if aggregates.total_hours > 0:
            aggregates.utilization = round(
                aggregates.billable_hours / aggregates.total_hours * 100
            )
        aggregates.timesheet_count = len(rows)
        return ReportResult(timesheets=rows, aggregates=aggregates)

    async def generate_monthly_timesheet_data(
        self, actor: Actor, target_user_id: UUID, year: int, month: int
    ) -> MonthlyTimesheetData:
        """One row per calendar day of the month for a single user.

        Hours above the org's standard day are overtime. Holiday, leave and
        weekend days are listed but left out of the month totals.
        """
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")

        allowed = await self._allowed_user_ids(actor)
        if allowed is not None and target_user_id not in allowed:
            raise ForbiddenError("You can only view reports for yourself or your direct reports")

        target = await self.session.scalar(
            select(User).where(User.id == target_user_id, User.organisation_id == actor.org_id)
        )
        if target is None:
            raise NotFoundError("User")

        settings = await self.settings_service.get_effective(actor.org_id)
        standard = Decimal(settings.standard_hours)

        days_in_month = calendar.monthrange(year, month)[1]
        first = date(year, month, 1)
        last = date(year, month, days_in_month)

        # Weeks starting up to six days before the month can still cover it
        result = await self.session.execute(
            select(Timesheet)
            .where(
                Timesheet.user_id == target_user_id,
                Timesheet.organisation_id == actor.org_id,
                Timesheet.week_start_date >= first - timedelta(days=6),
                Timesheet.week_start_date <= last,
            )
            .options(selectinload(Timesheet.entries).selectinload(TimeEntry.project))
        )
        timesheets = list(result.scalars().unique().all())

        holiday_rows = await self.session.execute(
            select(Holiday).where(Holiday.organisation_id == actor.org_id)
        )
        holidays = _holiday_names(list(holiday_rows.scalars().all()), year, month)

        data = MonthlyTimesheetData(
            employee_name=target.name,
            employee_id=target.id,
            department=target.department or "",
            month=f"{calendar.month_abbr[month]}'{str(year)[2:]}",
            month_full=f"{calendar.month_name[month]} {year}",
        )

        for offset in range(days_in_month):
            day = first + timedelta(days=offset)
            day_key = DAYS[day.weekday()]
            is_weekend = day.weekday() >= 5
            holiday_name = holidays.get(day)
            is_holiday = holiday_name is not None

            hours = ZERO
            projects: list[str] = []
            tasks: list[str] = []
            is_leave = False
            for timesheet in timesheets:
                if not timesheet.week_start_date <= day <= timesheet.week_start_date + timedelta(days=6):
                    continue
                for entry in timesheet.entries:
                    logged = entry.hours_for(day_key)
                    if logged <= 0:
                        continue
                    hours += logged
                    name = entry.project.name if entry.project else ""
                    if name and name not in projects:
                        projects.append(name)
                    desc = entry.description_for(day_key)
                    if desc and desc not in tasks:
                        tasks.append(desc)
                    is_leave = is_leave or _is_leave(entry)

            regular = min(hours, standard)
            overtime = max(hours - standard, ZERO)
            excluded = is_holiday or is_leave

            if is_holiday:
                data.holiday_count += 1
            if is_leave:
                data.leave_count += 1
            if not (excluded or is_weekend):
                data.total_hours += regular
                data.total_overtime += overtime

            data.days.append(
                MonthlyDayRow(
                    date=day,
                    label=f"{day.day:02d}-{calendar.month_abbr[month]}",
                    day=calendar.day_name[day.weekday()],
                    project=", ".join(projects),
                    task=", ".join(tasks),
                    time=ZERO if excluded else regular,
                    overtime=overtime,
                    total_time=ZERO if excluded else hours,
                    is_holiday=is_holiday,
                    holiday_name=holiday_name,
                    is_leave=is_leave,
                    is_weekend=is_weekend,
                )
            )

        return data

    async def _allowed_user_ids(self, actor: Actor) -> list[UUID] | None:
        return await self.graph.visible_user_ids(actor, policy_for(actor.role).reports)
