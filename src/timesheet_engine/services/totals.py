"""Hour aggregation for entries and timesheets."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet_engine.models import DAYS, TimeEntry, Timesheet

ZERO = Decimal("0")


def entry_total(values: Mapping[str, Any]) -> Decimal:
    """Sum of the seven ``<day>_hours`` values; missing or None counts as 0."""
    return sum((Decimal(values.get(f"{day}_hours") or 0) for day in DAYS), ZERO)


def timesheet_totals(entries: Iterable[TimeEntry]) -> tuple[Decimal, Decimal]:
    """(total, billable) hours over a set of entries."""
    total = ZERO
    billable = ZERO
    for entry in entries:
        total += entry.total_hours
        if entry.billable:
            billable += entry.total_hours
    return total, billable


async def recalculate_totals(session: AsyncSession, timesheet: Timesheet) -> Timesheet:
    """Recompute and persist a timesheet's total and billable hours."""
    await session.flush()
    result = await session.execute(
        select(TimeEntry).where(TimeEntry.timesheet_id == timesheet.id)
    )
    timesheet.total_hours, timesheet.billable_hours = timesheet_totals(result.scalars().all())
    await session.flush()
    return timesheet
